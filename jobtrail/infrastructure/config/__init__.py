"""Configuration loading (YAML file, .env file, environment)."""
