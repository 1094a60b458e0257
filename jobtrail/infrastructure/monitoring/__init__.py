"""Logging setup and event delivery."""
