"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.jobtrail/config.yaml). Typed helpers build the
throttle, retry and SMTP settings from the flat key space.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from jobtrail.domain.models.retry import RetryOptions
from jobtrail.domain.models.throttle import ThrottleConfig
from jobtrail.infrastructure.notifications.smtp_transport import SmtpSettings

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".jobtrail"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "JOBTRAIL_"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('throttle.max_attempts')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{full_key}."))
        else:
            flat[full_key] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no .env found).")

    # 3. Environment Variables (Highest priority) are read lazily in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets loaded configuration so the next load_configuration re-reads sources."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    """Converts common string forms from the environment to Python values."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def env_var_names(key: str) -> tuple:
    """Environment variable names consulted for a key, in priority order."""
    plain = key.upper().replace('.', '_')
    return (f"{ENV_PREFIX}{plain}", plain)


def get_config(key: str, default: Any = None, coerce: bool = True) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration
    2. Environment variable (JOBTRAIL_THROTTLE_MAX_ATTEMPTS, then THROTTLE_MAX_ATTEMPTS)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key (dotted, e.g. 'throttle.max_attempts')
        default: Default value if the key is not found
        coerce: Convert environment strings to bool/int/float. Pass False for
            values that must stay text, such as credentials.

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    for env_key in env_var_names(key):
        if env_key in os.environ:
            value = os.environ[env_key]
            return _coerce(value) if coerce else value

    if key in _config:
        return _config[key]

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# --- Typed Accessors ---

def get_throttle_config() -> ThrottleConfig:
    """Builds the login throttle policy from configuration."""
    defaults = ThrottleConfig()
    return ThrottleConfig(
        max_attempts=int(get_config('throttle.max_attempts', defaults.max_attempts)),
        attempt_window_ms=int(get_config('throttle.attempt_window_ms', defaults.attempt_window_ms)),
        initial_lockout_ms=int(get_config('throttle.initial_lockout_ms', defaults.initial_lockout_ms)),
        max_lockout_ms=int(get_config('throttle.max_lockout_ms', defaults.max_lockout_ms)),
        lockout_multiplier=float(get_config('throttle.lockout_multiplier', defaults.lockout_multiplier)),
        sweep_interval_ms=int(get_config('throttle.sweep_interval_ms', defaults.sweep_interval_ms)),
    )


def get_retry_options() -> RetryOptions:
    """Builds the default retry options from configuration."""
    defaults = RetryOptions()
    return RetryOptions(
        max_retries=int(get_config('retry.max_retries', defaults.max_retries)),
        initial_delay_ms=float(get_config('retry.initial_delay_ms', defaults.initial_delay_ms)),
        max_delay_ms=float(get_config('retry.max_delay_ms', defaults.max_delay_ms)),
        backoff_multiplier=float(get_config('retry.backoff_multiplier', defaults.backoff_multiplier)),
    )


def get_rate_limit_max_buckets() -> int:
    """Upper bound on tracked request rate-limit buckets."""
    return int(get_config('rate_limit.max_buckets', 10_000))


def get_smtp_settings() -> SmtpSettings:
    """Builds SMTP transport settings from configuration."""
    defaults = SmtpSettings()
    username = get_config('smtp.username', defaults.username, coerce=False)
    password = get_config('smtp.password', defaults.password, coerce=False)
    return SmtpSettings(
        host=str(get_config('smtp.host', defaults.host, coerce=False)),
        port=int(get_config('smtp.port', defaults.port)),
        username=str(username) if username is not None else None,
        password=str(password) if password is not None else None,
        use_tls=bool(get_config('smtp.use_tls', defaults.use_tls)),
        sender=str(get_config('smtp.from', defaults.sender, coerce=False)),
        timeout_seconds=float(get_config('smtp.timeout_seconds', defaults.timeout_seconds)),
    )


# Load configuration when the module is imported
load_configuration()
