"""
Configuration management for the guestbook with validation.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from cryptography.fernet import Fernet
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from ..error.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "GUESTBOOK_"

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "html"

CONFIG_FILENAMES = [
    "guestbook_config.yaml",
    "guestbook_config.yml",
    "guestbook_config.json",
]


class GuestbookConfiguration(BaseModel):
    """Configuration for the guestbook application."""

    # General settings
    debug: bool = False
    fatal_programmer_errors: bool = Field(
        default=False,
        description="Re-raise programmer errors after the response is flushed"
    )

    # Logging settings
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_to_console: bool = True
    structured_logging: bool = False
    log_max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)
    log_backup_count: int = Field(default=5, ge=0)

    # Session settings
    secret_key: str = Field(..., description="Key used to sign session cookies")
    encryption_key: Optional[str] = Field(default=None, description="Fernet key for encrypting sessions")
    session_cookie_name: str = "session"
    session_max_age: int = Field(default=30 * 24 * 3600, description="Session lifetime in seconds", ge=1)
    session_cookie_secure: bool = False
    session_cookie_path: str = "/"
    session_cookie_samesite: Optional[str] = "Lax"

    # Storage settings
    database_url: str = "sqlite:///guestbook.db"
    pool_size: int = Field(default=5, description="Database connections kept in the pool", ge=1, le=100)
    pool_timeout: float = Field(default=30.0, description="Seconds to wait for a pooled connection", gt=0)
    database_echo: bool = False

    # Template settings
    template_dir: Path = DEFAULT_TEMPLATE_DIR
    base_template: str = "_base.html"

    # Server settings
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        value_upper = value.upper()
        if value_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{value}'. Must be one of: {valid_levels}")
        return value_upper

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str) -> str:
        """Reject keys too short to sign cookies safely."""
        if len(value) < 16:
            raise ValueError("secret_key must be at least 16 characters long")
        return value

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, value: Optional[str]) -> Optional[str]:
        """Validate that the encryption key is a usable Fernet key."""
        if not value:
            return None
        try:
            Fernet(value.encode())
        except (ValueError, TypeError) as e:
            raise ValueError(f"encryption_key is not a valid Fernet key: {e}")
        return value

    @field_validator("session_cookie_samesite")
    @classmethod
    def validate_samesite(cls, value: Optional[str]) -> Optional[str]:
        """Validate the SameSite cookie attribute."""
        if value is None:
            return None
        valid = {"Strict", "Lax", "None"}
        normalized = value.capitalize()
        if normalized not in valid:
            raise ValueError(f"Invalid SameSite value '{value}'. Must be one of: {valid}")
        return normalized

    @field_validator("template_dir", mode="before")
    @classmethod
    def convert_template_dir(cls, value: Any) -> Path:
        """Convert template directory strings to Path objects."""
        if isinstance(value, (str, Path)):
            return Path(value).expanduser().resolve()
        raise ValueError(f"Invalid path value: {value}")

    @model_validator(mode="after")
    def validate_template_dir(self) -> 'GuestbookConfiguration':
        """Warn early when the template directory is missing."""
        if not self.template_dir.is_dir():
            logger.warning(f"Template directory not found: {self.template_dir}")
        if self.session_cookie_samesite == "None" and not self.session_cookie_secure:
            logger.warning("SameSite=None cookies are rejected by browsers unless secure is set")
        return self

    model_config = {
        "validate_assignment": True,
    }


def ensure_config(config: Optional[Any] = None) -> GuestbookConfiguration:
    """Ensure a valid guestbook configuration."""
    if isinstance(config, GuestbookConfiguration):
        return config

    if config is None:
        config = {}

    try:
        return GuestbookConfiguration(**config)
    except Exception as e:
        raise ConfigurationError(f"Invalid configuration: {str(e)}")


def find_default_config(search_paths: Optional[list] = None) -> Optional[str]:
    """
    Find the default configuration file in standard locations.

    Returns:
        Path of the first configuration file found, or None
    """
    search_paths = search_paths or [
        Path.cwd(),
        Path.cwd() / "config",
        Path.home() / ".guestbook",
    ]

    for directory in search_paths:
        for filename in CONFIG_FILENAMES:
            path = Path(directory) / filename
            if path.exists():
                return str(path)

    return None


def load_config_file(file_path: str) -> Dict[str, Any]:
    """
    Load configuration from a file (YAML or JSON).

    Args:
        file_path: Path to the configuration file

    Returns:
        Dictionary with configuration

    Raises:
        ConfigurationError: If the file is not found or cannot be parsed
    """
    path = Path(file_path).expanduser()

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {file_path}")

    try:
        content = path.read_text(encoding='utf-8')

        if file_path.endswith((".yaml", ".yml")):
            loaded_config = yaml.safe_load(content) or {}
        elif file_path.endswith(".json"):
            loaded_config = json.loads(content) or {}
        else:
            raise ConfigurationError(f"Unsupported config file format: {file_path}")

        if not isinstance(loaded_config, dict):
            raise ConfigurationError(f"Configuration in {file_path} must be a mapping")

        logger.debug(f"Loaded configuration from {file_path}")
        return loaded_config

    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML format in {file_path}: {str(e)}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON format in {file_path}: {str(e)}")
    except OSError as e:
        raise ConfigurationError(f"Error reading config file {file_path}: {str(e)}")


def load_configuration_from_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Collect ``GUESTBOOK_*`` environment variables into a configuration dict.

    Values are passed through as strings; pydantic coerces them.
    """
    environ = os.environ if environ is None else environ
    fields = GuestbookConfiguration.model_fields

    config = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in fields:
            config[name] = value
        else:
            logger.debug(f"Ignoring unknown environment setting {key}")
    return config


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and key in result and isinstance(result[key], dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_path: Optional[str] = None,
    defaults: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
    use_dotenv: bool = True
) -> GuestbookConfiguration:
    """
    Load configuration from defaults, a file and the environment.

    Args:
        config_path: Path to the configuration file (optional)
        defaults: Default configuration values
        environ: Environment mapping, ``os.environ`` when omitted
        use_dotenv: Load a ``.env`` file into the environment first

    Returns:
        GuestbookConfiguration with loaded configuration
    """
    if use_dotenv and environ is None:
        load_dotenv()

    config = dict(defaults or {})

    path = config_path or find_default_config()
    if path:
        logger.info(f"Loading configuration from {path}")
        config = merge_configs(config, load_config_file(path))
    else:
        logger.info("No configuration file found, using defaults and environment variables")

    # Environment takes precedence over files
    config = merge_configs(config, load_configuration_from_env(environ))

    return ensure_config(config)
