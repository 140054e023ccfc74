"""
Configuration components for the guestbook.
"""
from .configuration import (
    GuestbookConfiguration,
    ensure_config,
    find_default_config,
    load_config,
    load_config_file,
    load_configuration_from_env,
    merge_configs,
)

__all__ = [
    "GuestbookConfiguration",
    "ensure_config",
    "find_default_config",
    "load_config",
    "load_config_file",
    "load_configuration_from_env",
    "merge_configs",
]
