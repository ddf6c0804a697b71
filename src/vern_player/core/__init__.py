"""Core infrastructure layer - no playback logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging (Loguru)
- Console management (Rich)
"""

from .config import (
    Config,
    LoggingConfig,
    NotificationsConfig,
    PersistenceConfig,
    PlayerConfig,
    UIConfig,
    create_default_config,
    ensure_directories,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_log_file_path,
    get_state_file_path,
    load_config,
)
from .console import get_console, print_key_values, safe_print
from .output import log, set_screen_mode, setup_loguru

__all__ = [
    # Config
    "Config",
    "LoggingConfig",
    "NotificationsConfig",
    "PersistenceConfig",
    "PlayerConfig",
    "UIConfig",
    "create_default_config",
    "ensure_directories",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_log_file_path",
    "get_state_file_path",
    "load_config",
    # Console
    "get_console",
    "print_key_values",
    "safe_print",
    # Output
    "log",
    "set_screen_mode",
    "setup_loguru",
]
