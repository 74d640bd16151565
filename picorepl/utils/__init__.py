# picorepl/utils/__init__.py

# This makes the directory a Python package.

from .constants import Constants
from .data_models import SerialPortConfig, SessionConfig
from .config_manager import ConfigManager, serial_config_from, session_config_from
from .logger import ErrorLogger

__all__ = [
    "Constants",
    "SerialPortConfig",
    "SessionConfig",
    "ConfigManager",
    "serial_config_from",
    "session_config_from",
    "ErrorLogger",
]
