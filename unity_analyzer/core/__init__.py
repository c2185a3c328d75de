from .config import (
    DEBUG,
    CONFIG_FILE,
    DEFAULT_CONFIG,
    load_config,
    get_config_value,
    save_config,
)
from .database import get_db_path

__all__ = [
    "DEBUG",
    "CONFIG_FILE",
    "DEFAULT_CONFIG",
    "load_config",
    "get_config_value",
    "save_config",
    "get_db_path",
]
