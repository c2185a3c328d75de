import os
import json
import logging
from typing import Any

logger = logging.getLogger("unity-analyzer")

# Set UNITY_ANALYZER_DEBUG=1 to log detected schema variants and per-file counts
DEBUG = os.environ.get("UNITY_ANALYZER_DEBUG", "").lower() in ("1", "true", "yes")

_CORE_DIR = os.path.dirname(__file__)
_TOOL_DIR = os.path.dirname(_CORE_DIR)
CONFIG_FILE = os.environ.get(
    "UNITY_ANALYZER_CONFIG", os.path.join(_TOOL_DIR, "config.json")
)

DEFAULT_CONFIG = {
    "database_path": "",
    "dump_glob": "*.json",
    "fail_fast": False,
}


def load_config(config_file: str = None) -> dict:
    """Load config.json merged over DEFAULT_CONFIG.

    A missing file yields the defaults; an unreadable one is logged and ignored.
    """
    config = dict(DEFAULT_CONFIG)
    path = config_file or CONFIG_FILE

    if not os.path.exists(path):
        return config

    try:
        with open(path, "r") as f:
            loaded = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to load config %s: %s", path, e)
        return config

    if not isinstance(loaded, dict):
        logger.warning("Ignoring config %s: expected a JSON object", path)
        return config

    for key, value in loaded.items():
        if key in DEFAULT_CONFIG:
            config[key] = value
        else:
            logger.debug("Unknown config key ignored: %s", key)

    return config


def get_config_value(key: str, config_file: str = None) -> Any:
    return load_config(config_file)[key]


def save_config(options: dict, config_file: str = None):
    """Persist options into config.json; None values are removed."""
    path = config_file or CONFIG_FILE

    existing = {}
    if os.path.exists(path):
        with open(path, "r") as f:
            existing = json.load(f)

    for k, v in options.items():
        if v is None:
            existing.pop(k, None)
        else:
            existing[k] = v

    with open(path, "w") as f:
        json.dump(existing, f, indent=2)
