import os

_CORE_DIR = os.path.dirname(__file__)
_TOOL_DIR = os.path.dirname(_CORE_DIR)


def get_db_path(name: str = None, config_file: str = None) -> str:
    from .config import load_config

    configured = load_config(config_file).get("database_path")
    if configured and not name:
        return os.path.abspath(os.path.expanduser(configured))

    return os.path.join(_TOOL_DIR, "data", f"{name or 'analysis'}.db")
