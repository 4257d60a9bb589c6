import json
import logging
import pathlib
from typing import Any, Dict, Optional

from . import MANIFEST_BASE_URL, ORNITHE_META_URL
from .replacer import replace_text

log = logging.getLogger(__name__)

CONFIG_FILENAME = "installer_config.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "meta_url": ORNITHE_META_URL,
    "manifest_url": MANIFEST_BASE_URL,
    "launcher": "official",
    "loader": "fabric",
    "loader_version": None,
    "game_version": None,
    "generation": None,
    "install_dir": None,
    "output_dir": ".",
    "generate_profile": True,
    "snapshots": False,
    "loader_betas": False,
    "timeout": 30,
    "progress": True,
    "log_level": "INFO",
}


class ConfigError(Exception):
    pass


def load_config(path: Optional[pathlib.Path] = None) -> Dict[str, Any]:
    """Reads the installer config over the defaults.

    ``:thisdir:`` in string values is replaced by the directory holding the config
    file. A missing file just means defaults.
    """
    config_path = pathlib.Path(path) if path is not None else pathlib.Path.cwd() / CONFIG_FILENAME
    config = dict(DEFAULT_CONFIG)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        if path is not None:
            raise ConfigError(f"Config file not found: {config_path}") from None
        log.debug(f"No {CONFIG_FILENAME} in {config_path.parent}, using defaults")
        return config
    except json.JSONDecodeError as e:
        raise ConfigError(f"Error parsing {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")

    this_dir = str(config_path.parent.resolve())
    for key, value in raw.items():
        if key not in DEFAULT_CONFIG:
            log.warning(f"Ignoring unknown config key '{key}' in {config_path}")
            continue
        config[key] = replace_text(value, {":thisdir:": this_dir}) if isinstance(value, str) else value
    return config
