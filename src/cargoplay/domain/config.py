from __future__ import annotations

"""
Configuration Domain Management.

Handles the persistent user configuration stored as JSON in the user data
directory. The runtime configuration is a plain dictionary: defaults,
overlaid with the persisted file, overlaid with CLI overrides.
"""

import json
import logging
import os
from typing import Any, Dict

from cargoplay.domain.constants import (
    CURRENT_CONFIG_VERSION,
    DEFAULT_DIRECTIVE_PREFIX,
    DEFAULT_EDITION,
    DEFAULT_MAX_CACHED_PROJECTS,
    MODE_RUN,
)
from cargoplay.infra.fs import get_user_data_dir

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"

# -----------------------------------------------------------------------------
# Configuration Models (Dict-based)
# -----------------------------------------------------------------------------
def get_default_config() -> Dict[str, Any]:
    """
    Generate the default runtime configuration.

    Returns:
        Dict[str, Any]: Default configuration values.
    """
    return {
        # Inputs
        "sources": [],
        "program_args": [],

        # Directive parsing
        "directive_prefix": DEFAULT_DIRECTIVE_PREFIX,
        "blank_lines": "tolerate",
        "infer": False,

        # Manifest skeleton
        "edition": DEFAULT_EDITION,

        # Build invocation
        "mode": MODE_RUN,
        "release": False,
        "cargo_program": "cargo",
        "toolchain": "",
        "cargo_options": [],

        # Project lifecycle
        "cache_enabled": True,
        "cache_dir": "",
        "max_cached_projects": DEFAULT_MAX_CACHED_PROJECTS,
        "keep": False,
        "clean": False,
        "save_path": "",

        # Diagnostics
        "log_file": "",
    }


def get_config_path() -> str:
    """Resolve the absolute path of the persisted configuration file."""
    return os.path.join(get_user_data_dir(), CONFIG_FILENAME)


# -----------------------------------------------------------------------------
# Persistence Logic
# -----------------------------------------------------------------------------
def load_config(path: str = "") -> Dict[str, Any]:
    """
    Load the persisted configuration merged over the defaults.

    Unknown keys are ignored; a missing or corrupted file yields defaults.

    Args:
        path: Optional explicit file location (defaults to the user data dir).

    Returns:
        Dict[str, Any]: The merged configuration.
    """
    config = get_default_config()
    config_path = path or get_config_path()

    if not os.path.exists(config_path):
        logger.debug(f"Config file not found at {config_path}. Using defaults.")
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load config: {e}. Using defaults.")
        return config

    if not isinstance(data, dict):
        logger.warning("Corrupted config file. Resetting to defaults.")
        return config

    for key, value in data.items():
        if key in config:
            config[key] = value
        elif key != "version":
            logger.debug(f"Ignoring unknown config key '{key}'.")

    return config


def save_config(config: Dict[str, Any], path: str = "") -> None:
    """
    Persist the configuration to disk.

    Per-run keys (sources, arguments, one-shot actions) are not stored.

    Args:
        config: The configuration dictionary to save.
        path: Optional explicit file location.
    """
    config_path = path or get_config_path()
    transient = {"sources", "program_args", "clean", "save_path", "keep"}
    payload = {k: v for k, v in config.items() if k not in transient}
    payload["version"] = CURRENT_CONFIG_VERSION

    try:
        os.makedirs(os.path.dirname(config_path), exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=4)
        logger.debug(f"Configuration saved to {config_path}")
    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")
