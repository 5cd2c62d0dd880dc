"""
config.py - Configuration loader for the DICOM viewer core.

Settings come from config.yaml at the repo root, or from the file named by
the ``DICOMVIEW_CONFIG`` environment variable, layered over built-in
defaults.  Only the keys a file sets are overridden; nested sections are
merged key by key.
"""

import os
import yaml
from typing import Any, Optional

_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_CONFIG_PATH = os.path.join(_REPO_ROOT, "config.yaml")
_ENV_VAR = "DICOMVIEW_CONFIG"

_DEFAULTS: dict[str, Any] = {
    "paths": {
        "input_folder": "data/raw",
        "output_folder": "reports",
    },
    "rendering": {
        "placeholder": {
            "width": 512,
            "height": 512,
            "gray": 32,
        },
    },
    "interaction": {
        "min_window_width": 1.0,
        "width_gain": 1.0,
        "center_gain": 2.0,
    },
    "logging": {
        "level": "INFO",
        "format": "%(levelname)-8s %(message)s",
    },
}


def _layer(defaults: dict, overrides: dict) -> dict:
    """Return *defaults* with *overrides* laid on top, section by section."""
    merged = dict(defaults)
    for key, value in overrides.items():
        section = merged.get(key)
        merged[key] = (
            _layer(section, value)
            if isinstance(section, dict) and isinstance(value, dict)
            else value
        )
    return merged


def _check(config: dict[str, Any], source: str) -> None:
    interaction = config["interaction"]
    if float(interaction["min_window_width"]) <= 0:
        raise ValueError(f"{source}: interaction.min_window_width must be positive")

    gray = int(config["rendering"]["placeholder"]["gray"])
    if not 0 <= gray <= 255:
        raise ValueError(f"{source}: rendering.placeholder.gray must be within 0..255")


def load_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    Load the YAML configuration and layer it over the built-in defaults.

    Parameters
    ----------
    config_path : str, optional
        Path to a YAML file.  Defaults to ``$DICOMVIEW_CONFIG`` if set,
        otherwise the repo-root config.yaml.  A missing file means
        "defaults only".

    Raises
    ------
    ValueError
        If the file is not a YAML mapping or holds out-of-range values.
    """
    path = config_path or os.environ.get(_ENV_VAR) or _CONFIG_PATH

    overrides: Any = {}
    if os.path.exists(path):
        with open(path, "r") as f:
            overrides = yaml.safe_load(f) or {}
    if not isinstance(overrides, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    config = _layer(_DEFAULTS, overrides)
    _check(config, path)
    return config


# Module-level singleton so callers can just do `from dicomview.config import CONFIG`
CONFIG = load_config()
