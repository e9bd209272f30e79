"""Configuration loading for pharmadash pipelines.

Defaults live in the packaged ``config.yaml``; a user file only needs the keys
it overrides. Nested sections are merged key by key, except the mappings in
``REPLACE_KEYS`` (the PK arm -> dose table), which a user file replaces whole.
"""

import copy
import datetime as dt
import os
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")

# Mappings a user file replaces whole instead of merging into the defaults.
REPLACE_KEYS = ("dose_map",)


def _read_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return cfg


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if key not in REPLACE_KEYS and isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the default configuration, merged with ``config_path`` if given."""
    cfg = _read_yaml(DEFAULT_CONFIG_PATH)
    if config_path:
        cfg = _deep_merge(cfg, _read_yaml(config_path))
    return cfg


def resolve_reference_date(cfg: Dict[str, Any]) -> dt.date:
    value = cfg.get("reference_date")
    if value is None:
        return dt.date.today()
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value))
    except ValueError as e:
        raise ValueError(f"reference_date must be an ISO date (YYYY-MM-DD), got {value!r}") from e
