from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .schema import Settings

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
CONFIG_PATH_ENV_VAR = "MACROBIUS_TUTOR_CONFIG"
OVERRIDES_ENV_VAR = "MACROBIUS_TUTOR_CONFIG_OVERRIDES"


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Pick the explicit path, else `MACROBIUS_TUTOR_CONFIG`, else `config/default.yaml`."""
    if config_path:
        return Path(config_path)
    from_env = os.getenv(CONFIG_PATH_ENV_VAR)
    return Path(from_env) if from_env else DEFAULT_CONFIG_PATH


def read_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping; a blank file is an empty mapping."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level.")
    return data


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `override` into a copy of `base`; nested mappings merge key by key."""
    result: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            result[key] = merge_dicts(base[key], value)
        else:
            result[key] = value
    return result


def env_overrides() -> Optional[Dict[str, Any]]:
    """Parse the JSON object in `MACROBIUS_TUTOR_CONFIG_OVERRIDES`, if set.

    Example: ``MACROBIUS_TUTOR_CONFIG_OVERRIDES='{"backend": {"enabled": true}}'``
    """
    raw = os.getenv(OVERRIDES_ENV_VAR)
    if not raw:
        return None
    try:
        overrides = json.loads(raw)
    except json.JSONDecodeError as err:
        raise ValueError(f"Failed to parse {OVERRIDES_ENV_VAR} env var as JSON.") from err
    if not isinstance(overrides, dict):
        raise ValueError(f"{OVERRIDES_ENV_VAR} must contain a JSON object.")
    return overrides


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Read configuration, apply environment overrides, and return validated Settings.

    Raises
    ------
    FileNotFoundError
        If the YAML file does not exist.
    ValueError
        If the overrides are not a JSON object or the merged payload fails validation.
    """
    data = read_yaml(resolve_config_path(config_path))
    overrides = env_overrides()
    if overrides:
        data = merge_dicts(data, overrides)

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
