"""YAML config loader with environment credential fallback."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from skycast.config.schema import AppConfig

logger = logging.getLogger(__name__)

API_KEY_ENV = "WEATHERAPI_KEY"


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load and validate config from a YAML file.

    A missing file or an empty document yields the defaults. When the file
    leaves ``api.api_key`` empty it is taken from $WEATHERAPI_KEY.
    """
    raw: dict = {}
    if path is not None:
        path = Path(path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            logger.info("Config %s not found, using defaults", path)

    api = raw.get("api") or {}
    if not api.get("api_key"):
        api["api_key"] = os.environ.get(API_KEY_ENV, "")
    raw["api"] = api

    return AppConfig(**raw)


def get_config_value(config: AppConfig, dotted_key: str) -> Any:
    """Get a config value by dotted key path. E.g. 'cache.retention_minutes'."""
    obj: Any = config
    for part in dotted_key.split("."):
        if hasattr(obj, part):
            obj = getattr(obj, part)
        elif isinstance(obj, dict) and part in obj:
            obj = obj[part]
        else:
            raise KeyError(f"Config key not found: {dotted_key}")
    return obj
