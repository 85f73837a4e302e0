"""Configuration utilities for Igor."""
from __future__ import annotations

from .settings import CONFIG_FILENAME, AppConfig, default_config_paths, load_config

__all__ = [
    "AppConfig",
    "CONFIG_FILENAME",
    "default_config_paths",
    "load_config",
]
