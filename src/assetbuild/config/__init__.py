"""
Configuration helpers for the asset build pipeline.
"""

from .models import DEFAULT_CONFIG_NAME, BuildConfig, ConfigError, EntryConfig, load_config
from .settings import BuildEnvironment, get_environment

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "BuildConfig",
    "ConfigError",
    "EntryConfig",
    "load_config",
    "BuildEnvironment",
    "get_environment",
]
