"""Configuration management module.

This module provides:
- Environment-based configuration with validation
- Hub controller settings and feature gates
- Cached settings access via get_settings()
"""

from .settings import (
    Environment,
    FeatureGates,
    KubeSettings,
    LogFormat,
    LogLevel,
    RedisSettings,
    RegistrationHubSettings,
    Settings,
    get_settings,
)

__all__ = [
    # Main settings
    "Settings",
    "get_settings",
    # Enums
    "Environment",
    "LogLevel",
    "LogFormat",
    # Component settings
    "RedisSettings",
    "KubeSettings",
    "FeatureGates",
    # Service-specific settings
    "RegistrationHubSettings",
]
