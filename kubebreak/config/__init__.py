"""
Config Module - Black Box Interface

Purpose: Workshop, cluster installer and logging configuration
Interface: load_provider(), EnvConfigProvider, YamlConfigProvider
Hidden: Environment parsing, YAML overlay, validation

Can be replaced with different config systems as long as the provider protocol holds.
"""

from .provider import (
    ClusterConfig,
    ConfigProvider,
    EnvConfigProvider,
    LoggingConfig,
    WorkshopConfig,
    YamlConfigProvider,
    load_provider,
)

__all__ = [
    "ClusterConfig",
    "ConfigProvider",
    "EnvConfigProvider",
    "LoggingConfig",
    "WorkshopConfig",
    "YamlConfigProvider",
    "load_provider",
]
