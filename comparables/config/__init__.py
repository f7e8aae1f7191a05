"""Configuration module for the comparable-sales engine."""

from .engine_config import (
    ENGINE_CONFIG,
    EngineSettings,
    MarketplaceConfig,
    CacheConfig,
    ThresholdConfig,
    ValidationConfig,
    SettingsStoreConfig,
    GeneratorConfig,
    get_engine_settings,
)

__all__ = [
    'ENGINE_CONFIG',
    'EngineSettings',
    'MarketplaceConfig',
    'CacheConfig',
    'ThresholdConfig',
    'ValidationConfig',
    'SettingsStoreConfig',
    'GeneratorConfig',
    'get_engine_settings',
]
