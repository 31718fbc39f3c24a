"""Core data: provider profiles, presets and logging setup."""

from model_switch.core.config import ConfigError, ModelMapping, ProfileConfig, Provider

__all__ = [
    "ConfigError",
    "ModelMapping",
    "ProfileConfig",
    "Provider",
]
