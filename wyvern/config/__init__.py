"""
Wyvern Configuration

Loads wyvern.toml. Environment variables override TOML values.
"""

from .loader import (
    WyvernConfig,
    ChainSectionConfig,
    RegistrySectionConfig,
    ExchangeSectionConfig,
    LoggingSectionConfig,
    load_config,
)

__all__ = [
    "WyvernConfig",
    "ChainSectionConfig",
    "RegistrySectionConfig",
    "ExchangeSectionConfig",
    "LoggingSectionConfig",
    "load_config",
]
