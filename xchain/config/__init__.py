"""
XChain Configuration

Loads config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    XChainConfig,
    BridgeSectionConfig,
    SagaSectionConfig,
    SwapSectionConfig,
    DemoSectionConfig,
    load_config,
)

__all__ = [
    "XChainConfig",
    "BridgeSectionConfig",
    "SagaSectionConfig",
    "SwapSectionConfig",
    "DemoSectionConfig",
    "load_config",
]
