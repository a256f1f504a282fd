"""
XChain TOML Configuration Loader

Loads the [bridge], [saga], [swap] and [demo] sections of config.toml
with environment variable overrides.

Environment variable mapping:
    [bridge] quote_ttl_seconds        → XCHAIN_QUOTE_TTL
    [bridge] cache_ttl_seconds        → XCHAIN_QUOTE_CACHE_TTL
    [bridge] adapter_timeout_seconds  → XCHAIN_ADAPTER_TIMEOUT
    [bridge] max_quote_workers        → XCHAIN_MAX_QUOTE_WORKERS
    [saga]   poll_timeout             → XCHAIN_POLL_TIMEOUT
    [saga]   slippage_tolerance       → XCHAIN_SLIPPAGE_TOLERANCE
    [swap]   fee_bps                  → XCHAIN_SWAP_FEE_BPS
    [demo]   enabled                  → XCHAIN_DEMO_ENABLED
    [demo]   completion_delay         → XCHAIN_DEMO_COMPLETION_DELAY
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    DEFAULT_ADAPTER_TIMEOUT_SECONDS,
    DEFAULT_DEMO_COMPLETION_DELAY,
    DEFAULT_MAX_QUOTE_WORKERS,
    DEFAULT_POLL_INITIAL_INTERVAL,
    DEFAULT_POLL_MAX_INTERVAL,
    DEFAULT_POLL_MULTIPLIER,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_QUOTE_CACHE_TTL_SECONDS,
    DEFAULT_QUOTE_TTL_SECONDS,
    DEFAULT_SLIPPAGE_TOLERANCE,
    DEFAULT_SWAP_DEADLINE_SECONDS,
    DEFAULT_SWAP_FEE_BPS,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigurationError(f"{name} is not a number: {value!r}")


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class BridgeSectionConfig:
    """[bridge] section."""
    quote_ttl_seconds: int = DEFAULT_QUOTE_TTL_SECONDS
    cache_ttl_seconds: float = DEFAULT_QUOTE_CACHE_TTL_SECONDS
    adapter_timeout_seconds: float = DEFAULT_ADAPTER_TIMEOUT_SECONDS
    max_quote_workers: int = DEFAULT_MAX_QUOTE_WORKERS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeSectionConfig":
        return cls(
            quote_ttl_seconds=data.get("quote_ttl_seconds", DEFAULT_QUOTE_TTL_SECONDS),
            cache_ttl_seconds=data.get("cache_ttl_seconds", DEFAULT_QUOTE_CACHE_TTL_SECONDS),
            adapter_timeout_seconds=data.get("adapter_timeout_seconds", DEFAULT_ADAPTER_TIMEOUT_SECONDS),
            max_quote_workers=data.get("max_quote_workers", DEFAULT_MAX_QUOTE_WORKERS),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("XCHAIN_QUOTE_TTL"):
            self.quote_ttl_seconds = int(v)
        if v := os.environ.get("XCHAIN_QUOTE_CACHE_TTL"):
            self.cache_ttl_seconds = float(v)
        if v := os.environ.get("XCHAIN_ADAPTER_TIMEOUT"):
            self.adapter_timeout_seconds = float(v)
        if v := os.environ.get("XCHAIN_MAX_QUOTE_WORKERS"):
            self.max_quote_workers = int(v)

    def validate(self) -> None:
        if self.quote_ttl_seconds <= 0:
            raise ConfigurationError("bridge.quote_ttl_seconds must be > 0")
        if self.cache_ttl_seconds < 0:
            raise ConfigurationError("bridge.cache_ttl_seconds must be >= 0")
        if self.cache_ttl_seconds >= self.quote_ttl_seconds:
            raise ConfigurationError(
                "bridge.cache_ttl_seconds must be below bridge.quote_ttl_seconds"
            )
        if self.adapter_timeout_seconds <= 0:
            raise ConfigurationError("bridge.adapter_timeout_seconds must be > 0")
        if self.max_quote_workers < 1:
            raise ConfigurationError("bridge.max_quote_workers must be >= 1")


@dataclass
class SagaSectionConfig:
    """[saga] section."""
    poll_initial_interval: float = DEFAULT_POLL_INITIAL_INTERVAL
    poll_max_interval: float = DEFAULT_POLL_MAX_INTERVAL
    poll_multiplier: float = DEFAULT_POLL_MULTIPLIER
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    slippage_tolerance: Decimal = DEFAULT_SLIPPAGE_TOLERANCE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SagaSectionConfig":
        return cls(
            poll_initial_interval=data.get("poll_initial_interval", DEFAULT_POLL_INITIAL_INTERVAL),
            poll_max_interval=data.get("poll_max_interval", DEFAULT_POLL_MAX_INTERVAL),
            poll_multiplier=data.get("poll_multiplier", DEFAULT_POLL_MULTIPLIER),
            poll_timeout=data.get("poll_timeout", DEFAULT_POLL_TIMEOUT),
            slippage_tolerance=_decimal(
                data.get("slippage_tolerance", DEFAULT_SLIPPAGE_TOLERANCE),
                "saga.slippage_tolerance",
            ),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("XCHAIN_POLL_TIMEOUT"):
            self.poll_timeout = float(v)
        if v := os.environ.get("XCHAIN_SLIPPAGE_TOLERANCE"):
            self.slippage_tolerance = _decimal(v, "XCHAIN_SLIPPAGE_TOLERANCE")

    def validate(self) -> None:
        if self.poll_initial_interval <= 0:
            raise ConfigurationError("saga.poll_initial_interval must be > 0")
        if self.poll_max_interval < self.poll_initial_interval:
            raise ConfigurationError("saga.poll_max_interval must be >= poll_initial_interval")
        if self.poll_multiplier < 1:
            raise ConfigurationError("saga.poll_multiplier must be >= 1")
        if self.poll_timeout < 0:
            raise ConfigurationError("saga.poll_timeout must be >= 0")
        if not Decimal("0") <= self.slippage_tolerance < Decimal("1"):
            raise ConfigurationError("saga.slippage_tolerance must be in [0, 1)")


@dataclass
class SwapSectionConfig:
    """[swap] section (reference router)."""
    fee_bps: int = DEFAULT_SWAP_FEE_BPS
    deadline_seconds: float = DEFAULT_SWAP_DEADLINE_SECONDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SwapSectionConfig":
        return cls(
            fee_bps=data.get("fee_bps", DEFAULT_SWAP_FEE_BPS),
            deadline_seconds=data.get("deadline_seconds", DEFAULT_SWAP_DEADLINE_SECONDS),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("XCHAIN_SWAP_FEE_BPS"):
            self.fee_bps = int(v)

    def validate(self) -> None:
        if not 0 <= self.fee_bps < 10000:
            raise ConfigurationError("swap.fee_bps must be in [0, 10000)")
        if self.deadline_seconds <= 0:
            raise ConfigurationError("swap.deadline_seconds must be > 0")


@dataclass
class DemoSectionConfig:
    """[demo] section."""
    enabled: bool = True
    completion_delay: float = DEFAULT_DEMO_COMPLETION_DELAY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DemoSectionConfig":
        return cls(
            enabled=data.get("enabled", True),
            completion_delay=data.get("completion_delay", DEFAULT_DEMO_COMPLETION_DELAY),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("XCHAIN_DEMO_ENABLED"):
            self.enabled = _env_bool(v)
        if v := os.environ.get("XCHAIN_DEMO_COMPLETION_DELAY"):
            self.completion_delay = float(v)

    def validate(self) -> None:
        if self.completion_delay < 0:
            raise ConfigurationError("demo.completion_delay must be >= 0")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class XChainConfig:
    """Complete engine configuration."""
    bridge: BridgeSectionConfig = field(default_factory=BridgeSectionConfig)
    saga: SagaSectionConfig = field(default_factory=SagaSectionConfig)
    swap: SwapSectionConfig = field(default_factory=SwapSectionConfig)
    demo: DemoSectionConfig = field(default_factory=DemoSectionConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "XChainConfig":
        return cls(
            bridge=BridgeSectionConfig.from_dict(data.get("bridge", {})),
            saga=SagaSectionConfig.from_dict(data.get("saga", {})),
            swap=SwapSectionConfig.from_dict(data.get("swap", {})),
            demo=DemoSectionConfig.from_dict(data.get("demo", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "XChainConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults; environment overrides are applied
        either way.

        Raises:
            ConfigurationError: if the file is not valid TOML
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {exc}") from exc

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.bridge.apply_env()
        self.saga.apply_env()
        self.swap.apply_env()
        self.demo.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.bridge.validate()
        self.saga.validate()
        self.swap.validate()
        self.demo.validate()
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "bridge": {
                "quote_ttl_seconds": self.bridge.quote_ttl_seconds,
                "cache_ttl_seconds": self.bridge.cache_ttl_seconds,
                "adapter_timeout_seconds": self.bridge.adapter_timeout_seconds,
                "max_quote_workers": self.bridge.max_quote_workers,
            },
            "saga": {
                "poll_initial_interval": self.saga.poll_initial_interval,
                "poll_max_interval": self.saga.poll_max_interval,
                "poll_multiplier": self.saga.poll_multiplier,
                "poll_timeout": self.saga.poll_timeout,
                "slippage_tolerance": str(self.saga.slippage_tolerance),
            },
            "swap": {
                "fee_bps": self.swap.fee_bps,
                "deadline_seconds": self.swap.deadline_seconds,
            },
            "demo": {
                "enabled": self.demo.enabled,
                "completion_delay": self.demo.completion_delay,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> XChainConfig:
    """
    Load engine configuration.

    Resolution order:
        1. Explicit *path* argument
        2. XCHAIN_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("XCHAIN_CONFIG", "config.toml")

    return XChainConfig.from_file(path)
