"""
Wyvern TOML Configuration Loader

Loads every section of wyvern.toml with environment variable overrides.
Sections are dataclasses with from_dict / apply_env.

Environment variable mapping:
    [chain] chain_id                 → WYVERN_CHAIN_ID
    [chain] genesis_timestamp        → WYVERN_GENESIS_TIMESTAMP
    [registry] delay_period          → WYVERN_GRANT_DELAY_PERIOD
    [exchange] personal_sign_prefix  → WYVERN_PERSONAL_SIGN_PREFIX
    [logging] level                  → WYVERN_LOG_LEVEL

The personal sign prefix is given either as 0x-prefixed hex or as text.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    DEFAULT_CHAIN_ID,
    DEFAULT_GENESIS_TIMESTAMP,
    GRANT_DELAY_PERIOD,
    PERSONAL_SIGN_PREFIX,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger, set_log_level

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _parse_prefix(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if not isinstance(value, str):
        raise ConfigurationError(f"personal_sign_prefix must be a string, got {value!r}")
    if value.startswith("0x"):
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            raise ConfigurationError(f"personal_sign_prefix is not valid hex: {value!r}")
    return value.encode()


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class ChainSectionConfig:
    """[chain] section."""
    chain_id: int = DEFAULT_CHAIN_ID
    genesis_timestamp: int = DEFAULT_GENESIS_TIMESTAMP

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainSectionConfig":
        return cls(
            chain_id=_parse_int("chain_id", data.get("chain_id", DEFAULT_CHAIN_ID)),
            genesis_timestamp=_parse_int(
                "genesis_timestamp", data.get("genesis_timestamp", DEFAULT_GENESIS_TIMESTAMP)
            ),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("WYVERN_CHAIN_ID"):
            self.chain_id = _parse_int("WYVERN_CHAIN_ID", v)
        if v := os.environ.get("WYVERN_GENESIS_TIMESTAMP"):
            self.genesis_timestamp = _parse_int("WYVERN_GENESIS_TIMESTAMP", v)


@dataclass
class RegistrySectionConfig:
    """[registry] section."""
    delay_period: int = GRANT_DELAY_PERIOD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistrySectionConfig":
        return cls(
            delay_period=_parse_int("delay_period", data.get("delay_period", GRANT_DELAY_PERIOD)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("WYVERN_GRANT_DELAY_PERIOD"):
            self.delay_period = _parse_int("WYVERN_GRANT_DELAY_PERIOD", v)


@dataclass
class ExchangeSectionConfig:
    """[exchange] section."""
    personal_sign_prefix: bytes = PERSONAL_SIGN_PREFIX

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExchangeSectionConfig":
        prefix = data.get("personal_sign_prefix")
        return cls(
            personal_sign_prefix=PERSONAL_SIGN_PREFIX if prefix is None else _parse_prefix(prefix),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("WYVERN_PERSONAL_SIGN_PREFIX"):
            self.personal_sign_prefix = _parse_prefix(v)


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("WYVERN_LOG_LEVEL"):
            self.level = v.upper()


# -----------------------------------------------------------------------
# Root configuration
# -----------------------------------------------------------------------

@dataclass
class WyvernConfig:
    """
    Unified protocol configuration.

    Loads every section of wyvern.toml and applies environment variable
    overrides.
    """
    chain: ChainSectionConfig = field(default_factory=ChainSectionConfig)
    registry: RegistrySectionConfig = field(default_factory=RegistrySectionConfig)
    exchange: ExchangeSectionConfig = field(default_factory=ExchangeSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WyvernConfig":
        """Create WyvernConfig from a parsed TOML dict."""
        return cls(
            chain=ChainSectionConfig.from_dict(data.get("chain", {})),
            registry=RegistrySectionConfig.from_dict(data.get("registry", {})),
            exchange=ExchangeSectionConfig.from_dict(data.get("exchange", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "WyvernConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides).

        Raises:
            ConfigurationError: The file is not valid TOML or holds invalid values
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
        else:
            try:
                with open(path, "rb") as f:
                    raw = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}")
            cfg = cls.from_dict(raw)

        cfg.apply_env()
        cfg.validate()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.chain.apply_env()
        self.registry.apply_env()
        self.exchange.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.chain.chain_id < 1:
            raise ConfigurationError("chain_id must be >= 1")
        if self.chain.genesis_timestamp < 0:
            raise ConfigurationError("genesis_timestamp must be >= 0")
        if self.registry.delay_period < 0:
            raise ConfigurationError("delay_period must be >= 0")
        if self.logging.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    def apply_logging(self) -> None:
        """Push the configured log level to the package logger."""
        set_log_level(self.logging.level)

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "chain": {
                "chain_id": self.chain.chain_id,
                "genesis_timestamp": self.chain.genesis_timestamp,
            },
            "registry": {
                "delay_period": self.registry.delay_period,
            },
            "exchange": {
                "personal_sign_prefix": "0x" + self.exchange.personal_sign_prefix.hex(),
            },
            "logging": {
                "level": self.logging.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> WyvernConfig:
    """
    Load protocol configuration.

    Resolution order:
        1. Explicit *path* argument
        2. WYVERN_CONFIG env var
        3. ./wyvern.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("WYVERN_CONFIG", "wyvern.toml")

    return WyvernConfig.from_file(path)
