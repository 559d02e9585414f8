"""
Configuration loader for the autosave engine.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.exceptions import AutosaveConfigError
from ..transport import (
    FaultInjectingTransport,
    InMemoryTransport,
    RetryingTransport,
    SqlServerDraftTransport,
)
from ..utils.retry import RetryConfig


logger = logging.getLogger(__name__)

TRANSPORT_TYPES = ("memory", "sqlserver")

_TRUE_VALUES = ("1", "true", "yes", "on")


def _default_config() -> Dict[str, Any]:
    """Return default configuration."""
    return {
        "engine": {
            "debounce_ms": 1000,
            "keys_sample_size": 10,
        },
        "transport": {
            "type": "memory",
            "force_save_error": False,
            "retry": {
                "enabled": False,
                "max_attempts": 3,
                "initial_delay_ms": 250.0,
                "max_delay_ms": 4000.0,
                "backoff_multiplier": 2.0,
                "jitter": True,
            },
        },
        "logging": {
            "level": "INFO",
            "structured": False,
        },
    }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class AutosaveConfig:
    """
    Configuration for autosave engines and their transport.
    
    Loads an optional YAML file over the defaults, then applies environment
    overrides (AUTOSAVE_DEBOUNCE_MS, AUTOSAVE_TRANSPORT, AUTOSAVE_LOG_LEVEL,
    AUTOSAVE_LOG_STRUCTURED).
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.
        
        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        loaded = self._load_config() if self.config_path else {}
        self.config = _deep_merge(_default_config(), loaded)
        self._apply_env_overrides()
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise AutosaveConfigError(f"Config file not found: {self.config_path}")
        
        logger.info(f"Loading config from: {self.config_path}")
        
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise AutosaveConfigError(f"Invalid YAML in {self.config_path}: {e}")
        
        if config is None:
            return {}
        if not isinstance(config, dict):
            raise AutosaveConfigError(f"Config root must be a mapping: {self.config_path}")
        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        debounce = os.environ.get("AUTOSAVE_DEBOUNCE_MS")
        if debounce:
            try:
                self.config["engine"]["debounce_ms"] = float(debounce)
            except ValueError:
                raise AutosaveConfigError(f"AUTOSAVE_DEBOUNCE_MS is not a number: {debounce!r}")

        transport = os.environ.get("AUTOSAVE_TRANSPORT")
        if transport:
            self.config["transport"]["type"] = transport.strip().lower()

        level = os.environ.get("AUTOSAVE_LOG_LEVEL")
        if level:
            self.config["logging"]["level"] = level.strip().upper()

        structured = os.environ.get("AUTOSAVE_LOG_STRUCTURED")
        if structured:
            self.config["logging"]["structured"] = structured.strip().lower() in _TRUE_VALUES

    def _validate(self) -> None:
        debounce = self.get("engine.debounce_ms")
        if not isinstance(debounce, (int, float)) or isinstance(debounce, bool) or debounce < 0:
            raise AutosaveConfigError(f"engine.debounce_ms must be a non-negative number, got {debounce!r}")

        if self.transport_type not in TRANSPORT_TYPES:
            raise AutosaveConfigError(
                f"transport.type must be one of {', '.join(TRANSPORT_TYPES)}, got {self.transport_type!r}"
            )

        sample = self.get("engine.keys_sample_size")
        if not isinstance(sample, int) or isinstance(sample, bool) or sample < 0:
            raise AutosaveConfigError(f"engine.keys_sample_size must be an integer >= 0, got {sample!r}")

        attempts = self.get("transport.retry.max_attempts")
        if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 1:
            raise AutosaveConfigError(f"transport.retry.max_attempts must be >= 1, got {attempts!r}")

        for key in ("initial_delay_ms", "max_delay_ms", "backoff_multiplier"):
            value = self.get(f"transport.retry.{key}")
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise AutosaveConfigError(
                    f"transport.retry.{key} must be a non-negative number, got {value!r}"
                )

        if not isinstance(logging.getLevelName(self.log_level), int):
            raise AutosaveConfigError(f"Unknown logging.level: {self.log_level!r}")

    @property
    def debounce_ms(self) -> float:
        return self.get("engine.debounce_ms")

    @property
    def keys_sample_size(self) -> int:
        return int(self.get("engine.keys_sample_size", 10))

    @property
    def transport_type(self) -> str:
        return self.get("transport.type", "memory")

    @property
    def log_level(self) -> str:
        return str(self.get("logging.level", "INFO")).upper()

    @property
    def structured_logging(self) -> bool:
        return bool(self.get("logging.structured", False))

    def get_retry_config(self) -> RetryConfig:
        """Build the RetryConfig for the transport."""
        retry = self.config["transport"]["retry"]
        return RetryConfig(
            max_attempts=int(retry.get("max_attempts", 3)),
            initial_delay_ms=float(retry.get("initial_delay_ms", 250.0)),
            max_delay_ms=float(retry.get("max_delay_ms", 4000.0)),
            backoff_multiplier=float(retry.get("backoff_multiplier", 2.0)),
            jitter=bool(retry.get("jitter", True)),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config
        
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        
        return value if value is not None else default


def build_transport(config: AutosaveConfig, store=None):
    """
    Build the transport stack described by ``config``.
    
    Order (outermost first): fault injection, retry, concrete transport.
    
    Args:
        config: Loaded configuration
        store: Optional InMemoryDraftStore for the memory transport
    """
    if config.transport_type == "sqlserver":
        transport = SqlServerDraftTransport()
    else:
        transport = InMemoryTransport(store=store)

    if config.get("transport.retry.enabled", False):
        transport = RetryingTransport(transport, config.get_retry_config())

    force = config.get("transport.force_save_error", False)
    transport = FaultInjectingTransport(transport, enabled=True if force else None)

    logger.debug(f"Built {config.transport_type} transport (retry={config.get('transport.retry.enabled')})")
    return transport
