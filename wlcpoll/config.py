"""
Poller Configuration
====================

Layered configuration for the daemon:

    1. Built-in defaults (DEFAULT_CONFIG)
    2. YAML file passed with --config (merged section by section)
    3. Environment overrides: WLCPOLL_{SECTION}_{NAME}
    4. CLI flags (applied by main)

For example:
    WLCPOLL_SNMP_HOST=10.0.0.5
    WLCPOLL_POLL_INTERVAL_SECONDS=30

The merged dict is turned into frozen dataclasses by Settings.from_dict(),
which is the only place values are validated.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import yaml

from .telemetry.errors import ConfigError

logger = logging.getLogger("Config")

ENV_PREFIX = "WLCPOLL"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "snmp": {
        "host": "127.0.0.1",
        "port": 161,
        "community": "public",
        "timeout": 2.0,
        "retries": 1,
        "max_repetitions": 25,
    },
    "storage": {
        "db_path": "wlc.db",
    },
    "poll": {
        "interval_seconds": 10.0,
        # Empty list means every catalog prefix
        "groups": [],
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    },
}


def _env_key(section: str, name: str) -> str:
    return f"{ENV_PREFIX}_{section.upper()}_{name.upper()}"


def _env_int(key: str, default: int) -> int:
    """Get integer from environment or use default."""
    val = os.environ.get(key)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            logger.warning(f"Invalid int value for {key}: {val}, using default {default}")
    return default


def _env_float(key: str, default: float) -> float:
    """Get float from environment or use default."""
    val = os.environ.get(key)
    if val is not None:
        try:
            return float(val)
        except ValueError:
            logger.warning(f"Invalid float value for {key}: {val}, using default {default}")
    return default


def _env_str(key: str, default: str) -> str:
    val = os.environ.get(key)
    if val is not None and val.strip():
        return val.strip()
    return default


def _env_list(key: str, default: list) -> list:
    """Comma-separated list from environment or default."""
    val = os.environ.get(key)
    if val is not None:
        return [item.strip() for item in val.split(",") if item.strip()]
    return default


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay WLCPOLL_* variables onto a config dict (returns a copy)."""
    result = copy.deepcopy(config)
    for section, values in DEFAULT_CONFIG.items():
        target = result.setdefault(section, {})
        for name, default in values.items():
            key = _env_key(section, name)
            current = target.get(name, default)
            if isinstance(default, int):
                target[name] = _env_int(key, current)
            elif isinstance(default, float):
                target[name] = _env_float(key, current)
            elif isinstance(default, list):
                target[name] = _env_list(key, current)
            else:
                target[name] = _env_str(key, current)
    return result


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file, defaults and environment.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        try:
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"cannot read config file {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(
                f"config file {config_path} must contain a mapping",
                details={"path": config_path},
            )
        config = _merge(config, loaded)
        logger.debug(f"Loaded config file: {config_path}")

    return apply_env_overrides(config)


# ---------------------------------------------------------------------------
# Typed view
# ---------------------------------------------------------------------------

def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{name}' must be a mapping", details={"section": name})
    return value


def _coerce(section: str, name: str, value: Any, kind: type) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"{section}.{name}: expected {kind.__name__}, got {value!r}",
            details={"section": section, "name": name},
        ) from e


@dataclass(frozen=True)
class SnmpConfig:
    host: str
    port: int = 161
    community: str = "public"
    timeout: float = 2.0
    retries: int = 1
    max_repetitions: int = 25

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnmpConfig":
        host = str(data.get("host") or "").strip()
        if not host:
            raise ConfigError("snmp.host must not be empty", details={"section": "snmp"})
        cfg = cls(
            host=host,
            port=_coerce("snmp", "port", data.get("port", 161), int),
            community=str(data.get("community", "public")),
            timeout=_coerce("snmp", "timeout", data.get("timeout", 2.0), float),
            retries=_coerce("snmp", "retries", data.get("retries", 1), int),
            max_repetitions=_coerce("snmp", "max_repetitions", data.get("max_repetitions", 25), int),
        )
        if not 0 < cfg.port < 65536:
            raise ConfigError(f"snmp.port out of range: {cfg.port}")
        if cfg.timeout <= 0:
            raise ConfigError(f"snmp.timeout must be positive: {cfg.timeout}")
        if cfg.retries < 0:
            raise ConfigError(f"snmp.retries must not be negative: {cfg.retries}")
        if cfg.max_repetitions < 1:
            raise ConfigError(f"snmp.max_repetitions must be at least 1: {cfg.max_repetitions}")
        return cfg


@dataclass(frozen=True)
class StorageConfig:
    db_path: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageConfig":
        db_path = str(data.get("db_path") or "").strip()
        if not db_path:
            raise ConfigError("storage.db_path must not be empty", details={"section": "storage"})
        return cls(db_path=db_path)


@dataclass(frozen=True)
class PollConfig:
    interval_seconds: float = 10.0
    groups: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PollConfig":
        interval = _coerce("poll", "interval_seconds", data.get("interval_seconds", 10.0), float)
        if interval <= 0:
            raise ConfigError(f"poll.interval_seconds must be positive: {interval}")
        groups = data.get("groups") or []
        if isinstance(groups, str):
            groups = [groups]
        if not isinstance(groups, (list, tuple)):
            raise ConfigError(f"poll.groups must be a list, got {type(groups).__name__}")
        return cls(interval_seconds=interval, groups=tuple(str(g) for g in groups))


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        level = str(data.get("level", "INFO")).upper()
        if level not in LOG_LEVELS:
            raise ConfigError(f"logging.level must be one of {', '.join(LOG_LEVELS)}: {level}")
        return cls(level=level, format=data.get("format"))


@dataclass(frozen=True)
class Settings:
    snmp: SnmpConfig
    storage: StorageConfig
    poll: PollConfig
    logging: LoggingConfig

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "Settings":
        """
        Build the typed settings from a merged config dict.

        Raises:
            ConfigError: On any missing or invalid value
        """
        return cls(
            snmp=SnmpConfig.from_dict(_section(config, "snmp")),
            storage=StorageConfig.from_dict(_section(config, "storage")),
            poll=PollConfig.from_dict(_section(config, "poll")),
            logging=LoggingConfig.from_dict(_section(config, "logging")),
        )
