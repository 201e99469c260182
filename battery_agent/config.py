from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger("battery_agent.config")

TEN_MINUTES_S = 10 * 60
ONE_DAY_S = 24 * 60 * 60

DEFAULT_POWER_SUPPLY_DIR = "/sys/class/power_supply/battery"
DEFAULT_SHUTDOWN_PROPERTY = "shutdown.voltage_avg"
_VALID_SINKS = {"http", "log"}

# Environment variable -> (section, key). Environment always wins over the file.
_ENV_KEYS: dict[str, tuple[str | None, str]] = {
    "BATTERY_RESISTANCE_PATH": ("metrics", "resistance_path"),
    "BATTERY_OCV_PATH": ("metrics", "ocv_path"),
    "BATTERY_AVG_RESISTANCE_PATH": ("metrics", "avg_resistance_path"),
    "BATTERY_SAMPLE_PERIOD_S": ("metrics", "sample_period_s"),
    "BATTERY_UPLOAD_PERIOD_S": ("metrics", "upload_period_s"),
    "BATTERY_VOLTAGE_AVG_PATH": ("shutdown", "voltage_avg_path"),
    "BATTERY_SHUTDOWN_PROPERTY": ("shutdown", "persist_property"),
    "BATTERY_POWER_SUPPLY_DIR": (None, "power_supply_dir"),
    "BATTERY_AGENT_TICK_INTERVAL_S": (None, "tick_interval_s"),
    "BATTERY_AGENT_SINK": (None, "sink"),
    "BATTERY_AGENT_API_URL": (None, "api_url"),
    "BATTERY_AGENT_DEVICE_TOKEN": (None, "device_token"),
    "BATTERY_AGENT_STORE_PATH": (None, "store_path"),
}


class ConfigError(ValueError):
    """Invalid battery agent configuration."""


@dataclass(frozen=True)
class MetricsLoggerConfig:
    resistance_path: str
    ocv_path: str
    avg_resistance_path: str = ""
    sample_period_s: int = TEN_MINUTES_S
    upload_period_s: int = ONE_DAY_S

    def __post_init__(self) -> None:
        if self.sample_period_s <= 0:
            raise ConfigError("sample_period_s must be > 0")
        if self.upload_period_s <= 0:
            raise ConfigError("upload_period_s must be > 0")
        # A shorter upload period would make max_samples 0 and flush every tick.
        if self.upload_period_s < self.sample_period_s:
            raise ConfigError("upload_period_s must be >= sample_period_s")

    @property
    def max_samples(self) -> int:
        # Truncates when upload_period_s is not a multiple of sample_period_s.
        return self.upload_period_s // self.sample_period_s


@dataclass(frozen=True)
class ShutdownMetricsConfig:
    voltage_avg_path: str
    persist_property: str = DEFAULT_SHUTDOWN_PROPERTY


@dataclass(frozen=True)
class AgentConfig:
    metrics: MetricsLoggerConfig
    shutdown: ShutdownMetricsConfig
    power_supply_dir: str = DEFAULT_POWER_SUPPLY_DIR
    tick_interval_s: int = 60
    sink: str = "log"
    api_url: str = "http://localhost:8082"
    device_token: str = ""
    store_path: str = "./battery_agent_props.json"
    origin: str = field(default="env defaults", compare=False)


def load_agent_config_from_env() -> AgentConfig:
    config_path = os.getenv("BATTERY_AGENT_CONFIG_PATH")

    raw: dict[str, Any] = {}
    origin = "env defaults"
    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise ConfigError(f"BATTERY_AGENT_CONFIG_PATH does not exist: {path}")
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"failed to parse agent config at {path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"agent config at {path} must be a YAML object")
        raw = dict(loaded)
        origin = str(path)

    for env_name, (section, key) in _ENV_KEYS.items():
        value = os.getenv(env_name)
        if value is None:
            continue
        if section is None:
            raw[key] = value
            continue
        nested = raw.get(section)
        nested = dict(nested) if isinstance(nested, dict) else {}
        nested[key] = value
        raw[section] = nested

    return parse_agent_config(raw, origin=origin)


def parse_agent_config(raw: Mapping[str, Any], *, origin: str) -> AgentConfig:
    power_supply_dir = _optional_str(raw, "power_supply_dir", origin=origin) or DEFAULT_POWER_SUPPLY_DIR

    metrics_raw = _section(raw, "metrics", origin=origin)
    shutdown_raw = _section(raw, "shutdown", origin=origin)

    metrics = MetricsLoggerConfig(
        resistance_path=_optional_str(metrics_raw, "resistance_path", origin=origin)
        or str(Path(power_supply_dir) / "resistance"),
        ocv_path=_optional_str(metrics_raw, "ocv_path", origin=origin)
        or str(Path(power_supply_dir) / "voltage_ocv"),
        avg_resistance_path=_optional_str(metrics_raw, "avg_resistance_path", origin=origin) or "",
        sample_period_s=_period(metrics_raw, "sample_period_s", default=TEN_MINUTES_S, origin=origin),
        upload_period_s=_period(metrics_raw, "upload_period_s", default=ONE_DAY_S, origin=origin),
    )

    shutdown = ShutdownMetricsConfig(
        voltage_avg_path=_optional_str(shutdown_raw, "voltage_avg_path", origin=origin)
        or str(Path(power_supply_dir) / "voltage_avg"),
        persist_property=_optional_str(shutdown_raw, "persist_property", origin=origin)
        or DEFAULT_SHUTDOWN_PROPERTY,
    )

    sink = (_optional_str(raw, "sink", origin=origin) or "log").lower()
    if sink not in _VALID_SINKS:
        allowed = ", ".join(sorted(_VALID_SINKS))
        raise ConfigError(f"{origin}: unsupported sink '{sink}' (allowed: {allowed})")

    return AgentConfig(
        metrics=metrics,
        shutdown=shutdown,
        power_supply_dir=power_supply_dir,
        tick_interval_s=_positive_int_or_default(raw.get("tick_interval_s"), name="tick_interval_s", default=60),
        sink=sink,
        api_url=_optional_str(raw, "api_url", origin=origin) or "http://localhost:8082",
        device_token=_optional_str(raw, "device_token", origin=origin) or "",
        store_path=_optional_str(raw, "store_path", origin=origin) or "./battery_agent_props.json",
        origin=origin,
    )


def _section(raw: Mapping[str, Any], name: str, *, origin: str) -> Mapping[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{origin}: '{name}' must be an object")
    return value


def _optional_str(raw: Mapping[str, Any], key: str, *, origin: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{origin}: '{key}' must be a string")
    return value.strip() or None


def _period(raw: Mapping[str, Any], key: str, *, default: int, origin: str) -> int:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{origin}: '{key}' must be a positive integer")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError as exc:
            raise ConfigError(f"{origin}: '{key}' must be a positive integer") from exc
    if not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{origin}: '{key}' must be a positive integer")
    return value


def _positive_int_or_default(value: Any, *, name: str, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError:
        logger.warning("invalid %s=%r; using %s", name, value, default)
        return default
    if parsed <= 0:
        logger.warning("invalid %s=%r; using %s", name, value, default)
        return default
    return parsed
