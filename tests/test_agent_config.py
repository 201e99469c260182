from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from battery_agent.config import (
    DEFAULT_SHUTDOWN_PROPERTY,
    ConfigError,
    MetricsLoggerConfig,
    load_agent_config_from_env,
    parse_agent_config,
)

_ENV_NAMES = (
    "BATTERY_AGENT_CONFIG_PATH",
    "BATTERY_RESISTANCE_PATH",
    "BATTERY_OCV_PATH",
    "BATTERY_AVG_RESISTANCE_PATH",
    "BATTERY_SAMPLE_PERIOD_S",
    "BATTERY_UPLOAD_PERIOD_S",
    "BATTERY_VOLTAGE_AVG_PATH",
    "BATTERY_SHUTDOWN_PROPERTY",
    "BATTERY_POWER_SUPPLY_DIR",
    "BATTERY_AGENT_TICK_INTERVAL_S",
    "BATTERY_AGENT_SINK",
    "BATTERY_AGENT_API_URL",
    "BATTERY_AGENT_DEVICE_TOKEN",
    "BATTERY_AGENT_STORE_PATH",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


def test_defaults_derive_paths_from_power_supply_dir() -> None:
    cfg = load_agent_config_from_env()

    assert cfg.metrics.resistance_path == "/sys/class/power_supply/battery/resistance"
    assert cfg.metrics.ocv_path == "/sys/class/power_supply/battery/voltage_ocv"
    assert cfg.metrics.avg_resistance_path == ""
    assert cfg.metrics.sample_period_s == 600
    assert cfg.metrics.upload_period_s == 86_400
    assert cfg.metrics.max_samples == 144
    assert cfg.shutdown.voltage_avg_path == "/sys/class/power_supply/battery/voltage_avg"
    assert cfg.shutdown.persist_property == DEFAULT_SHUTDOWN_PROPERTY
    assert cfg.sink == "log"


def test_yaml_file_with_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "agent.yaml"
    _write_yaml(
        config_path,
        """
        power_supply_dir: /sys/class/power_supply/maxfg
        sink: http
        api_url: http://api.local:8082
        metrics:
          avg_resistance_path: /sys/class/power_supply/maxfg/resistance_avg
          sample_period_s: 60
          upload_period_s: 600
        shutdown:
          persist_property: vendor.shutdown.voltage
        """,
    )
    monkeypatch.setenv("BATTERY_AGENT_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("BATTERY_SAMPLE_PERIOD_S", "120")

    cfg = load_agent_config_from_env()

    assert cfg.origin == str(config_path)
    assert cfg.sink == "http"
    assert cfg.api_url == "http://api.local:8082"
    assert cfg.metrics.resistance_path == "/sys/class/power_supply/maxfg/resistance"
    assert cfg.metrics.avg_resistance_path == "/sys/class/power_supply/maxfg/resistance_avg"
    assert cfg.metrics.sample_period_s == 120
    assert cfg.metrics.max_samples == 5
    assert cfg.shutdown.persist_property == "vendor.shutdown.voltage"


def test_missing_config_file_fails_fast(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BATTERY_AGENT_CONFIG_PATH", str(tmp_path / "missing.yaml"))

    with pytest.raises(ConfigError, match="does not exist"):
        load_agent_config_from_env()


def test_non_object_yaml_is_rejected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "list.yaml"
    _write_yaml(config_path, "- a\n- b")
    monkeypatch.setenv("BATTERY_AGENT_CONFIG_PATH", str(config_path))

    with pytest.raises(ConfigError, match="YAML object"):
        load_agent_config_from_env()


@pytest.mark.parametrize("value", ["0", "-5", "ten", "1.5"])
def test_invalid_periods_are_rejected(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("BATTERY_UPLOAD_PERIOD_S", value)

    with pytest.raises(ConfigError, match="upload_period_s"):
        load_agent_config_from_env()


def test_unknown_sink_is_rejected() -> None:
    with pytest.raises(ConfigError, match="unsupported sink"):
        parse_agent_config({"sink": "carrier-pigeon"}, origin="test")


def test_invalid_tick_interval_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BATTERY_AGENT_TICK_INTERVAL_S", "soon")

    assert load_agent_config_from_env().tick_interval_s == 60


def test_metrics_config_rejects_zero_sample_period() -> None:
    with pytest.raises(ConfigError):
        MetricsLoggerConfig(resistance_path="r", ocv_path="o", sample_period_s=0)


def test_upload_period_shorter_than_sample_period_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BATTERY_SAMPLE_PERIOD_S", "600")
    monkeypatch.setenv("BATTERY_UPLOAD_PERIOD_S", "300")

    with pytest.raises(ConfigError, match="upload_period_s must be >= sample_period_s"):
        load_agent_config_from_env()

    assert MetricsLoggerConfig(
        resistance_path="r", ocv_path="o", sample_period_s=600, upload_period_s=600
    ).max_samples == 1
