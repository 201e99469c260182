from __future__ import annotations

import logging
from pathlib import Path

import pytest

from battery_agent.health import ChargeStatus, HealthInfo
from battery_agent.sources import FileScalarSource, PowerSupplySource


class _Clock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


def _write_attrs(root: Path, **attrs: str) -> None:
    root.mkdir(parents=True, exist_ok=True)
    for name, value in attrs.items():
        (root / name).write_text(value + "\n", encoding="utf-8")


def test_file_source_parses_trimmed_integer(tmp_path: Path) -> None:
    path = tmp_path / "resistance"
    path.write_text(" 142\n", encoding="utf-8")

    assert FileScalarSource(path).read() == 142


def test_file_source_missing_file_returns_none(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    source = FileScalarSource(tmp_path / "nope", name="battery resistance")

    with caplog.at_level(logging.WARNING, logger="battery_agent.sources"):
        assert source.read() is None

    assert "battery resistance" in caplog.text


def test_file_source_unparseable_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "voltage_ocv"
    path.write_text("n/a\n", encoding="utf-8")

    assert FileScalarSource(path).read() is None


def test_file_source_rate_limits_repeated_warnings(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    clock = _Clock()
    source = FileScalarSource(tmp_path / "nope", warning_interval_s=300.0, monotonic=clock)

    with caplog.at_level(logging.WARNING, logger="battery_agent.sources"):
        source.read()
        clock.t = 10.0
        source.read()
        clock.t = 400.0
        source.read()

    assert len(caplog.records) == 2


def test_power_supply_source_builds_health_info(tmp_path: Path) -> None:
    root = tmp_path / "battery"
    _write_attrs(
        root,
        current_now="-512000",
        voltage_now="3876000",
        temp="287",
        capacity="64",
        status="Not charging",
    )

    info = PowerSupplySource(root).read_health()

    assert info == HealthInfo(
        current_ua=-512_000,
        voltage_mv=3876,
        temperature_deci_c=287,
        level_pct=64,
        status=ChargeStatus.NOT_CHARGING,
    )


def test_power_supply_source_missing_attribute_returns_none(tmp_path: Path) -> None:
    root = tmp_path / "battery"
    _write_attrs(root, current_now="0", voltage_now="3800000", temp="250", status="Discharging")

    assert PowerSupplySource(root).read_health() is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Charging", ChargeStatus.CHARGING),
        ("Discharging", ChargeStatus.DISCHARGING),
        ("Full", ChargeStatus.FULL),
        ("Not charging", ChargeStatus.NOT_CHARGING),
        ("weird", ChargeStatus.UNKNOWN),
        (None, ChargeStatus.UNKNOWN),
    ],
)
def test_charge_status_parse(raw: str | None, expected: ChargeStatus) -> None:
    assert ChargeStatus.parse(raw) is expected
