from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Protocol

import requests

from .health import READ_FAILED, Reading, Sample

logger = logging.getLogger("battery_agent.sink")


class SnapshotType(IntEnum):
    UNKNOWN = 0
    MIN_TEMP = 1
    MAX_TEMP = 2
    MIN_RESISTANCE = 3
    MAX_RESISTANCE = 4
    MIN_VOLTAGE = 5
    MAX_VOLTAGE = 6
    MIN_CURRENT = 7
    MAX_CURRENT = 8
    MIN_BATT_LEVEL = 9
    MAX_BATT_LEVEL = 10
    AVG_RESISTANCE = 11


def _wire(value: Reading) -> int:
    return READ_FAILED if value is None else int(value)


@dataclass(frozen=True)
class BatteryHealthSnapshot:
    snapshot_type: SnapshotType
    temperature_deci_c: Reading = 0
    voltage_mv: Reading = 0
    current_ua: Reading = 0
    open_circuit_voltage_mv: Reading = 0
    resistance_mohm: Reading = 0
    level_pct: Reading = 0

    @classmethod
    def from_sample(cls, snapshot_type: SnapshotType, sample: Sample) -> BatteryHealthSnapshot:
        return cls(
            snapshot_type=snapshot_type,
            temperature_deci_c=sample.temperature,
            voltage_mv=sample.voltage,
            current_ua=sample.current,
            open_circuit_voltage_mv=sample.open_circuit_voltage,
            resistance_mohm=sample.resistance,
            level_pct=sample.state_of_charge,
        )

    def metrics(self) -> dict[str, Any]:
        return {
            "battery_snapshot_type": self.snapshot_type.name.lower(),
            "battery_temperature_deci_c": _wire(self.temperature_deci_c),
            "battery_voltage_mv": _wire(self.voltage_mv),
            "battery_current_ua": _wire(self.current_ua),
            "battery_ocv_mv": _wire(self.open_circuit_voltage_mv),
            "battery_resistance_mohm": _wire(self.resistance_mohm),
            "battery_level_pct": _wire(self.level_pct),
        }


class MetricSink(Protocol):
    def connect(self) -> bool: ...

    def report_snapshot(self, snapshot: BatteryHealthSnapshot) -> bool: ...

    def report_shutdown(self, voltage_mv: int) -> bool: ...


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_point(metrics: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "message_id": uuid.uuid4().hex,
        "ts": utcnow_iso(),
        "metrics": metrics,
    }


@dataclass
class HttpMetricSink:
    """Posts records as ingest points to a telemetry API."""

    api_url: str
    token: str
    timeout_s: float = 5.0
    session: requests.Session = field(default_factory=requests.Session)

    def _url(self, path: str) -> str:
        return f"{self.api_url.rstrip('/')}{path}"

    def connect(self) -> bool:
        try:
            resp = self.session.get(self._url("/readyz"), timeout=self.timeout_s)
        except requests.RequestException as exc:
            logger.error("unable to reach metric sink at %s: %r", self.api_url, exc)
            return False
        if not 200 <= resp.status_code < 300:
            logger.error("metric sink not ready: %s %s", resp.status_code, resp.text[:200])
            return False
        return True

    def _post(self, metrics: Dict[str, Any]) -> bool:
        point = make_point(metrics)
        try:
            resp = self.session.post(
                self._url("/api/v1/ingest"),
                headers={"Authorization": f"Bearer {self.token}"},
                json={"points": [point]},
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            logger.error("metric post failed: %r", exc)
            return False
        if 200 <= resp.status_code < 300:
            return True
        logger.error("metric post rejected: %s %s", resp.status_code, resp.text[:200])
        return False

    def report_snapshot(self, snapshot: BatteryHealthSnapshot) -> bool:
        return self._post(snapshot.metrics())

    def report_shutdown(self, voltage_mv: int) -> bool:
        return self._post({"battery_caused_shutdown_voltage_mv": int(voltage_mv)})


class LogMetricSink:
    """Writes records to the log only; used when no API is configured."""

    def connect(self) -> bool:
        return True

    def report_snapshot(self, snapshot: BatteryHealthSnapshot) -> bool:
        logger.info("battery health snapshot", extra={"fields": snapshot.metrics()})
        return True

    def report_shutdown(self, voltage_mv: int) -> bool:
        logger.info(
            "battery caused shutdown",
            extra={"fields": {"battery_caused_shutdown_voltage_mv": int(voltage_mv)}},
        )
        return True
