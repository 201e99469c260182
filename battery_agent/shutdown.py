from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from .config import ShutdownMetricsConfig
from .health import ChargeStatus, HealthInfo
from .sink import MetricSink
from .sources import FileScalarSource, ScalarSource
from .store import PersistedStore

logger = logging.getLogger("battery_agent.shutdown")

DELIMITER = ","


class ShutdownCaptureState(str, Enum):
    IDLE = "idle"
    CAPTURED = "captured"
    DRAINED = "drained"


class LowBatteryShutdownMetrics:
    """Persists the averaged voltage right before a low-battery shutdown.

    Values are appended to a durable property so they survive the reboot the
    shutdown causes; any later non-shutdown tick uploads and clears them.
    """

    def __init__(
        self,
        config: ShutdownMetricsConfig,
        *,
        voltage_source: ScalarSource,
        store: PersistedStore,
        sink: MetricSink,
    ) -> None:
        self.config = config
        self.voltage_source = voltage_source
        self.store = store
        self.sink = sink
        self.captured_this_session = False
        self.known_empty = False

    @classmethod
    def from_config(
        cls, config: ShutdownMetricsConfig, *, store: PersistedStore, sink: MetricSink
    ) -> LowBatteryShutdownMetrics:
        return cls(
            config,
            voltage_source=FileScalarSource(Path(config.voltage_avg_path), name="average voltage"),
            store=store,
            sink=sink,
        )

    @property
    def state(self) -> ShutdownCaptureState:
        if self.captured_this_session:
            return ShutdownCaptureState.CAPTURED
        if self.known_empty:
            return ShutdownCaptureState.DRAINED
        return ShutdownCaptureState.IDLE

    def log_shutdown_voltage(self, info: HealthInfo) -> None:
        if (
            not self.captured_this_session
            and info.level_pct == 0
            and info.status == ChargeStatus.DISCHARGING
        ):
            self.captured_this_session = self.save_voltage_avg()
        elif not self.known_empty:
            self.upload_voltage_avg()

    def save_voltage_avg(self) -> bool:
        voltage = self.voltage_source.read()
        if voltage is None:
            logger.error("can't read the average voltage; shutdown voltage not saved")
            return False

        contents = self.store.get(self.config.persist_property, "")
        if contents:
            contents += DELIMITER
        contents += str(voltage)

        logger.info("saving %r to %s", contents, self.config.persist_property)
        return self.store.set(self.config.persist_property, contents)

    def upload_voltage_avg(self) -> bool:
        contents = self.store.get(self.config.persist_property, "")
        logger.info("%s property contents: %r", self.config.persist_property, contents)
        if not contents:
            self.known_empty = True
            return False

        if not self.sink.connect():
            logger.error("unable to connect to metric sink; keeping saved shutdown voltages")
            return False

        unsent: list[str] = []
        for item in contents.split(DELIMITER):
            voltage = _parse_voltage(item)
            if voltage is None:
                logger.error("couldn't process voltage value %r", item)
                continue
            logger.info("uploading voltage_avg: %s", voltage)
            if not self.sink.report_shutdown(voltage):
                unsent.append(str(voltage))

        if unsent:
            logger.error("metric sink rejected %s shutdown voltages; keeping them", len(unsent))
        self.store.set(self.config.persist_property, DELIMITER.join(unsent))
        return not unsent


def _parse_voltage(item: str) -> int | None:
    try:
        value = int(item.strip())
    except ValueError:
        return None
    # Zero is never a real reading; it comes from an empty or truncated write.
    if value == 0:
        return None
    return value
