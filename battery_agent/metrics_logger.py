from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .config import MetricsLoggerConfig
from .extremum import ExtremumTracker
from .health import TRACKED_FIELDS, Field, HealthInfo, Sample
from .sink import BatteryHealthSnapshot, MetricSink, SnapshotType
from .sources import FileScalarSource, ScalarSource

logger = logging.getLogger("battery_agent.metrics")

ClockFn = Callable[[], float]

# (min, max) snapshot types per reportable field. Open-circuit voltage is
# tracked but only ever travels as a passenger value.
SNAPSHOT_TYPES: dict[Field, tuple[SnapshotType, SnapshotType]] = {
    Field.CURRENT: (SnapshotType.MIN_CURRENT, SnapshotType.MAX_CURRENT),
    Field.VOLTAGE: (SnapshotType.MIN_VOLTAGE, SnapshotType.MAX_VOLTAGE),
    Field.TEMPERATURE: (SnapshotType.MIN_TEMP, SnapshotType.MAX_TEMP),
    Field.STATE_OF_CHARGE: (SnapshotType.MIN_BATT_LEVEL, SnapshotType.MAX_BATT_LEVEL),
    Field.RESISTANCE: (SnapshotType.MIN_RESISTANCE, SnapshotType.MAX_RESISTANCE),
}


def boottime_s() -> float:
    """Seconds since boot, including time spent suspended where the OS exposes it."""

    clock_id = getattr(time, "CLOCK_BOOTTIME", None)
    if clock_id is None:
        return time.monotonic()
    return time.clock_gettime(clock_id)


@dataclass
class SchedulerState:
    last_sample_time: int | None = None
    last_upload_time: int = 0


class Sampler:
    """Feeds the tracker at most once per sample period."""

    def __init__(
        self,
        tracker: ExtremumTracker,
        state: SchedulerState,
        *,
        resistance_source: ScalarSource,
        ocv_source: ScalarSource,
        sample_period_s: int,
    ) -> None:
        self.tracker = tracker
        self.state = state
        self.resistance_source = resistance_source
        self.ocv_source = ocv_source
        self.sample_period_s = sample_period_s

    def record_if_due(self, now: int, info: HealthInfo) -> bool:
        last = self.state.last_sample_time
        if last is not None and now - last < self.sample_period_s:
            return False

        logger.info("recording a sample at time %s", now)
        sample = Sample.from_health(
            info,
            time_s=now,
            resistance=self.resistance_source.read(),
            open_circuit_voltage=self.ocv_source.read(),
        )
        self.tracker.record_sample(sample, charging=info.charging)
        self.state.last_sample_time = now
        return True


class UploadScheduler:
    """Flushes accumulated extremes when the upload period or sample budget runs out."""

    def __init__(
        self,
        tracker: ExtremumTracker,
        state: SchedulerState,
        *,
        sink: MetricSink,
        upload_period_s: int,
        max_samples: int,
        avg_resistance_source: ScalarSource | None = None,
    ) -> None:
        self.tracker = tracker
        self.state = state
        self.sink = sink
        self.upload_period_s = upload_period_s
        self.max_samples = max_samples
        self.avg_resistance_source = avg_resistance_source

    def due(self, now: int) -> bool:
        if self.state.last_sample_time is None:
            return False
        return (
            now - self.state.last_upload_time > self.upload_period_s
            or self.tracker.sample_count >= self.max_samples
        )

    def tick(self, now: int) -> bool:
        if not self.due(now):
            return False
        return self.flush(now)

    def flush(self, now: int) -> bool:
        logger.info("uploading metrics at time %s w/ %s samples", now, self.tracker.sample_count)

        if not self.sink.connect():
            logger.error("unable to connect to metric sink; keeping %s samples", self.tracker.sample_count)
            return False

        results: list[bool] = []
        for f in TRACKED_FIELDS:
            types = SNAPSHOT_TYPES.get(f)
            if types is None:
                continue
            if f is Field.RESISTANCE and self.tracker.resistance_sample_count == 0:
                continue
            results.extend(self._upload_outliers(f, types))

        avg_result = self._upload_average_resistance()
        if avg_result is not None:
            results.append(avg_result)

        if results and not any(results):
            logger.error("metric sink rejected every snapshot; keeping %s samples", self.tracker.sample_count)
            return False
        if not all(results):
            logger.warning("metric sink rejected %s of %s snapshots", results.count(False), len(results))

        self.tracker.reset()
        self.state.last_upload_time = now
        logger.info("finished uploading metrics")
        return True

    def _upload_outliers(self, f: Field, types: tuple[SnapshotType, SnapshotType]) -> list[bool]:
        min_type, max_type = types
        min_row = self.tracker.min_row(f)
        max_row = self.tracker.max_row(f)
        logger.info("min-%s %s", f.value, dict(min_row.as_dict()))
        logger.info("max-%s %s", f.value, dict(max_row.as_dict()))
        return [
            self.sink.report_snapshot(BatteryHealthSnapshot.from_sample(min_type, min_row)),
            self.sink.report_snapshot(BatteryHealthSnapshot.from_sample(max_type, max_row)),
        ]

    def _upload_average_resistance(self) -> bool | None:
        """Post the average resistance; None when nothing was posted."""
        if self.avg_resistance_source is None:
            logger.debug("average battery resistance source not configured")
            return None

        avg = self.avg_resistance_source.read()
        if avg is None:
            logger.error("can't read average battery resistance; skipping")
            return None

        return self.sink.report_snapshot(
            BatteryHealthSnapshot(snapshot_type=SnapshotType.AVG_RESISTANCE, resistance_mohm=avg)
        )


class BatteryMetricsLogger:
    """Down-samples health ticks into daily min/max battery snapshots."""

    def __init__(
        self,
        config: MetricsLoggerConfig,
        *,
        sink: MetricSink,
        resistance_source: ScalarSource,
        ocv_source: ScalarSource,
        avg_resistance_source: ScalarSource | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        self.config = config
        self._clock = clock or boottime_s
        self.tracker = ExtremumTracker()
        self.state = SchedulerState()
        self.sampler = Sampler(
            self.tracker,
            self.state,
            resistance_source=resistance_source,
            ocv_source=ocv_source,
            sample_period_s=config.sample_period_s,
        )
        self.scheduler = UploadScheduler(
            self.tracker,
            self.state,
            sink=sink,
            upload_period_s=config.upload_period_s,
            max_samples=config.max_samples,
            avg_resistance_source=avg_resistance_source,
        )

    @classmethod
    def from_config(
        cls, config: MetricsLoggerConfig, *, sink: MetricSink, clock: ClockFn | None = None
    ) -> BatteryMetricsLogger:
        avg_source = None
        if config.avg_resistance_path:
            avg_source = FileScalarSource(Path(config.avg_resistance_path), name="average resistance")
        return cls(
            config,
            sink=sink,
            resistance_source=FileScalarSource(Path(config.resistance_path), name="battery resistance"),
            ocv_source=FileScalarSource(Path(config.ocv_path), name="open-circuit voltage"),
            avg_resistance_source=avg_source,
            clock=clock,
        )

    @property
    def max_samples(self) -> int:
        return self.scheduler.max_samples

    def log_battery_properties(self, info: HealthInfo, *, now: int | None = None) -> bool:
        """Handle one health tick. Returns True when the tick flushed metrics."""

        if now is None:
            now = int(self._clock())
        self.sampler.record_if_due(now, info)
        return self.scheduler.tick(now)
