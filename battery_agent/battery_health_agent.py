from __future__ import annotations

import argparse
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .config import AgentConfig, ConfigError, load_agent_config_from_env
from .metrics_logger import BatteryMetricsLogger
from .observability import configure_logging
from .shutdown import LowBatteryShutdownMetrics
from .sink import HttpMetricSink, LogMetricSink, MetricSink
from .sources import PowerSupplySource
from .store import JsonPropertyStore

logger = logging.getLogger("battery_agent")


def build_sink(config: AgentConfig) -> MetricSink:
    if config.sink == "http":
        return HttpMetricSink(api_url=config.api_url, token=config.device_token)
    return LogMetricSink()


@dataclass
class BatteryHealthAgent:
    """Drives both battery pipelines from the same health tick."""

    health_source: PowerSupplySource
    metrics_logger: BatteryMetricsLogger
    shutdown_metrics: LowBatteryShutdownMetrics

    @classmethod
    def from_config(cls, config: AgentConfig) -> BatteryHealthAgent:
        sink = build_sink(config)
        store = JsonPropertyStore(path=Path(config.store_path))
        return cls(
            health_source=PowerSupplySource(Path(config.power_supply_dir)),
            metrics_logger=BatteryMetricsLogger.from_config(config.metrics, sink=sink),
            shutdown_metrics=LowBatteryShutdownMetrics.from_config(config.shutdown, store=store, sink=sink),
        )

    def tick(self) -> bool:
        info = self.health_source.read_health()
        if info is None:
            return False
        self.metrics_logger.log_battery_properties(info)
        self.shutdown_metrics.log_shutdown_voltage(info)
        return True


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Battery health metrics agent")
    parser.add_argument("--once", action="store_true", help="run a single health tick and exit")
    args = parser.parse_args(argv)

    # Load repo-level .env (if present), then package-local overrides.
    load_dotenv()
    load_dotenv(Path(__file__).resolve().parent / ".env")

    level_name = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(
        level=getattr(logging, level_name.upper(), logging.INFO),
        log_format=os.getenv("LOG_FORMAT", "text"),
    )

    try:
        config = load_agent_config_from_env()
    except ConfigError as exc:
        raise SystemExit(f"[battery-agent] invalid config: {exc}") from exc

    agent = BatteryHealthAgent.from_config(config)
    logger.info(
        "battery agent config=%s power_supply=%s sink=%s store=%s sample=%ss upload=%ss max_samples=%s",
        config.origin,
        config.power_supply_dir,
        config.sink,
        config.store_path,
        config.metrics.sample_period_s,
        config.metrics.upload_period_s,
        config.metrics.max_samples,
    )

    while True:
        if not agent.tick():
            logger.warning("health tick skipped: power supply unreadable")
        if args.once:
            return
        time.sleep(max(1.0, float(config.tick_interval_s)))


if __name__ == "__main__":
    main()
