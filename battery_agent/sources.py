from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from .health import ChargeStatus, HealthInfo

logger = logging.getLogger("battery_agent.sources")


@runtime_checkable
class ScalarSource(Protocol):
    """Yields one integer reading, or None when the read or parse failed."""

    def read(self) -> int | None: ...


def parse_int(raw: str) -> int | None:
    try:
        return int(raw.strip())
    except ValueError:
        return None


@dataclass
class _WarnLimiter:
    interval_s: float
    monotonic: Callable[[], float] = time.monotonic
    _last: dict[str, float] = field(default_factory=dict, init=False, repr=False)

    def warn(self, key: str, message: str, *args: object) -> None:
        now = self.monotonic()
        last = self._last.get(key)
        if last is None or (now - last) >= self.interval_s:
            logger.warning(message, *args)
            self._last[key] = now


@dataclass
class FileScalarSource:
    """Integer read from a text file such as a sysfs attribute."""

    path: Path
    name: str = ""
    warning_interval_s: float = 300.0
    monotonic: Callable[[], float] = time.monotonic
    _limiter: _WarnLimiter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if not self.name:
            self.name = self.path.name
        self._limiter = _WarnLimiter(self.warning_interval_s, self.monotonic)

    def read(self) -> int | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            self._limiter.warn("read", "can't read %s from %s: %s", self.name, self.path, exc)
            return None

        value = parse_int(raw)
        if value is None:
            self._limiter.warn("parse", "can't parse %s value %r", self.name, raw.strip())
        return value


@dataclass
class PowerSupplySource:
    """Builds health ticks from a Linux power_supply class directory."""

    root: Path
    warning_interval_s: float = 300.0
    monotonic: Callable[[], float] = time.monotonic
    _limiter: _WarnLimiter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self._limiter = _WarnLimiter(self.warning_interval_s, self.monotonic)

    def _read_attr(self, name: str) -> str:
        return (self.root / name).read_text(encoding="utf-8").strip()

    def _read_int(self, name: str) -> int:
        raw = self._read_attr(name)
        value = parse_int(raw)
        if value is None:
            raise ValueError(f"{name}={raw!r} is not an integer")
        return value

    def read_health(self) -> HealthInfo | None:
        try:
            # voltage_now is reported in microvolts.
            voltage_mv = self._read_int("voltage_now") // 1000
            info = HealthInfo(
                current_ua=self._read_int("current_now"),
                voltage_mv=voltage_mv,
                temperature_deci_c=self._read_int("temp"),
                level_pct=self._read_int("capacity"),
                status=ChargeStatus.parse(self._read_attr("status")),
            )
        except (OSError, ValueError) as exc:
            self._limiter.warn("health", "power supply read failed at %s: %s", self.root, exc)
            return None
        return info
