from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Mapping, TypeAlias

# Wire value for a reading that could not be obtained. Far below any physical
# value so it wins every minimum it participates in.
READ_FAILED = -2147483647

Reading: TypeAlias = int | None


class ChargeStatus(IntEnum):
    UNKNOWN = 1
    CHARGING = 2
    DISCHARGING = 3
    NOT_CHARGING = 4
    FULL = 5

    @classmethod
    def parse(cls, raw: str | None) -> ChargeStatus:
        """Map a power_supply ``status`` string ("Not charging") to a member."""

        value = (raw or "").strip().upper().replace(" ", "_")
        try:
            return cls[value]
        except KeyError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class HealthInfo:
    """One health tick as reported by the battery driver."""

    current_ua: int
    voltage_mv: int
    temperature_deci_c: int
    level_pct: int
    status: ChargeStatus

    @property
    def charging(self) -> bool:
        return self.status == ChargeStatus.CHARGING


class Field(Enum):
    TIME = "time"
    CURRENT = "current"
    VOLTAGE = "voltage"
    TEMPERATURE = "temperature"
    STATE_OF_CHARGE = "state_of_charge"
    RESISTANCE = "resistance"
    OPEN_CIRCUIT_VOLTAGE = "open_circuit_voltage"


TRACKED_FIELDS: tuple[Field, ...] = tuple(f for f in Field if f is not Field.TIME)


@dataclass(frozen=True)
class Sample:
    """Readings of every field taken at one instant.

    ``None`` marks a value whose source could not be read.
    """

    time: Reading = 0
    current: Reading = 0
    voltage: Reading = 0
    temperature: Reading = 0
    state_of_charge: Reading = 0
    resistance: Reading = 0
    open_circuit_voltage: Reading = 0

    @classmethod
    def zero(cls) -> Sample:
        return cls()

    @classmethod
    def from_health(
        cls,
        info: HealthInfo,
        *,
        time_s: int,
        resistance: Reading,
        open_circuit_voltage: Reading,
    ) -> Sample:
        return cls(
            time=time_s,
            current=info.current_ua,
            voltage=info.voltage_mv,
            temperature=info.temperature_deci_c,
            state_of_charge=info.level_pct,
            resistance=resistance,
            open_circuit_voltage=open_circuit_voltage,
        )

    def __getitem__(self, field: Field) -> Reading:
        return getattr(self, field.value)

    def ordered(self, field: Field) -> int:
        """Value used for min/max comparison; missing readings rank as READ_FAILED."""

        value = self[field]
        return READ_FAILED if value is None else value

    def as_dict(self) -> Mapping[str, Reading]:
        return {f.value: self[f] for f in Field}
