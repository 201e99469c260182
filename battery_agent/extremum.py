from __future__ import annotations

from dataclasses import dataclass, field

from .health import TRACKED_FIELDS, Field, Sample


def _zero_rows() -> dict[Field, Sample]:
    return {f: Sample.zero() for f in TRACKED_FIELDS}


@dataclass
class ExtremumTracker:
    """Keeps, per tracked field, the whole sample seen at that field's min and max.

    Resistance ignores samples taken while charging and counts its eligible
    samples separately; every other field uses the general sample counter.
    """

    min_rows: dict[Field, Sample] = field(default_factory=_zero_rows)
    max_rows: dict[Field, Sample] = field(default_factory=_zero_rows)
    sample_count: int = 0
    resistance_sample_count: int = 0

    def record_sample(self, sample: Sample, *, charging: bool) -> None:
        for f in TRACKED_FIELDS:
            if f is Field.RESISTANCE:
                if charging:
                    continue
                first = self.resistance_sample_count == 0
            else:
                first = self.sample_count == 0

            value = sample.ordered(f)
            if first or value < self.min_rows[f].ordered(f):
                self.min_rows[f] = sample
            if first or value > self.max_rows[f].ordered(f):
                self.max_rows[f] = sample

        self.sample_count += 1
        if not charging:
            self.resistance_sample_count += 1

    def reset(self) -> None:
        self.min_rows = _zero_rows()
        self.max_rows = _zero_rows()
        self.sample_count = 0
        self.resistance_sample_count = 0

    def min_row(self, f: Field) -> Sample:
        return self.min_rows[f]

    def max_row(self, f: Field) -> Sample:
        return self.max_rows[f]
