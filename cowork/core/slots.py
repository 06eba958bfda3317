"""Free slot enumeration for a single workspace and day.

A day is cut into back-to-back slots of the workspace's minimum booking
duration, starting at the opening time. A slot is free when it overlaps
no active booking; a slot that is only partly covered by a booking is
left out entirely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Iterable, Iterator

from .intervals import Interval, time_to_minutes


@dataclass(frozen=True, slots=True)
class SlotGrid:
    day: date
    opens: int
    closes: int
    granularity: int
    booked: tuple[Interval, ...] = ()

    def __post_init__(self) -> None:
        if self.granularity <= 0:
            raise ValueError("Slot granularity must be positive")

    @classmethod
    def for_day(
        cls,
        day: date,
        opens: time,
        closes: time,
        granularity_minutes: int,
        booked: Iterable[Interval] = (),
    ) -> SlotGrid:
        ordered = tuple(sorted(booked, key=lambda interval: (interval.start, interval.end)))
        return cls(day, time_to_minutes(opens), time_to_minutes(closes), granularity_minutes, ordered)

    def __iter__(self) -> Iterator[Interval]:
        start = self.opens
        while start + self.granularity <= self.closes:
            candidate = Interval(self.day, start, start + self.granularity)
            if not self._conflicts(candidate):
                yield candidate
            start += self.granularity

    def _conflicts(self, interval: Interval) -> bool:
        return any(interval.overlaps(existing) for existing in self.booked)

    def is_aligned(self, interval: Interval) -> bool:
        if interval.day != self.day:
            return False
        if interval.start < self.opens or interval.end > self.closes:
            return False
        return (
            (interval.start - self.opens) % self.granularity == 0
            and (interval.end - self.opens) % self.granularity == 0
        )

    def is_bookable(self, interval: Interval) -> bool:
        """True when ``interval`` is a free slot or a run of adjacent free slots."""

        return self.is_aligned(interval) and not self._conflicts(interval)

    def total_free_hours(self) -> Decimal:
        return sum((slot.duration_hours() for slot in self), Decimal(0))


def generate_free_slots(
    day: date,
    opens: time,
    closes: time,
    granularity_minutes: int,
    booked: Iterable[Interval] = (),
) -> list[Interval]:
    return list(SlotGrid.for_day(day, opens, closes, granularity_minutes, booked))


__all__ = ["SlotGrid", "generate_free_slots"]
