from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from .errors import InvalidInterval

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def parse_time(value: str) -> time:
    hours, minutes = value.split(":")[:2]
    return time(int(hours), int(minutes))


@dataclass(frozen=True, slots=True)
class Interval:
    """Half-open ``[start, end)`` range of minutes on one calendar day."""

    day: date
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvalidInterval()
        if self.start < 0 or self.end >= MINUTES_PER_DAY:
            raise InvalidInterval("Interval must stay within a single day")

    @classmethod
    def from_times(cls, day: date, start: time, end: time) -> Interval:
        return cls(day, time_to_minutes(start), time_to_minutes(end))

    @property
    def start_time(self) -> time:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> time:
        return minutes_to_time(self.end)

    @property
    def minutes(self) -> int:
        return self.end - self.start

    def overlaps(self, other: Interval) -> bool:
        # back-to-back intervals share a boundary but do not overlap
        return self.day == other.day and self.start < other.end and other.start < self.end

    def contains(self, point: int | time) -> bool:
        if isinstance(point, time):
            point = time_to_minutes(point)
        return self.start <= point < self.end

    def duration_hours(self) -> Decimal:
        return Decimal(self.minutes) / Decimal(60)


def overlaps(a: Interval, b: Interval) -> bool:
    return a.overlaps(b)


__all__ = [
    "Interval",
    "overlaps",
    "parse_time",
    "time_to_minutes",
    "minutes_to_time",
]
