"""Millisecond wall-clock time stamps with monotonic-clock conversion."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Union

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def monotonic_ms() -> int:
    """Current monotonic clock reading in milliseconds."""
    return time.monotonic_ns() // 1_000_000


def str_to_timestamp(time_str: str) -> int:
    """Parse a local time string in ``%Y-%m-%d %H:%M:%S`` form to epoch seconds."""
    return int(time.mktime(time.strptime(time_str, TIME_FORMAT)))


def timestamp_to_str(timestamp: int) -> str:
    """Format epoch seconds as a local ``%Y-%m-%d %H:%M:%S`` string."""
    return time.strftime(TIME_FORMAT, time.localtime(timestamp))


@dataclass(order=True)
class TimeStamp:
    """A point in wall-clock time with millisecond resolution."""

    mill_seconds: int = 0

    @property
    def seconds(self) -> int:
        return int(self.mill_seconds / 1000)

    def to_string(self) -> str:
        """Local time as ``YYYY-MM-DD HH:MM:SS``."""
        return timestamp_to_str(self.seconds)

    def __str__(self) -> str:
        return self.to_string()

    def from_string(self, date_str: str) -> None:
        """Set this time stamp from a ``%Y-%m-%d %H:%M:%S`` local time string."""
        self.mill_seconds = str_to_timestamp(date_str) * 1000

    def to_monotonic(self) -> int:
        """The monotonic clock reading that corresponds to this time stamp."""
        return self.mill_seconds - (now_ms() - monotonic_ms())

    def add_time(self, delta: Union[int, "TimeStamp"]) -> "TimeStamp":
        self.mill_seconds += _delta_ms(delta)
        return self

    def sub_time(self, delta: Union[int, "TimeStamp"]) -> "TimeStamp":
        self.mill_seconds -= _delta_ms(delta)
        return self

    @classmethod
    def now(cls) -> "TimeStamp":
        return cls(now_ms())

    @classmethod
    def from_monotonic(cls, ms: int) -> "TimeStamp":
        """The wall-clock time stamp for a monotonic clock reading."""
        return cls(ms + now_ms() - monotonic_ms())


def _delta_ms(delta: Union[int, TimeStamp]) -> int:
    if isinstance(delta, TimeStamp):
        return delta.mill_seconds
    return int(delta)