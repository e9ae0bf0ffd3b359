"""A single timer: a callback, an expiration point and an optional interval."""

from __future__ import annotations

import threading
from typing import Callable, ClassVar, Optional

TimerCallback = Callable[[], None]


class Timer:
    """A one-shot or repeating timer with a unique, increasing sequence number."""

    _lock: ClassVar[threading.Lock] = threading.Lock()
    _next_sequence: ClassVar[int] = 1

    def __init__(
        self,
        callback: Optional[TimerCallback],
        when: int,
        interval: int = 0,
    ) -> None:
        self._callback = callback
        self._expiration = when
        self._interval = interval
        self._repeated = interval > 0
        with Timer._lock:
            self.sequence = Timer._next_sequence
            Timer._next_sequence += 1

    def __repr__(self) -> str:
        return (
            f"Timer(sequence={self.sequence}, expiration={self._expiration}, "
            f"interval={self._interval})"
        )

    @property
    def expiration(self) -> int:
        return self._expiration

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def repeated(self) -> bool:
        return self._repeated

    def run(self) -> None:
        """Call the timer's callback."""
        if self._callback is None:
            raise RuntimeError("timer has no callback")
        self._callback()

    def restart(self, now: int) -> None:
        """Move the expiration one interval past ``now``, or clear it for one-shot timers."""
        self._expiration = now + self._interval if self._repeated else 0

    @classmethod
    def created_count(cls) -> int:
        """The sequence number the next timer will receive."""
        with cls._lock:
            return cls._next_sequence