"""A simple timer queue ordered by expiration, driven by an explicit clock."""

from __future__ import annotations

import bisect
import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple, Union

from .time_stamp import TimeStamp, monotonic_ms
from .timer import Timer, TimerCallback

logger = logging.getLogger(__name__)

_Key = Tuple[int, int]


def _key(timer: Timer) -> _Key:
    return (timer.expiration, timer.sequence)


class TimerQueue:
    """Timers sorted by expiration point; fires them as late as it is asked to.

    Times are monotonic milliseconds. ``clock`` supplies the current time when
    :meth:`handle_expired` is called without one.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock or monotonic_ms
        self._lock = threading.RLock()
        self._order: List[_Key] = []
        self._active: Dict[int, Timer] = {}
        self._canceling: Dict[int, Timer] = {}
        self._running: Dict[int, Timer] = {}
        self._calling_expired = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._active)

    def add_timer(
        self,
        callback: TimerCallback,
        when: Union[int, TimeStamp],
        interval: int = 0,
    ) -> Timer:
        """Schedule ``callback`` at ``when``, repeating every ``interval`` ms if positive."""
        expiration = when.to_monotonic() if isinstance(when, TimeStamp) else int(when)
        timer = Timer(callback, expiration, interval)
        with self._lock:
            self._insert(timer)
        return timer

    def cancel(self, timer: Timer) -> bool:
        """Cancel ``timer``; returns whether it was pending or marked for cancellation."""
        if timer is None:
            raise ValueError("timer is null")
        with self._lock:
            active = self._active.pop(timer.sequence, None)
            if active is None:
                if self._calling_expired and (
                    _key(timer) in self._order_set() or timer.sequence in self._running
                ):
                    self._canceling[timer.sequence] = timer
                    logger.info("timer %d will cancel", timer.sequence)
                    return True
                logger.warning("timer %d has been cancelled or has run", timer.sequence)
                return False
            self._order.remove(_key(active))
            logger.info("timer cancel success [%d]", timer.sequence)
            return True

    def next_expiration(self) -> Optional[int]:
        """The earliest pending expiration point, or None if nothing is pending."""
        with self._lock:
            return self._order[0][0] if self._order else None

    def handle_expired(self, now: Optional[int] = None) -> List[Timer]:
        """Run every timer due at ``now`` and reschedule repeating ones; returns those run."""
        with self._lock:
            if now is None:
                now = self._clock()
            expired = self._get_expired(now)
            self._calling_expired = True
            self._canceling.clear()
            try:
                for timer in expired:
                    timer.run()
            finally:
                self._calling_expired = False
                self._reset(expired, now)
            return expired

    def _order_set(self) -> set:
        return set(self._order)

    def _insert(self, timer: Timer) -> bool:
        key = _key(timer)
        earliest = not self._order or key[0] < self._order[0][0]
        self._active[timer.sequence] = timer
        bisect.insort(self._order, key)
        logger.debug(
            "insert timer %d, expiration %d, earliest %s",
            timer.sequence,
            timer.expiration,
            earliest,
        )
        return earliest

    def _get_expired(self, now: int) -> List[Timer]:
        if not self._order:
            logger.warning("timers is empty")
            return []
        if now < self._order[0][0]:
            logger.warning(
                "triggered early, now[%d] < earliest[%d]", now, self._order[0][0]
            )
            return []
        end = bisect.bisect_left(self._order, (now, 2**63 - 2))
        due_keys = self._order[:end]
        del self._order[:end]
        self._running.clear()
        expired = []
        for _, sequence in due_keys:
            timer = self._active.pop(sequence)
            self._running[sequence] = timer
            expired.append(timer)
        return expired

    def _reset(self, expired: List[Timer], now: int) -> None:
        for timer in expired:
            if timer.repeated and timer.sequence not in self._canceling:
                timer.restart(now)
                self._insert(timer)