"""Per-session timers: the planned IDLE refresh and the delayed reconnect."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from loguru import logger

TimerCallback = Callable[[int], None]
TimerFactory = Callable[..., Any]


@dataclass(frozen=True)
class ReconnectPolicy:
    """Delays before reconnecting.

    ``fixed`` waits ``error_delay`` after every failure. ``exponential`` doubles
    it per consecutive failure, capped at ``max_delay``. ``refresh_delay`` is
    the short pause between a planned refresh's close and the new connect.
    """

    error_delay: float = 5.0
    refresh_delay: float = 2.0
    strategy: Literal["fixed", "exponential"] = "fixed"
    max_delay: float = 300.0

    def delay_after_error(self, attempt: int) -> float:
        if self.strategy == "exponential":
            return min(self.error_delay * (2 ** max(attempt - 1, 0)), self.max_delay)
        return self.error_delay


class ReconnectScheduler:
    """Owns at most one refresh timer and one retry timer for a session.

    Scheduling either kind cancels the pending timer of the same kind first.
    Every timer gets an id, passed to its callback; ``claim`` tells the
    session whether a fired id is still the pending one or a stale leftover.
    """

    def __init__(self, timer_factory: TimerFactory = threading.Timer, name: str = "") -> None:
        self._timer_factory = timer_factory
        self._name = name
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._refresh: Optional[tuple[int, Any]] = None
        self._retry: Optional[tuple[int, Any]] = None

    def _start(self, delay: float, callback: TimerCallback) -> tuple[int, Any]:
        timer_id = next(self._ids)
        timer = self._timer_factory(delay, callback, args=(timer_id,))
        timer.daemon = True
        timer.start()
        return timer_id, timer

    def schedule_refresh(self, delay: float, callback: TimerCallback) -> int:
        with self._lock:
            if self._refresh is not None:
                self._refresh[1].cancel()
            self._refresh = self._start(delay, callback)
            logger.debug(f"[{self._name}] refresh timer #{self._refresh[0]} in {delay:.0f}s")
            return self._refresh[0]

    def schedule_retry(self, delay: float, callback: TimerCallback) -> int:
        with self._lock:
            if self._retry is not None:
                self._retry[1].cancel()
            self._retry = self._start(delay, callback)
            logger.debug(f"[{self._name}] reconnect timer #{self._retry[0]} in {delay:.1f}s")
            return self._retry[0]

    def claim(self, timer_id: int) -> bool:
        """Consume a fired timer; False when it was cancelled or replaced meanwhile."""
        with self._lock:
            if self._refresh is not None and self._refresh[0] == timer_id:
                self._refresh = None
                return True
            if self._retry is not None and self._retry[0] == timer_id:
                self._retry = None
                return True
            return False

    def cancel_all(self) -> None:
        with self._lock:
            for pending in (self._refresh, self._retry):
                if pending is not None:
                    pending[1].cancel()
            self._refresh = None
            self._retry = None

    @property
    def pending_refresh(self) -> Optional[int]:
        with self._lock:
            return self._refresh[0] if self._refresh else None

    @property
    def pending_retry(self) -> Optional[int]:
        with self._lock:
            return self._retry[0] if self._retry else None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return (self._refresh is not None) + (self._retry is not None)
