"""Delayed-callback scheduling used by the turn timer and intervention polling.

Services take a ``Scheduler`` so tests can swap in a manual one and advance
time explicitly instead of sleeping.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Handle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> Handle:
        ...


class ThreadingScheduler:
    """Runs each callback on a daemon ``threading.Timer``."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(0.0, delay_seconds), _guarded(callback))
        timer.daemon = True
        timer.start()
        return timer


def _guarded(callback: Callable[[], None]) -> Callable[[], None]:
    # Exceptions on timer threads are otherwise printed to stderr and lost.
    def run() -> None:
        try:
            callback()
        except Exception:
            logger.exception("Scheduled callback %r failed", callback)

    return run


class RepeatingTask:
    """Calls ``fn`` every ``interval_seconds`` until ``stop()``."""

    def __init__(self, interval_seconds: float, fn: Callable[[], None], scheduler: Scheduler | None = None) -> None:
        self.interval_seconds = interval_seconds
        self._fn = fn
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._handle: Handle | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._handle = self._scheduler.call_later(self.interval_seconds, self._tick)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _tick(self) -> None:
        with self._lock:
            if not self._running:
                return
        try:
            self._fn()
        finally:
            with self._lock:
                if self._running:
                    self._handle = self._scheduler.call_later(self.interval_seconds, self._tick)
