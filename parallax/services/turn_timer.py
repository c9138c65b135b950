"""Per-turn countdown with a one-shot expiration callback.

The timer tracks a deadline against an injectable monotonic clock and asks a
``Scheduler`` to wake it at that deadline. Every countdown carries a
generation number: ``reset`` / ``stop`` bump it, so a wake-up scheduled for an
earlier countdown is ignored even if cancelling it raced with it firing.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from parallax.config import settings
from parallax.utils.scheduling import Handle, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)


def validate_duration_ms(duration_ms: int) -> int:
    if isinstance(duration_ms, bool) or not isinstance(duration_ms, int):
        raise ValueError(f"Turn duration must be an integer number of milliseconds, got {duration_ms!r}")
    if not settings.TURN_TIMER_MIN_MS <= duration_ms <= settings.TURN_TIMER_MAX_MS:
        raise ValueError(
            f"Turn duration {duration_ms}ms outside "
            f"[{settings.TURN_TIMER_MIN_MS}, {settings.TURN_TIMER_MAX_MS}]"
        )
    return duration_ms


class TurnTimer:
    def __init__(
        self,
        duration_ms: int = settings.TURN_TIMER_DEFAULT_MS,
        on_expire: Optional[Callable[[], None]] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[Scheduler] = None,
        name: str = "turn",
    ) -> None:
        self.duration_ms = validate_duration_ms(duration_ms)
        self.name = name
        self._clock = clock
        self._scheduler = scheduler or ThreadingScheduler()
        self._callbacks: List[Callable[[], None]] = [on_expire] if on_expire else []
        self._lock = threading.RLock()

        self._generation = 0
        self._deadline: Optional[float] = None
        self._paused_remaining_ms: Optional[int] = None
        self._expired = False
        self._handle: Optional[Handle] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._deadline is not None and not self._expired

    @property
    def paused(self) -> bool:
        return self._paused_remaining_ms is not None

    @property
    def is_expired(self) -> bool:
        return self._expired

    @property
    def remaining_ms(self) -> int:
        with self._lock:
            if self._expired:
                return 0
            if self._paused_remaining_ms is not None:
                return self._paused_remaining_ms
            if self._deadline is None:
                return self.duration_ms
            return max(0, int(round((self._deadline - self._clock()) * 1000)))

    @property
    def progress(self) -> float:
        """1.0 at the start of a turn, 0.0 at expiry."""
        return max(0.0, min(1.0, self.remaining_ms / self.duration_ms))

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def on_expire(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def start(self, duration_ms: Optional[int] = None) -> None:
        """Begin a fresh countdown. A new ``duration_ms`` becomes the duration for later resets too."""
        with self._lock:
            if duration_ms is not None:
                self.duration_ms = validate_duration_ms(duration_ms)
            self._arm(self.duration_ms)
        logger.debug("[TIMER] %s started (%dms)", self.name, self.duration_ms)

    def reset(self) -> None:
        """Cancel the pending expiration and restart from the full duration."""
        with self._lock:
            self._arm(self.duration_ms)
        logger.debug("[TIMER] %s reset (%dms)", self.name, self.duration_ms)

    def pause(self) -> None:
        with self._lock:
            if not self.running or self.paused:
                return
            remaining = self.remaining_ms
            self._cancel_pending()
            self._paused_remaining_ms = remaining
            self._deadline = None

    def resume(self) -> None:
        with self._lock:
            if not self.paused:
                return
            remaining = self._paused_remaining_ms
            self._paused_remaining_ms = None
            self._arm(remaining)

    def stop(self) -> None:
        with self._lock:
            self._cancel_pending()
            self._generation += 1
            self._deadline = None
            self._paused_remaining_ms = None
            self._expired = False

    def check(self) -> bool:
        """Cooperative poll: fire the expiration if the deadline has passed. Returns ``is_expired``."""
        with self._lock:
            generation = self._generation
            due = self.running and not self.paused and self.remaining_ms == 0
        if due:
            self._fire(generation)
        return self._expired

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _arm(self, remaining_ms: int) -> None:
        self._cancel_pending()
        self._generation += 1
        self._expired = False
        self._paused_remaining_ms = None
        self._deadline = self._clock() + remaining_ms / 1000.0
        generation = self._generation
        self._handle = self._scheduler.call_later(remaining_ms / 1000.0, lambda: self._wake(generation))

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _wake(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self.paused or self._deadline is None:
                return
            # Woken early (coarse scheduler): re-arm for the remainder.
            remaining = self.remaining_ms
            if remaining > 0:
                self._handle = self._scheduler.call_later(remaining / 1000.0, lambda: self._wake(generation))
                return
        self._fire(generation)

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._expired:
                return
            self._expired = True
            self._handle = None
            callbacks = list(self._callbacks)
        logger.info("[TIMER] %s expired", self.name)
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("[TIMER] %s expiration callback failed", self.name)


class TurnTimerRegistry:
    """At most one timer per session; repeated requests for a session reuse its timer."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._clock = clock
        self._scheduler = scheduler or ThreadingScheduler()
        self._timers: Dict[str, TurnTimer] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[TurnTimer]:
        with self._lock:
            return self._timers.get(session_id)

    def get_or_create(
        self,
        session_id: str,
        duration_ms: int = settings.TURN_TIMER_DEFAULT_MS,
        on_expire: Optional[Callable[[], None]] = None,
    ) -> TurnTimer:
        with self._lock:
            timer = self._timers.get(session_id)
            if timer is None:
                timer = TurnTimer(
                    duration_ms,
                    on_expire,
                    clock=self._clock,
                    scheduler=self._scheduler,
                    name=f"session {session_id}",
                )
                self._timers[session_id] = timer
            return timer

    def stop(self, session_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(session_id, None)
        if timer is not None:
            timer.stop()

    def stop_all(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.stop()
