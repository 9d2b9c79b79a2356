"""
Cooldown rate limiter for side effects (snapshots, audio, tilt).
"""

import threading
import time


class RateLimiter:
    """
    Minimum-interval gate.

    ``try_fire(now)`` succeeds (and records ``now``) only when more than
    ``interval`` seconds have passed since the last successful fire.
    Timestamps are monotonic seconds; callers may pass their own clock
    for deterministic tests.
    """

    def __init__(self, interval: float, name: str = "cooldown"):
        self.interval = interval
        self.name = name
        self._last_fired: float | None = None
        self._lock = threading.Lock()

    @property
    def last_fired(self) -> float | None:
        return self._last_fired

    def ready(self, now: float | None = None) -> bool:
        """Check without firing."""
        now = time.monotonic() if now is None else now
        last = self._last_fired
        return last is None or (now - last) > self.interval

    def try_fire(self, now: float | None = None) -> bool:
        """Fire if the cooldown has elapsed. Returns True when fired."""
        now = time.monotonic() if now is None else now
        with self._lock:
            if self._last_fired is not None and (now - self._last_fired) <= self.interval:
                return False
            self._last_fired = now
            return True

    def mark(self, now: float | None = None) -> None:
        """Record a fire unconditionally (e.g. a manual trigger)."""
        with self._lock:
            self._last_fired = time.monotonic() if now is None else now

    def remaining(self, now: float | None = None) -> float:
        """Seconds until the next fire is allowed (0 when ready)."""
        now = time.monotonic() if now is None else now
        last = self._last_fired
        if last is None:
            return 0.0
        return max(0.0, self.interval - (now - last))

    def reset(self) -> None:
        with self._lock:
            self._last_fired = None
