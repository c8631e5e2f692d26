from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

from .face_types import BLOCKED, RATE_LIMITED, GuardDecision
from .rate_limiter import Clock, KeyedLocks, RateLimiter

logger = logging.getLogger(__name__)


class AbuseGuard:
    """Burst detection on top of a RateLimiter, escalating to timed blocks.

    Blocks are stored as expiry timestamps and expire lazily on the next
    access for that user, or during a sweep. When a block expires the user's
    rate-limit history is cleared as well. A sweep runs from ``check_attempt``
    at most once every ``sweep_interval_sec`` so state for users who stop
    trying does not pile up.
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        burst_window_sec: float = 5.0,
        burst_limit: int = 3,
        block_duration_sec: float = 15 * 60.0,
        sweep_interval_sec: float = 60.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.rate_limiter = rate_limiter or RateLimiter(clock=clock)
        self.burst_window_sec = burst_window_sec
        self.burst_limit = burst_limit
        self.block_duration_sec = block_duration_sec
        self.sweep_interval_sec = sweep_interval_sec
        self._clock = clock
        self._recent: Dict[str, List[Tuple[float, str]]] = {}
        self._blocked_until: Dict[str, float] = {}
        self._locks = KeyedLocks()
        self._sweep_lock = threading.Lock()
        self._last_sweep = clock()

    def _expire_block(self, user_id: str, now: float) -> None:
        expiry = self._blocked_until.get(user_id)
        if expiry is not None and now >= expiry:
            del self._blocked_until[user_id]
            self.rate_limiter.reset(user_id)
            logger.info("block expired for %s", user_id)

    def _block(self, user_id: str, now: float) -> None:
        if user_id in self._blocked_until:
            return
        self._blocked_until[user_id] = now + self.block_duration_sec
        logger.warning(
            "blocking %s for %.0f seconds", user_id, self.block_duration_sec
        )

    def _rejected(self, user_id: str, now: float, reason: str) -> GuardDecision:
        retry_after = max(0.0, self._blocked_until[user_id] - now)
        return GuardDecision(
            is_spam=True, blocked=True, reason=reason, retry_after=retry_after
        )

    def _maybe_sweep(self) -> None:
        # Skip if another thread is already sweeping.
        if not self._sweep_lock.acquire(blocking=False):
            return
        try:
            if self._clock() - self._last_sweep < self.sweep_interval_sec:
                return
            self.sweep()
            self._last_sweep = self._clock()
        finally:
            self._sweep_lock.release()

    def check_attempt(self, user_id: str, action: str) -> GuardDecision:
        self._maybe_sweep()
        with self._locks.hold(user_id):
            now = self._clock()
            self._expire_block(user_id, now)

            if not self.rate_limiter.is_allowed(user_id):
                self._block(user_id, now)
                logger.warning("%s rejected for %s: too many attempts", action, user_id)
                return self._rejected(user_id, now, RATE_LIMITED)

            recent = [
                entry
                for entry in self._recent.get(user_id, [])
                if now - entry[0] < self.burst_window_sec
            ]
            burst = len(recent) >= self.burst_limit
            recent.append((now, action))
            self._recent[user_id] = recent

            if burst:
                self._block(user_id, now)
                logger.warning("%s rejected for %s: rapid attempts", action, user_id)
                return self._rejected(user_id, now, BLOCKED)

            if user_id in self._blocked_until:
                return self._rejected(user_id, now, BLOCKED)
            return GuardDecision(is_spam=False)

    def remaining_attempts(self, user_id: str) -> int:
        with self._locks.hold(user_id):
            self._expire_block(user_id, self._clock())
        return self.rate_limiter.remaining(user_id)

    def sweep(self) -> None:
        """Expire blocks and drop burst logs that have aged out."""
        now = self._clock()
        for user_id in list(self._blocked_until.keys()):
            with self._locks.hold(user_id):
                self._expire_block(user_id, now)
        for user_id in list(self._recent.keys()):
            with self._locks.hold(user_id):
                entries = self._recent.get(user_id, [])
                if all(now - ts >= self.burst_window_sec for ts, _ in entries):
                    self._recent.pop(user_id, None)
        self.rate_limiter.sweep()
