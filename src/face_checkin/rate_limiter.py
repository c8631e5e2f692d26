from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List

Clock = Callable[[], float]


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class KeyedLocks:
    """One lock per key, dropped from the registry once nobody holds or waits on it.

    The registry lock is only held while looking up or releasing an entry.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._entries: Dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._entries)


class RateLimiter:
    """Per-user sliding-window attempt counter."""

    def __init__(
        self,
        max_attempts: int = 6,
        window_sec: float = 60.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_sec = window_sec
        self._clock = clock
        self._attempts: Dict[str, List[float]] = {}
        self._locks = KeyedLocks()

    def _in_window(self, user_id: str, now: float) -> List[float]:
        return [
            ts for ts in self._attempts.get(user_id, []) if now - ts < self.window_sec
        ]

    def _store(self, user_id: str, attempts: List[float]) -> None:
        if attempts:
            self._attempts[user_id] = attempts
        else:
            self._attempts.pop(user_id, None)

    def is_allowed(self, user_id: str) -> bool:
        with self._locks.hold(user_id):
            now = self._clock()
            valid = self._in_window(user_id, now)
            if len(valid) >= self.max_attempts:
                # Still prune on rejection.
                self._store(user_id, valid)
                return False
            valid.append(now)
            self._store(user_id, valid)
            return True

    def remaining(self, user_id: str) -> int:
        with self._locks.hold(user_id):
            valid = self._in_window(user_id, self._clock())
        return max(0, self.max_attempts - len(valid))

    def reset(self, user_id: str) -> None:
        with self._locks.hold(user_id):
            self._attempts.pop(user_id, None)

    def sweep(self) -> int:
        """Drop users whose attempts have all left the window."""
        removed = 0
        for user_id in list(self._attempts.keys()):
            with self._locks.hold(user_id):
                valid = self._in_window(user_id, self._clock())
                if not valid and user_id in self._attempts:
                    del self._attempts[user_id]
                    removed += 1
        return removed
