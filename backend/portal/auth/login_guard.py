"""In-process failed-login throttle keyed by email + client IP.

This is brute-force damping only; it is unrelated to ``account_locked``,
which an administrator sets and which survives restarts.
"""

from collections import deque
from datetime import datetime, timedelta

MAX_FAILURES = 5
WINDOW_SECONDS = 15 * 60
LOCK_SECONDS = 15 * 60


class LoginGuard:
    def __init__(
        self,
        *,
        max_failures: int = MAX_FAILURES,
        window_seconds: int = WINDOW_SECONDS,
        lock_seconds: int = LOCK_SECONDS,
    ) -> None:
        self.max_failures = max_failures
        self.window = timedelta(seconds=window_seconds)
        self.lock = timedelta(seconds=lock_seconds)
        self._failures: dict[str, deque] = {}
        self._locked_until: dict[str, datetime] = {}

    def _prune(self, key: str, now: datetime) -> None:
        q = self._failures.get(key, deque())
        cutoff = now - self.window
        while q and q[0] < cutoff:
            q.popleft()
        if not q:
            self._failures.pop(key, None)

    def _prune_all(self, now: datetime) -> None:
        for key in list(self._failures):
            self._prune(key, now)
        for key, locked_until in list(self._locked_until.items()):
            if locked_until <= now:
                del self._locked_until[key]

    def is_locked(self, key: str) -> datetime | None:
        now = datetime.utcnow()
        locked_until = self._locked_until.get(key)
        if not locked_until:
            return None
        if locked_until <= now:
            self._locked_until.pop(key, None)
            return None
        return locked_until

    def register_failure(self, key: str) -> datetime | None:
        now = datetime.utcnow()
        self._prune_all(now)
        q = self._failures.get(key, deque())
        q.append(now)

        if len(q) >= self.max_failures:
            locked_until = now + self.lock
            self._locked_until[key] = locked_until
            self._failures.pop(key, None)
            return locked_until

        self._failures[key] = q
        return None

    def clear(self, key: str) -> None:
        self._failures.pop(key, None)
        self._locked_until.pop(key, None)

    def reset(self) -> None:
        self._failures.clear()
        self._locked_until.clear()


login_guard = LoginGuard()
