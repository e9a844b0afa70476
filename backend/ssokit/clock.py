import threading
import time
from typing import Callable


class MonotonicClock:
    """Wall-clock seconds that never go backwards within this process.

    Token claims need epoch seconds so they stay comparable across hosts, but
    a local NTP step back must not make an expired token look fresh again.
    """

    def __init__(self, source: Callable[[], float] = time.time) -> None:
        self._source = source
        self._last = 0.0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now = self._source()
            if now < self._last:
                now = self._last
            self._last = now
            return int(now)
