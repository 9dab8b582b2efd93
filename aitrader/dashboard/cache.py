"""In-process TTL cache for dashboard payloads."""

import threading
import time
from typing import Any, Callable, Dict, Tuple


class PayloadCache:
    """Memoise payload builders by key for a fixed number of seconds."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get_or_build(self, key: str, builder: Callable[[], Any]) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry[0] > now:
                return entry[1]

        value = builder()
        if self.ttl_seconds > 0:
            with self._lock:
                self._entries[key] = (self._clock() + self.ttl_seconds, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
