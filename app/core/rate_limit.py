from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple


@dataclass
class Bucket:
    tokens: float
    last_ts: float


class InMemoryRateLimiter:
    """
    Token bucket:
      capacity tokens; refill rate tokens/sec.

    Keyed by (subject, route_key). Subject is a user id or a client address.

    At prune_threshold buckets, creating another one first drops every
    bucket that has refilled to capacity (same state as a fresh bucket).
    """
    def __init__(
        self,
        capacity: int,
        refill_per_sec: float,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = 10000,
    ):
        self.capacity = float(capacity)
        self.refill_per_sec = float(refill_per_sec)
        self.prune_threshold = int(prune_threshold)
        self._clock = clock
        self._buckets: Dict[Tuple[str, str], Bucket] = {}
        self._lock = threading.Lock()

    def size(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _is_full(self, b: Bucket, now: float) -> bool:
        elapsed = max(0.0, now - b.last_ts)
        return b.tokens + elapsed * self.refill_per_sec >= self.capacity

    def _prune(self, now: float) -> None:
        # caller holds the lock
        idle = [k for k, b in self._buckets.items() if self._is_full(b, now)]
        for k in idle:
            del self._buckets[k]

    def allow(self, subject: str, route_key: str, cost: float = 1.0) -> bool:
        with self._lock:
            now = self._clock()
            k = (subject, route_key)
            b = self._buckets.get(k)
            if b is None:
                if len(self._buckets) >= self.prune_threshold:
                    self._prune(now)
                b = Bucket(tokens=self.capacity, last_ts=now)
                self._buckets[k] = b

            # refill
            elapsed = max(0.0, now - b.last_ts)
            b.tokens = min(self.capacity, b.tokens + elapsed * self.refill_per_sec)
            b.last_ts = now

            if b.tokens >= cost:
                b.tokens -= cost
                return True
            return False
