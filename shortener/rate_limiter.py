"""Token bucket rate limiter with idle-client eviction.

Each client key accumulates tokens at ``capacity / window`` per second up to
``capacity``. Every request consumes one token; with no full token left the
request is rejected along with a hint of how long until one is available.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class ClientBucket:
    """Token state for a single client key."""

    tokens: float
    last_refill_at: float
    last_seen_at: float


class Decision(NamedTuple):
    """Outcome of a single admission check."""

    allowed: bool
    remaining: int
    retry_after: float


class RateLimiter:
    """Per-client token bucket rate limiter.

    One lock guards the whole client mapping, including every bucket's
    fields. The per-request critical section is constant time; only
    ``sweep`` holds the lock for a full scan.

    Args:
        capacity: Maximum tokens per client (burst size).
        window: Seconds over which ``capacity`` requests are allowed.
        clock: Returns the current time in seconds. Defaults to
            ``time.monotonic``.
        cleanup_interval: How often the sweeper should run. Defaults to
            ``window``.
        eviction_threshold: Idle seconds after which a client is dropped.
            Defaults to ``2 * window``.
    """

    def __init__(
        self,
        capacity: int,
        window: float,
        clock: Optional[Clock] = None,
        cleanup_interval: Optional[float] = None,
        eviction_threshold: Optional[float] = None,
    ):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity!r}")
        if window <= 0:
            raise ValueError(f"window must be positive, got {window!r}")

        self.capacity = capacity
        self.window = window
        self.rate = capacity / window  # tokens per second
        self.cleanup_interval = cleanup_interval or window
        self.eviction_threshold = (
            eviction_threshold if eviction_threshold is not None else 2 * window
        )
        self.clock = clock or time.monotonic
        self.buckets: Dict[str, ClientBucket] = {}
        self.lock = threading.Lock()

    @classmethod
    def from_config(cls, config, clock: Optional[Clock] = None) -> "RateLimiter":
        """Build a limiter from a :class:`shortener.config.Config`."""
        return cls(
            capacity=config.rate_limit_requests,
            window=config.rate_limit_window,
            clock=clock,
            cleanup_interval=config.cleanup_interval,
        )

    def allow(self, key: str) -> Decision:
        """Refill the client's bucket and try to consume one token.

        Args:
            key: Client identifier (usually an IP address).

        Returns:
            A Decision. ``remaining`` is the floored token balance after the
            decision; ``retry_after`` is 0 when allowed, otherwise the seconds
            until one full token is available.
        """
        with self.lock:
            now = self.clock()

            bucket = self.buckets.get(key)
            if bucket is None:
                bucket = ClientBucket(
                    tokens=float(self.capacity),
                    last_refill_at=now,
                    last_seen_at=now,
                )
                self.buckets[key] = bucket

            elapsed = now - bucket.last_refill_at
            if elapsed > 0:
                bucket.tokens = min(
                    float(self.capacity), bucket.tokens + elapsed * self.rate
                )
                bucket.last_refill_at = now

            bucket.last_seen_at = now

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return Decision(True, math.floor(bucket.tokens), 0.0)

            # rate > 0 is guaranteed by the constructor
            retry_after = (1.0 - bucket.tokens) / self.rate
            return Decision(False, math.floor(bucket.tokens), retry_after)

    def sweep(self) -> int:
        """Drop buckets whose client has been idle past the eviction threshold.

        Returns:
            Number of buckets evicted.
        """
        with self.lock:
            threshold = self.clock() - self.eviction_threshold
            stale = [k for k, b in self.buckets.items() if b.last_seen_at < threshold]
            for k in stale:
                del self.buckets[k]
            remaining = len(self.buckets)

        if stale:
            logger.debug("Evicted %d idle clients, %d remain", len(stale), remaining)
        return len(stale)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget rate limit state.

        Args:
            key: If provided, reset only this client. If None, reset all.
        """
        with self.lock:
            if key is None:
                self.buckets.clear()
            else:
                self.buckets.pop(key, None)

    def peek(self, key: str) -> Optional[ClientBucket]:
        """Return a snapshot of a client's bucket, or None if not tracked."""
        with self.lock:
            bucket = self.buckets.get(key)
            return replace(bucket) if bucket is not None else None

    @property
    def bucket_count(self) -> int:
        with self.lock:
            return len(self.buckets)


class ExpirySweeper:
    """Background thread that periodically calls ``RateLimiter.sweep``.

    Typical usage::

        sweeper = ExpirySweeper(limiter)
        sweeper.start()
        # ... later ...
        sweeper.stop()
    """

    def __init__(
        self,
        limiter: RateLimiter,
        interval: Optional[float] = None,
        name: str = "rate-limit-sweeper",
    ):
        self.limiter = limiter
        self.interval = interval or limiter.cleanup_interval
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start sweeping in a daemon thread. No-op if already running."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Sweeper '%s' started (every %.1fs)", self.name, self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Sweeper '%s' stopped", self.name)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.limiter.sweep()
            except Exception:
                logger.exception("Sweep failed in '%s'", self.name)
