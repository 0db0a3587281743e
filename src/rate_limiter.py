"""
src/rate_limiter.py
====================
Token-Bucket Rate Limiter — Legal Intake Pipeline

Responsibility:
    - Gate costly endpoints (the audio pipeline) and cheap ones (reads)
      with one token bucket per logical key
    - Admit or reject immediately: try_consume() never blocks or queues

Buckets are created lazily on first use and live for the lifetime of
the RateLimiter instance. Nothing is persisted; a restart starts every
bucket full.

The limiter is an ordinary object: the HTTP layer builds one at startup
(build_rate_limiter) and receives it through a FastAPI dependency, so
tests can construct their own with a fake clock.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger("legalintake.rate_limiter")


# ---------------------------------------------------------------------------
# Bucket keys & defaults
# ---------------------------------------------------------------------------

AI_PIPELINE_BUCKET: str = "ai-pipeline"
STANDARD_BUCKET: str = "standard"


@dataclass(frozen=True)
class BucketConfig:
    """Capacity and refill period of one bucket."""

    capacity: int
    period_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(f"capacity must be positive, got {self.capacity}")
        if self.period_seconds <= 0:
            raise ValueError(f"period_seconds must be positive, got {self.period_seconds}")


# ---------------------------------------------------------------------------
# Token bucket
# ---------------------------------------------------------------------------


class TokenBucket:
    """
    Thread-safe token bucket with interval refill.

    Starts full. Each time a whole ``period_seconds`` has elapsed since the
    last refill the bucket is topped back up to ``capacity`` in one step,
    so no more than ``capacity`` requests are admitted inside one period.
    """

    def __init__(
        self,
        config: BucketConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._config = config
        self._clock = clock
        self._tokens = config.capacity
        self._last_refill = clock()

    @property
    def config(self) -> BucketConfig:
        return self._config

    def _refill(self) -> None:
        """Refill once at least one whole period has elapsed. Caller holds the lock."""
        now = self._clock()
        periods = int((now - self._last_refill) // self._config.period_seconds)
        if periods >= 1:
            self._tokens = self._config.capacity
            # Whole periods only; window boundaries stay fixed
            self._last_refill += periods * self._config.period_seconds

    def try_consume(self, tokens: int = 1) -> bool:
        """Take ``tokens`` if available. Returns False immediately otherwise."""
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def available_tokens(self) -> int:
        with self._lock:
            self._refill()
            return self._tokens


# ---------------------------------------------------------------------------
# Keyed limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """
    Map of bucket key → TokenBucket, created lazily.

    Keys without an explicit configuration use ``default_config``.
    """

    def __init__(
        self,
        configs: Optional[dict[str, BucketConfig]] = None,
        default_config: BucketConfig = BucketConfig(capacity=100),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._configs = dict(configs or {})
        self._default_config = default_config
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def _bucket(self, key: str) -> TokenBucket:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                config = self._configs.get(key, self._default_config)
                bucket = TokenBucket(config, clock=self._clock)
                self._buckets[key] = bucket
                logger.debug(
                    "Created bucket '%s' (%d tokens / %.0fs).",
                    key, config.capacity, config.period_seconds,
                )
            return bucket

    def try_consume(self, key: str, tokens: int = 1) -> bool:
        """
        Consume from the bucket for ``key``.

        Returns:
            True if admitted, False if the bucket is exhausted.
        """
        admitted = self._bucket(key).try_consume(tokens)
        if not admitted:
            logger.warning("Rate limit exceeded for bucket '%s'.", key)
        return admitted

    def available_tokens(self, key: str) -> int:
        return self._bucket(key).available_tokens()


def build_rate_limiter(clock: Callable[[], float] = time.monotonic) -> RateLimiter:
    """
    Build the application limiter from the environment.

    RATE_LIMIT_AI_PER_MINUTE        (default 5)   — ai-pipeline bucket
    RATE_LIMIT_STANDARD_PER_MINUTE  (default 100) — standard bucket and
                                                   any unknown key
    """
    ai_per_minute = int(os.getenv("RATE_LIMIT_AI_PER_MINUTE", "5"))
    standard_per_minute = int(os.getenv("RATE_LIMIT_STANDARD_PER_MINUTE", "100"))

    standard = BucketConfig(capacity=standard_per_minute)
    return RateLimiter(
        configs={
            AI_PIPELINE_BUCKET: BucketConfig(capacity=ai_per_minute),
            STANDARD_BUCKET: standard,
        },
        default_config=standard,
        clock=clock,
    )
