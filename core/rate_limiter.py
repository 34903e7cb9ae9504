"""
Per-client Rate Limiting.

The Roast API spends third-party quota (GitHub, the LLM provider, ElevenLabs) on
every request, so each client IP is limited to a fixed number of requests per
window (100 per 15 minutes by default). The limiter uses the token bucket
algorithm: a full bucket lets a client burst up to the whole allowance, and
tokens trickle back at `requests / window` per second.

Key Components:
- `RateLimitRule`: Requests allowed per window, with an optional burst size.
- `TokenBucket`: The bucket for one client under one rule.
- `MemoryRateLimiter`: Holds the rules and the per-client buckets in memory.

Architectural Design:
- Rules by Name: Several rules can coexist (for example a stricter one for
  TTS), and middleware picks the rule key to check against.
- Injected Clock: The time source is a callable, which keeps tests fast and
  deterministic.
- Application-owned: The limiter is created by `create_app` from the settings
  and stored on `app.state`; there is no module-level instance.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitRule:
    """Rate limit rule configuration"""

    requests: int  # Number of requests allowed
    window: int  # Time window in seconds
    burst: Optional[int] = None  # Burst capacity (defaults to requests)

    def __post_init__(self):
        if self.requests < 1 or self.window < 1:
            raise ValueError("requests and window must both be positive")
        if self.burst is None:
            self.burst = self.requests

    @property
    def refill_rate(self) -> float:
        return self.requests / self.window


@dataclass
class TokenBucket:
    """Token bucket for rate limiting"""

    capacity: int
    tokens: float
    refill_rate: float  # tokens per second
    last_refill: float

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, now: float, tokens: int = 1) -> bool:
        """Try to consume tokens from the bucket"""
        self.refill(now)
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def time_until_available(self, tokens: int = 1) -> float:
        """Get time in seconds until tokens are available"""
        if self.tokens >= tokens:
            return 0.0
        return (tokens - self.tokens) / self.refill_rate


class MemoryRateLimiter:
    """In-memory rate limiter using token bucket algorithm"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.buckets: Dict[str, TokenBucket] = {}
        self.rules: Dict[str, RateLimitRule] = {}
        self.rejected = 0
        self._clock = clock
        self._lock = threading.Lock()

    def add_rule(self, key: str, rule: RateLimitRule):
        """Add a rate limiting rule"""
        with self._lock:
            self.rules[key] = rule
            logger.info(
                f"Added rate limit rule for {key}: {rule.requests} requests per {rule.window}s"
            )

    def check_rate_limit(
        self, identifier: str, rule_key: str = "api"
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Consume one token for `identifier` under `rule_key`.

        Returns:
            A tuple of (allowed, info). `info` carries `limit`, `remaining` and
            `retry_after` (whole seconds, 0 when allowed).
        """
        with self._lock:
            rule = self.rules.get(rule_key)
            if rule is None:
                return True, {"limit": None, "remaining": None, "retry_after": 0}

            now = self._clock()
            bucket_key = f"{rule_key}:{identifier}"
            bucket = self.buckets.get(bucket_key)
            if bucket is None:
                bucket = TokenBucket(
                    capacity=rule.burst,
                    tokens=rule.burst,
                    refill_rate=rule.refill_rate,
                    last_refill=now,
                )
                self.buckets[bucket_key] = bucket

            allowed = bucket.consume(now)
            retry_after = 0 if allowed else math.ceil(bucket.time_until_available(1))

            if not allowed:
                self.rejected += 1
                logger.warning(
                    f"Rate limit exceeded for {identifier} on rule {rule_key}"
                )

            return allowed, {
                "limit": rule.requests,
                "remaining": int(bucket.tokens),
                "retry_after": retry_after,
            }

    def get_stats(self) -> Dict[str, Any]:
        """Get rate limiter statistics"""
        with self._lock:
            return {
                "total_buckets": len(self.buckets),
                "rejected": self.rejected,
                "rules": {
                    k: {"requests": v.requests, "window": v.window, "burst": v.burst}
                    for k, v in self.rules.items()
                },
            }


def create_rate_limiter(
    max_requests: int, window_seconds: int, clock: Callable[[], float] = time.monotonic
) -> MemoryRateLimiter:
    """Build the limiter used by the API with its default rule"""
    limiter = MemoryRateLimiter(clock=clock)
    limiter.add_rule("api", RateLimitRule(requests=max_requests, window=window_seconds))
    return limiter
