"""Token bucket rate limiter for cross-reference model calls."""

import threading
import time
from typing import Callable, Optional

from loguru import logger


class TokenBucket:
    """
    Token bucket algorithm implementation for rate limiting.

    Tokens refill continuously at a fixed rate up to capacity. A request
    consumes tokens; when too few are left it is rejected, never queued.

    Attributes:
        capacity: Maximum number of tokens the bucket can hold
        refill_rate: Tokens added per second
        tokens: Current number of tokens available
    """

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize token bucket with capacity and refill rate.

        Args:
            capacity: Maximum tokens (e.g., 15 for 15 RPM)
            refill_rate: Tokens per second (e.g., 0.25 = 15 per minute)
            clock: Monotonic time source (injectable for tests)
        """
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self._clock = clock
        self._last_refill = clock()
        self.lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def available(self) -> float:
        """Current token count after refill (thread-safe)."""
        with self.lock:
            self._refill()
            return self.tokens

    def acquire(self, tokens: float = 1) -> bool:
        """
        Attempt to acquire tokens from the bucket (thread-safe).

        Returns:
            True if tokens were acquired, False if insufficient tokens available
        """
        with self.lock:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return True
            return False


class RateLimiter:
    """
    Requests-per-minute and tokens-per-minute limiter for the model API.

    Both buckets must have room for a request to proceed; tokens are only
    consumed when both do.

    Attributes:
        rpm_bucket: Token bucket for request rate limiting
        tpm_bucket: Token bucket for token rate limiting
    """

    def __init__(
        self,
        max_rpm: Optional[int] = None,
        max_tpm: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter with RPM and TPM constraints.

        Args:
            max_rpm: Maximum requests per minute (defaults to settings)
            max_tpm: Maximum tokens per minute (defaults to settings)
            clock: Monotonic time source shared by both buckets
        """
        from grantflow.config.settings import settings

        rpm = max_rpm or settings.max_rpm
        tpm = max_tpm or settings.max_tpm

        self.rpm_bucket = TokenBucket(capacity=rpm, refill_rate=rpm / 60.0, clock=clock)
        self.tpm_bucket = TokenBucket(capacity=tpm, refill_rate=tpm / 60.0, clock=clock)

        self.logger = logger.bind(component="RateLimiter")
        self.logger.debug(f"RateLimiter initialized: {rpm} RPM, {tpm:,} TPM")

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough token estimate (4 characters per token) for prompt budgeting."""
        return max(1, len(text) // 4)

    def can_proceed(self, token_count: int) -> bool:
        """
        Check and consume capacity for one request of token_count tokens.

        Args:
            token_count: Number of tokens the request will consume

        Returns:
            True if request can proceed, False if rate limited
        """
        if self.rpm_bucket.available() < 1:
            self.logger.warning("RPM limit reached, request throttled")
            return False

        if self.tpm_bucket.available() < token_count:
            self.logger.warning(
                f"TPM limit reached, request throttled "
                f"(need {token_count}, have {self.tpm_bucket.tokens:.0f})"
            )
            return False

        self.rpm_bucket.acquire(1)
        self.tpm_bucket.acquire(token_count)
        return True
