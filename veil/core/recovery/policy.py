"""
Retry Policies

One configurable policy abstraction parameterized by a classifier, a backoff
function and an attempt cap. The two behaviours found across the RPC
clients are kept as distinct named presets:

- ``solana_retry_policy``: every failure is retryable.
- ``evm_retry_policy``: failures are classified; only transient network,
  timeout and rate-limit errors are retried.

``immediate_retry_policy`` switches endpoint without waiting and is meant
for latency-sensitive reads only, never for funds-moving calls.
"""

import random
from dataclasses import dataclass, replace
from typing import Callable, Optional

from .errors import is_rate_limit_error, is_retryable

Classifier = Callable[[BaseException], bool]
BackoffFn = Callable[["RetryPolicy", int, BaseException, random.Random], float]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 3.0
DEFAULT_RATE_LIMIT_MULTIPLIER = 3.0
DEFAULT_MAX_JITTER_SECONDS = 1.0


def retry_everything(error: BaseException) -> bool:
    return True


def exponential_backoff(
    policy: "RetryPolicy",
    attempt: int,
    error: BaseException,
    rng: random.Random,
) -> float:
    """``base × (rate-limit multiplier) × 2^attempt + uniform jitter``."""
    base = policy.base_delay_seconds
    if is_rate_limit_error(error):
        base *= policy.rate_limit_multiplier
    jitter = rng.uniform(0, policy.max_jitter_seconds) if policy.max_jitter_seconds > 0 else 0.0
    return base * (2 ** attempt) + jitter


def fixed_backoff(
    policy: "RetryPolicy",
    attempt: int,
    error: BaseException,
    rng: random.Random,
) -> float:
    return policy.base_delay_seconds


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration owned by one RPC client."""

    name: str = "custom"
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    rate_limit_multiplier: float = DEFAULT_RATE_LIMIT_MULTIPLIER
    max_jitter_seconds: float = DEFAULT_MAX_JITTER_SECONDS
    classifier: Classifier = retry_everything
    backoff: BackoffFn = exponential_backoff

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")

    def should_retry(self, error: BaseException) -> bool:
        return self.classifier(error)

    def get_delay(self, attempt: int, error: BaseException, rng: Optional[random.Random] = None) -> float:
        """Delay before the attempt following ``attempt`` (0-based)."""
        return max(0.0, self.backoff(self, attempt, error, rng or random.Random()))

    def with_overrides(self, **changes) -> "RetryPolicy":
        return replace(self, **changes)


def solana_retry_policy(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
) -> RetryPolicy:
    """Treat every failure as retryable, backing off harder on rate limits."""
    return RetryPolicy(
        name="solana",
        max_attempts=max_attempts,
        base_delay_seconds=base_delay_seconds,
        classifier=retry_everything,
    )


def evm_retry_policy(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
) -> RetryPolicy:
    """Retry classified transient failures only; everything else fails fast."""
    return RetryPolicy(
        name="evm",
        max_attempts=max_attempts,
        base_delay_seconds=base_delay_seconds,
        classifier=is_retryable,
    )


def immediate_retry_policy(max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> RetryPolicy:
    """Switch endpoint and retry with no delay."""
    return RetryPolicy(
        name="immediate",
        max_attempts=max_attempts,
        base_delay_seconds=0.0,
        max_jitter_seconds=0.0,
        classifier=retry_everything,
        backoff=fixed_backoff,
    )
