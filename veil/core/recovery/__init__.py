"""
Error Recovery Module

Provides the error taxonomy, retry policies and bounded polling used for
resilient execution of RPC and privacy SDK operations.
"""

from .errors import (
    ErrorCategory,
    ErrorContext,
    RecoverableError,
    UnrecoverableError,
    RpcTransient,
    BlockhashExpired,
    InvalidConfiguration,
    InvalidAddress,
    RpcExhausted,
    IndexingTimeout,
    NotInitialized,
    SdkFailure,
    classify_error,
    is_blockhash_expired,
    is_rate_limit_error,
    is_retryable,
    user_message,
)
from .policy import (
    RetryPolicy,
    evm_retry_policy,
    exponential_backoff,
    fixed_backoff,
    immediate_retry_policy,
    retry_everything,
    solana_retry_policy,
)
from .polling import PollOutcome, PollSchedule, poll_until

__all__ = [
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "RecoverableError",
    "UnrecoverableError",
    "RpcTransient",
    "BlockhashExpired",
    "InvalidConfiguration",
    "InvalidAddress",
    "RpcExhausted",
    "IndexingTimeout",
    "NotInitialized",
    "SdkFailure",
    "classify_error",
    "is_blockhash_expired",
    "is_rate_limit_error",
    "is_retryable",
    "user_message",
    # Policies
    "RetryPolicy",
    "evm_retry_policy",
    "exponential_backoff",
    "fixed_backoff",
    "immediate_retry_policy",
    "retry_everything",
    "solana_retry_policy",
    # Polling
    "PollOutcome",
    "PollSchedule",
    "poll_until",
]
