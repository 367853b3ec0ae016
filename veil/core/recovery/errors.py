"""
Error Classification

Defines the error taxonomy for the wallet core.
Errors are classified as recoverable (can retry against another endpoint or
with a fresh transaction) or unrecoverable (surface to the caller).
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    NETWORK = "network"           # Network/connectivity issues
    RATE_LIMIT = "rate_limit"     # Endpoint rate limits
    TIMEOUT = "timeout"           # Request timed out
    BLOCKHASH_EXPIRED = "blockhash_expired"  # Transaction validity window closed
    EXHAUSTED = "exhausted"       # Every retry consumed
    INDEXING = "indexing"         # Eventual-consistency window exceeded
    CONFIGURATION = "configuration"  # Bad setup
    VALIDATION = "validation"     # Caller input error
    SESSION = "session"           # No bound wallet session
    SDK = "sdk"                   # Opaque privacy SDK failure
    UNKNOWN = "unknown"           # Unclassified error


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    endpoint: Optional[str] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RecoverableError(Exception):
    """
    Base class for errors that can be retried.

    These errors are typically transient:
    - Network issues
    - Rate limits
    - Timeouts
    - Expired blockhashes
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.retry_after = retry_after
        self.context = context or ErrorContext(category=category, recoverable=True)


class UnrecoverableError(Exception):
    """
    Base class for errors that must not be retried locally.

    These errors are surfaced to the caller with enough context to render a
    precise message.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)


# Recoverable errors
class RpcTransient(RecoverableError):
    """Retryable network, timeout or rate-limit error from an endpoint."""

    def __init__(
        self,
        message: str = "Transient RPC error",
        category: ErrorCategory = ErrorCategory.NETWORK,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            category=category,
            context=ErrorContext(
                category=category,
                recoverable=True,
                endpoint=endpoint,
                suggested_action="Retry against a different endpoint",
                details={"status_code": status_code} if status_code else {},
            ),
        )
        self.endpoint = endpoint
        self.status_code = status_code


class BlockhashExpired(RpcTransient):
    """The blockhash fetched before proving expired before submission."""

    def __init__(self, message: str = "Blockhash expired", endpoint: Optional[str] = None):
        super().__init__(message, category=ErrorCategory.BLOCKHASH_EXPIRED, endpoint=endpoint)
        self.context.suggested_action = "Regenerate the transaction with a fresh blockhash"


# Unrecoverable errors
class InvalidConfiguration(UnrecoverableError):
    """Bad setup (e.g. an empty endpoint pool)."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            context=ErrorContext(
                category=ErrorCategory.CONFIGURATION,
                recoverable=False,
                suggested_action="Fix the configuration and restart",
            ),
        )


class InvalidAddress(UnrecoverableError):
    """Malformed address supplied by the caller."""

    def __init__(self, address: str, network: Optional[str] = None):
        where = f" for {network}" if network else ""
        super().__init__(
            f"Invalid address{where}: {address!r}",
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                suggested_action="Check the address and try again",
                details={"address": address, "network": network},
            ),
        )
        self.address = address
        self.network = network


class RpcExhausted(UnrecoverableError):
    """Every attempt of a resilient RPC call failed."""

    def __init__(
        self,
        last_error: BaseException,
        attempts: int,
        endpoint: Optional[str] = None,
        network: Optional[str] = None,
    ):
        label = f"{network} " if network else ""
        super().__init__(
            f"{label}RPC call failed after {attempts} attempt(s): {last_error}",
            category=ErrorCategory.EXHAUSTED,
            context=ErrorContext(
                category=ErrorCategory.EXHAUSTED,
                recoverable=False,
                endpoint=endpoint,
                suggested_action="Check network connectivity or try again later",
                details={"attempts": attempts, "network": network},
            ),
        )
        self.last_error = last_error
        self.attempts = attempts
        self.endpoint = endpoint


class IndexingTimeout(UnrecoverableError):
    """Deposited funds did not become visible within the polling window.

    Funds are not lost; they are only not yet visible through the SDK read
    path. ``deposit_tx`` identifies the landed deposit so the user can
    withdraw manually later.
    """

    def __init__(
        self,
        observed_balance: Decimal,
        expected_balance: Decimal,
        deposit_tx: Optional[str] = None,
        polls: int = 0,
    ):
        super().__init__(
            "UTXOs are not yet available after deposit. "
            f"Current private balance: {observed_balance:.4f} SOL, "
            f"Expected: {expected_balance:.4f} SOL. "
            "Please wait a moment and try withdrawing manually, "
            "or the transaction may still be processing.",
            category=ErrorCategory.INDEXING,
            context=ErrorContext(
                category=ErrorCategory.INDEXING,
                recoverable=False,
                tx_hash=deposit_tx,
                suggested_action="Wait for the indexer and withdraw manually",
                details={
                    "observed_balance": str(observed_balance),
                    "expected_balance": str(expected_balance),
                    "polls": polls,
                },
            ),
        )
        self.observed_balance = observed_balance
        self.expected_balance = expected_balance
        self.deposit_tx = deposit_tx
        self.polls = polls


class NotInitialized(UnrecoverableError):
    """No wallet session is bound to the orchestrator."""

    def __init__(self, message: str = "Privacy service not initialized. Call bind() first."):
        super().__init__(
            message,
            category=ErrorCategory.SESSION,
            context=ErrorContext(
                category=ErrorCategory.SESSION,
                recoverable=False,
                suggested_action="Unlock or select a wallet first",
            ),
        )


class SdkFailure(UnrecoverableError):
    """Opaque failure surfaced from the privacy SDK.

    The SDK message is kept verbatim; the original exception is chained as
    ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        attempts: int = 1,
        deposit_tx: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.SDK,
            context=ErrorContext(
                category=ErrorCategory.SDK,
                recoverable=False,
                tx_hash=deposit_tx,
                details={"operation": operation, "attempts": attempts},
            ),
        )
        self.operation = operation
        self.attempts = attempts
        self.deposit_tx = deposit_tx


_RATE_LIMIT_PATTERNS = (
    "rate limit",
    "too many requests",
    "access forbidden",
)
_RATE_LIMIT_STATUS_RE = re.compile(r"\b(429|403)\b")

_TIMEOUT_PATTERNS = ("timeout", "timed out", "etimedout")

_NETWORK_PATTERNS = (
    "econnrefused",
    "connection refused",
    "econnreset",
    "connection reset",
    "enotfound",
    "getaddrinfo",
    "name or service not known",
    "nodename nor servname",
    "dns",
    "network",
)
_SERVER_STATUS_RE = re.compile(r"\b(500|502|503)\b")


def _unwrap(error: BaseException) -> BaseException:
    if isinstance(error, RpcExhausted):
        return error.last_error
    return error


def is_rate_limit_error(error: BaseException) -> bool:
    """Return True if the error looks like an endpoint rate limit."""
    error = _unwrap(error)
    if isinstance(error, RecoverableError) and error.category == ErrorCategory.RATE_LIMIT:
        return True
    message = str(error).lower()
    return bool(_RATE_LIMIT_STATUS_RE.search(message)) or any(p in message for p in _RATE_LIMIT_PATTERNS)


def is_blockhash_expired(error: BaseException) -> bool:
    """Return True if a transaction failed because its blockhash window closed."""
    error = _unwrap(error)
    if isinstance(error, BlockhashExpired):
        return True
    message = str(error).lower()
    return (
        "block height exceeded" in message
        or "has expired" in message
        or ("signature" in message and "expired" in message)
        or ("deposit relay failed" in message and "expired" in message)
    )


def classify_error(error: BaseException) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Generic exceptions are classified from their type and message. Unlike a
    catch-all retry, anything that does not match a known transient pattern
    is reported as unrecoverable so malformed requests and business-logic
    rejections fail fast.
    """
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error.context

    message = str(error).lower()

    if is_rate_limit_error(error):
        return ErrorContext(
            category=ErrorCategory.RATE_LIMIT,
            recoverable=True,
            suggested_action="Back off and switch endpoint",
        )

    if isinstance(error, (httpx.TimeoutException, TimeoutError)) or any(
        p in message for p in _TIMEOUT_PATTERNS
    ):
        return ErrorContext(
            category=ErrorCategory.TIMEOUT,
            recoverable=True,
            suggested_action="Retry against a different endpoint",
        )

    if (
        isinstance(error, (httpx.NetworkError, ConnectionError))
        or _SERVER_STATUS_RE.search(message)
        or any(p in message for p in _NETWORK_PATTERNS)
    ):
        return ErrorContext(
            category=ErrorCategory.NETWORK,
            recoverable=True,
            suggested_action="Check network connectivity",
        )

    return ErrorContext(
        category=ErrorCategory.UNKNOWN,
        recoverable=False,
        suggested_action="Review the request",
    )


def is_retryable(error: BaseException) -> bool:
    return classify_error(error).recoverable


_USER_MESSAGES = {
    ErrorCategory.NETWORK: "Network error. Please check your internet connection and try again.",
    ErrorCategory.TIMEOUT: "Network error. Please check your internet connection and try again.",
    ErrorCategory.RATE_LIMIT: "RPC endpoint error. The system will automatically retry with a different endpoint.",
    ErrorCategory.EXHAUSTED: "All RPC endpoints failed. Please try again in a moment.",
    ErrorCategory.BLOCKHASH_EXPIRED: "The transaction expired before it reached the network. Please try again.",
    ErrorCategory.VALIDATION: "Invalid address. Please check the recipient address and try again.",
    ErrorCategory.SESSION: "Wallet is not ready. Please unlock your wallet and try again.",
    ErrorCategory.CONFIGURATION: "The wallet is misconfigured. Please check your settings.",
}


def user_message(error: BaseException) -> str:
    """Map any error to a sentence suitable for display."""
    if isinstance(error, (IndexingTimeout, SdkFailure)):
        return error.message

    message = str(error).lower()
    if "insufficient" in message:
        return "Insufficient balance. Please check your wallet balance and try again."

    context = classify_error(error)
    fallback = "An unexpected error occurred. Please try again."
    return _USER_MESSAGES.get(context.category, fallback)
