"""
Custom exceptions for the replication engine with structured error context.

Every exception carries a context dictionary describing where it happened
(collection, remote id, url, attempt number, ...) so that failures can be
logged and stored in the sync ledger without losing detail.

Exception Hierarchy:
    SyncException (base)
    ├── RemoteAPIError
    │   ├── AuthError               (terminal, aborts the run)
    │   ├── RateLimitedError        (throttled, halts the run as partial)
    │   ├── TransientNetworkError   (retried, then skipped per record)
    │   └── PaginationError         (page metadata missing or inconsistent)
    ├── MappingError                (per record, counted and skipped)
    ├── StoreError
    │   ├── DatabaseError           (local store unavailable, fatal)
    │   └── ReconciliationError     (single row rejected by the store)
    ├── LedgerError
    ├── FatalRunError               (anything escaping the per-record boundary)
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncException(Exception):
    """
    Base exception for all replication errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (collection, url, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that were subject to retry logic.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Rate limiting (HTTP 429)
    - Server errors (HTTP 5xx)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        attempts: int = 0
    ):
        super().__init__(message, context, original_exception)
        self.attempts = attempts
        if attempts:
            self.context["attempts"] = attempts


class NonRetryableError(SyncException):
    """
    Mixin for errors that must NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Resource not found (HTTP 404)
    - Malformed pagination metadata
    """
    pass


# ============================================================================
# Remote API Errors
# ============================================================================

class RemoteAPIError(SyncException):
    """
    Base exception for failures talking to the remote API.

    Context should include:
        - url: The endpoint that failed
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated)
    """
    pass


class AuthError(NonRetryableError, RemoteAPIError):
    """Credentials rejected by the remote (HTTP 401, 403). Aborts the run."""
    pass


class RateLimitedError(RetryableError, RemoteAPIError):
    """Throttling persisted after every retry (HTTP 429)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        attempts: int = 0,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception, attempts)
        self.retry_after = retry_after  # Seconds the remote asked us to wait
        if retry_after:
            self.context["retry_after"] = retry_after


class TransientNetworkError(RetryableError, RemoteAPIError):
    """Network, timeout or server errors that survived every retry."""
    pass


class PaginationError(NonRetryableError, RemoteAPIError):
    """
    Page metadata is absent or inconsistent between pages.

    Context should include:
        - path: Collection endpoint
        - page: Page index where the problem was detected
        - expected / actual: The conflicting metadata values
    """
    pass


# ============================================================================
# Mapping Errors
# ============================================================================

class MappingError(SyncException):
    """
    A remote record could not be mapped onto local columns.

    Context should include:
        - collection: Target collection name
        - remote_id: Remote identifier (if it could be read)
        - remote_field: Field whose transform failed
    """
    pass


# ============================================================================
# Local Store Errors
# ============================================================================

class StoreError(SyncException):
    """Base exception for local store failures."""
    pass


class DatabaseError(StoreError):
    """
    The local store itself failed (unavailable, locked, schema missing).

    Context should include:
        - operation: SELECT, INSERT, UPDATE
        - table_name: Name of the table
    """
    pass


class ReconciliationError(StoreError):
    """A single row was rejected by the store (constraint or data error)."""
    pass


# ============================================================================
# Ledger and Run Errors
# ============================================================================

class LedgerError(SyncException):
    """Invalid sync ledger transition (e.g. completing a finished run)."""
    pass


class FatalRunError(SyncException):
    """
    An error escaped the per-record boundary and aborted the run.

    Context should include:
        - entity_type: Collection being synchronized
        - phase: Orchestrator phase when the failure happened
        - run_id: Ledger row of the aborted run

    ``stats`` holds the counters of the aborted run so callers can still
    print a summary.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        stats: Any = None
    ):
        super().__init__(message, context, original_exception)
        self.stats = stats
