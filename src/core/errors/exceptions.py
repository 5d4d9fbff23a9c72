"""
Unified exception hierarchy for the search ingestion pipeline.

Provides typed exceptions with a category so callers can decide between
skipping a record, logging a rejected document, holding the commit cursor, or
aborting startup.
"""


# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for handling decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class TransientError(PipelineError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Ingestion Errors
# =============================================================================


class MalformedEventError(PermanentError):
    """Record payload is unparsable or has no usable identity field.

    Per-record and recoverable: the record is skipped and the cycle continues.
    """


class IndexWriteItemError(PermanentError):
    """One document was rejected inside an otherwise successful bulk request.

    The category follows the item's HTTP status, so a 429 on a single item is
    reported as transient even though it is never retried individually.
    """

    def __init__(
        self,
        message: str,
        doc_id: str,
        status: int | None = None,
        error_type: str | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.doc_id = doc_id
        self.status = status
        self.error_type = error_type
        if status is not None:
            self.category = classify_http_status(status)


class TransportError(TransientError):
    """The bulk request itself failed; no item outcome is known."""


class IndexProvisioningError(PipelineError):
    """Destination index could not be confirmed or created. Fatal at startup."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code in (408, 429):
        return ErrorCategory.TRANSIENT

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT  # Mapping conflicts, bad documents, version conflicts

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    if isinstance(exc, PipelineError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "no route to host",
        "network unreachable",
        "name resolution",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return classify_http_status(status_code)

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN
