"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- The ingestion taxonomy (malformed event, item rejection, transport, provisioning)
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Ingestion errors
    IndexProvisioningError,
    IndexWriteItemError,
    MalformedEventError,
    PermanentError,
    # Base classes
    PipelineError,
    TransientError,
    TransportError,
    # Classification utilities
    classify_exception,
    classify_http_status,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    # Ingestion errors
    "MalformedEventError",
    "IndexWriteItemError",
    "TransportError",
    "IndexProvisioningError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
]
