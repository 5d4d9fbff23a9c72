"""
Core types shared across modules.

Kept in its own module so every exception class compares against the same
ErrorCategory enum.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed when the same work is
                   attempted again (connection refused, timeouts, 5xx)
        PERMANENT: Failures that will not change on redelivery
                   (unparsable payloads, documents rejected by the engine)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
