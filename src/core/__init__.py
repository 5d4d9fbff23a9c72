"""
Core library: infrastructure-agnostic building blocks for the indexer.

Modules:
    logging     - Structured JSON/console logging with context variables
    errors      - Error categories and the ingestion exception hierarchy
    utils       - JSON serialization helpers and worker id generation
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
