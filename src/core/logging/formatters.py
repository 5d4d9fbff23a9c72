"""Log formatters for JSON and console output."""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Credentials embedded in URLs are masked before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Timing
        "duration_ms",
        "delay_seconds",
        # Errors
        "error",
        "error_type",
        "error_category",
        "error_reason",
        # Processing counts
        "batch_size",
        "records_fetched",
        "records_skipped",
        "documents_indexed",
        "documents_failed",
        "attempt",
        "max_attempts",
        # Stream position
        "message_topic",
        "message_partition",
        "message_offset",
        "offsets",
        "group_id",
        "partitions",
        "partition_count",
        # Search index
        "index",
        "doc_id",
        "status_code",
        "opensearch_url",
        # Loop
        "state",
        "cycles",
        # Worker
        "worker_name",
        "port",
        "health_port",
    ]

    # Type mapping for numeric fields so they never serialize as strings
    NUMERIC_FIELDS = {
        "duration_ms": float,
        "delay_seconds": float,
        "batch_size": int,
        "records_fetched": int,
        "records_skipped": int,
        "documents_indexed": int,
        "documents_failed": int,
        "attempt": int,
        "max_attempts": int,
        "message_partition": int,
        "message_offset": int,
        "partition_count": int,
        "status_code": int,
        "cycles": int,
    }

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["opensearch_url", "url"]

    # user:password@ in URL authority
    USERINFO_PATTERN = re.compile(r"(://)[^/@\s]+@")

    def _sanitize_url(self, url: str) -> str:
        return self.USERINFO_PATTERN.sub(r"\1[REDACTED]@", url)

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return self._sanitize_url(value)
        return value

    def _ensure_type(self, field: str, value: Any) -> Any:
        """Coerce numeric fields to their declared type, or None if that fails."""
        if field not in self.NUMERIC_FIELDS or value is None:
            return value

        expected_type = self.NUMERIC_FIELDS[field]
        try:
            return expected_type(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: dict[str, Any], log_context: dict[str, str]) -> None:
        for field in ("stage", "worker_id", "cycle_id", "index_name"):
            if log_context.get(field):
                log_entry[field] = log_context[field]

    @staticmethod
    def _should_include_source_location(record: logging.LogRecord) -> bool:
        return record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL)

    def _inject_extra_fields(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                typed_value = self._ensure_type(field, value)
                if typed_value is None:
                    continue
                log_entry[field] = self._sanitize_value(field, typed_value)

    def _inject_exception(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        log_entry = self._base_log_entry(record)
        self._inject_context(log_entry, get_log_context())

        if self._should_include_source_location(record):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        # Type coercion runs before sanitization
        self._inject_extra_fields(log_entry, record)
        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    # ANSI color codes
    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        if not self._use_colors:
            return level_name

        color = self.COLORS.get(record.levelno, "")
        if not color:
            return level_name

        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_prefix(level_name: str, log_context: dict[str, str]) -> str:
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            level_name,
        ]
        if log_context.get("stage"):
            parts.append(f"[{log_context['stage']}]")
        return " - ".join(parts)

    @staticmethod
    def _build_tags(record: logging.LogRecord, log_context: dict[str, str]) -> list[str]:
        tags = []
        cycle_id = getattr(record, "cycle_id", None) or log_context.get("cycle_id")
        if cycle_id:
            tags.append(f"[{cycle_id}]")

        topic = getattr(record, "message_topic", None)
        partition = getattr(record, "message_partition", None)
        offset = getattr(record, "message_offset", None)
        if topic is not None and offset is not None:
            tags.append(f"[{topic}:{partition}@{offset}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output with optional color coding."""
        log_context = get_log_context()

        level_name = self._format_level_name(record)
        prefix = self._build_prefix(level_name, log_context)
        tags = self._build_tags(record, log_context)

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if tags:
            return f"{prefix} - {' '.join(tags)} {message}"

        return f"{prefix} - {message}"
