"""Logging setup and configuration."""

import logging
import secrets
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

# Default settings
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_ROTATION_INTERVAL = 1
DEFAULT_BACKUP_COUNT = 7
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiokafka",
    "aiohttp",
    "opensearch",
    "urllib3",
]


def get_log_file_path(log_dir: Path, name: str, worker_id: str | None = None) -> Path:
    """
    Build log file path with a date subfolder.

    Structure: {log_dir}/{YYYY-MM-DD}/{name}_{HHMM}[_{worker_id}].log

    Example:
        logs/2026-10-19/search_ingest_1430_indexer-brave-golden-tiger.log
    """
    now = datetime.now()
    filename = f"{name}_{now.strftime('%H%M')}"
    if worker_id:
        filename = f"{filename}_{worker_id}"
    return log_dir / now.strftime("%Y-%m-%d") / f"{filename}.log"


def setup_logging(
    name: str = "search_ingest",
    stage: str | None = None,
    log_dir: Path | None = None,
    json_format: bool = True,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    file_level: int = DEFAULT_FILE_LEVEL,
    rotation_when: str = DEFAULT_ROTATION_WHEN,
    rotation_interval: int = DEFAULT_ROTATION_INTERVAL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    worker_id: str | None = None,
) -> logging.Logger:
    """
    Configure root logging with a console handler and an optional rotating file handler.

    Console output always uses ConsoleFormatter. When log_dir is given, a
    TimedRotatingFileHandler is added under {log_dir}/{date}/ using
    JSONFormatter (or a plain text format when json_format is False).

    Args:
        name: Logger name and log file prefix
        stage: Stage name stamped on every record via the log context
        log_dir: Directory for log files; None means console only
        json_format: Use JSON format for file logs (default: True)
        console_level: Console handler level (default: INFO)
        file_level: File handler level (default: DEBUG)
        rotation_when: When to rotate logs - 'midnight', 'H' (hourly), 'M' (minutes)
        rotation_interval: Interval for rotation (default: 1)
        backup_count: Number of rotated files to keep (default: 7)
        suppress_noisy: Quiet down Kafka, HTTP and OpenSearch client loggers
        worker_id: Worker identifier for context and file name

    Returns:
        Configured logger instance
    """
    if worker_id:
        set_log_context(worker_id=worker_id)
    if stage:
        set_log_context(stage=stage)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    log_file = None
    if log_dir is not None:
        log_file = get_log_file_path(Path(log_dir), name, worker_id)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_formatter = JSONFormatter()
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )

        file_handler = TimedRotatingFileHandler(
            log_file,
            when=rotation_when,
            interval=rotation_interval,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug("Logging initialized: file=%s, json=%s", log_file, json_format)
    return logger


def generate_cycle_id() -> str:
    """
    Generate unique cycle identifier.

    Format: c-YYYYMMDD-HHMMSS-XXXX where XXXX is random hex.
    """
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    suffix = secrets.token_hex(2)
    return f"c-{ts}-{suffix}"
