"""Search ingestion worker entry point. Use --help for usage."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from config.config import IngestConfig, load_config
from core.logging.setup import setup_logging
from core.utils.worker_id import generate_worker_id
from search_ingest.common.metrics import start_metrics_server
from search_ingest.common.signals import setup_shutdown_signal_handlers
from search_ingest.runners.common import execute_worker_with_shutdown
from search_ingest.workers.indexer_worker import IndexerWorker

# Project root directory (where .env file is located)
# __main__.py is at src/search_ingest/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

STAGE_NAME = "search-indexer"

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Stream change events from Kafka into an OpenSearch index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with src/config/config.yaml
    python -m search_ingest

    # Custom config, JSON log files under ./logs
    python -m search_ingest --config /etc/search-ingest/config.yaml --log-dir logs --json-logs

    # Smoke run: stop after 3 non-empty cycles
    python -m search_ingest --max-cycles 3 --log-level DEBUG
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: src/config/config.yaml)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Console logging level (default: INFO)",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Write JSON lines to the log file instead of plain text. "
        "Can also be set via JSON_LOGS environment variable.",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: LOG_DIR env var; console only when unset)",
    )

    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many non-empty cycles (default: run until signalled)",
    )

    return parser.parse_args(argv)


def _build_overrides(args: argparse.Namespace) -> dict:
    if args.max_cycles is None:
        return {}
    return {"processing": {"max_cycles": args.max_cycles}}


async def run(config: IngestConfig, worker_id: str) -> None:
    shutdown_event = asyncio.Event()
    setup_shutdown_signal_handlers(shutdown_event.set)

    if config.metrics_enabled:
        start_metrics_server(config.metrics_port)

    worker = IndexerWorker(config, shutdown_event=shutdown_event, worker_id=worker_id)
    await execute_worker_with_shutdown(
        worker,
        STAGE_NAME,
        shutdown_event,
        max_retries=config.startup_max_retries,
        backoff_base=config.startup_backoff_seconds,
    )


def main(argv: list[str] | None = None) -> int:
    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    worker_id = os.getenv("WORKER_ID") or generate_worker_id("indexer")
    json_logs = args.json_logs or os.getenv("JSON_LOGS", "false").lower() in ("true", "1", "yes")
    log_dir = args.log_dir or os.getenv("LOG_DIR")

    setup_logging(
        name="search_ingest",
        stage=STAGE_NAME,
        log_dir=Path(log_dir) if log_dir else None,
        json_format=json_logs,
        console_level=getattr(logging, args.log_level),
        worker_id=worker_id,
    )

    try:
        config = load_config(config_path=args.config, overrides=_build_overrides(args))
    except (FileNotFoundError, ValueError) as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    try:
        asyncio.run(run(config, worker_id))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    except Exception as e:
        logger.error(
            "Fatal error, worker exiting",
            extra={"error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        return 1

    logger.info("Worker shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
