"""Worker execution patterns and utilities.

Provides the template for running a worker with consistent:
- Startup retry with linear backoff
- Shutdown handling
- Logging context
- Error mode that keeps the health endpoint alive after a fatal error
"""

import asyncio
import logging
from collections.abc import Callable

from core.errors.exceptions import IndexProvisioningError
from core.logging.context import set_log_context
from search_ingest.common.health import HealthCheckServer

logger = logging.getLogger(__name__)

DEFAULT_STARTUP_RETRIES = 5
DEFAULT_STARTUP_BACKOFF_BASE = 5  # seconds

# Startup failures that retrying cannot fix
NON_RETRYABLE_STARTUP_ERRORS: tuple[type[Exception], ...] = (IndexProvisioningError,)


async def _cleanup_watcher_task(task: asyncio.Task) -> None:
    """Cancel and await watcher task, suppressing expected exceptions.

    Handles CancelledError and RuntimeError (when event loop closed during shutdown).
    """
    try:
        task.cancel()
        await task
    except (asyncio.CancelledError, RuntimeError):
        pass


async def _start_with_retry(
    start_fn: Callable,
    label: str,
    max_retries: int = DEFAULT_STARTUP_RETRIES,
    backoff_base: int = DEFAULT_STARTUP_BACKOFF_BASE,
    shutdown_event: asyncio.Event | None = None,
) -> None:
    """Retry an async start function with linear backoff.

    On exhaustion, or on an error listed in NON_RETRYABLE_STARTUP_ERRORS,
    re-raises so the caller's fatal error handler can log it and enter
    health-server error mode.

    Args:
        start_fn: Async callable (e.g. worker.start)
        label: Human-readable label for log messages
        max_retries: Number of attempts
        backoff_base: Seconds to wait after the first failure; the wait grows linearly
        shutdown_event: If set, skip retries during shutdown
    """
    for attempt in range(1, max_retries + 1):
        try:
            await start_fn()
            return
        except NON_RETRYABLE_STARTUP_ERRORS as e:
            logger.error(
                f"Failed to start {label}, not retrying",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise
        except Exception as e:
            if shutdown_event and shutdown_event.is_set():
                logger.info(f"Shutdown in progress, not retrying {label}")
                raise
            if attempt == max_retries:
                logger.error(
                    f"Failed to start {label} after {max_retries} attempts, giving up",
                    extra={"error": str(e), "max_attempts": max_retries},
                )
                raise
            delay = backoff_base * attempt
            logger.warning(
                f"Failed to start {label} (attempt {attempt}/{max_retries}), "
                f"retrying in {delay}s",
                extra={
                    "error": str(e),
                    "attempt": attempt,
                    "max_attempts": max_retries,
                    "delay_seconds": delay,
                },
            )
            await asyncio.sleep(delay)


async def _enter_worker_error_mode(
    health_server: HealthCheckServer,
    stage_name: str,
    error_msg: str,
    shutdown_event: asyncio.Event,
) -> None:
    """Keep worker's health server alive in error state until shutdown.

    Instead of exiting immediately on fatal error, the worker enters error mode where:
    - Health server continues running for debugging
    - Liveness probe passes (pod stays alive)
    - Readiness probe reports the error
    - Waits for shutdown signal before exiting
    """
    logger.warning(
        f"Entering ERROR MODE for {stage_name} - health endpoint will remain alive"
    )

    health_server.set_error(error_msg)

    logger.info(
        "Health server running in error mode",
        extra={
            "stage": stage_name,
            "health_port": health_server.actual_port,
            "error": error_msg,
        },
    )

    await shutdown_event.wait()
    logger.info(f"Shutdown signal received in error mode for {stage_name}")


async def execute_worker_with_shutdown(
    worker_instance,
    stage_name: str,
    shutdown_event: asyncio.Event,
    max_retries: int = DEFAULT_STARTUP_RETRIES,
    backoff_base: int = DEFAULT_STARTUP_BACKOFF_BASE,
) -> None:
    """Execute a worker with standard shutdown handling.

    On fatal error, if the worker's health server is running, enters error
    mode to keep the health endpoint alive for debugging. Otherwise re-raises
    for top-level error handling.

    Args:
        worker_instance: Worker instance with start() and stop() methods
        stage_name: Name for logging context
        shutdown_event: Event to signal graceful shutdown
        max_retries: Startup attempts before giving up
        backoff_base: Base seconds for linear startup backoff
    """
    set_log_context(stage=stage_name)
    logger.info("Starting %s...", stage_name)

    worker_stopped = False

    async def shutdown_watcher():
        nonlocal worker_stopped
        await shutdown_event.wait()
        logger.info(f"Shutdown signal received, stopping {stage_name}...")
        await worker_instance.stop()
        worker_stopped = True

    watcher_task = asyncio.create_task(shutdown_watcher())

    try:
        await _start_with_retry(
            worker_instance.start,
            stage_name,
            max_retries=max_retries,
            backoff_base=backoff_base,
            shutdown_event=shutdown_event,
        )
    except Exception as e:
        # Don't enter error mode if we're shutting down, just let cleanup happen
        health_server = getattr(worker_instance, "health_server", None)
        if (
            health_server is not None
            and health_server.actual_port is not None
            and not shutdown_event.is_set()
        ):
            await _cleanup_watcher_task(watcher_task)
            await _enter_worker_error_mode(
                health_server,
                stage_name,
                f"Fatal error: {e}",
                shutdown_event,
            )
            if not worker_stopped:
                await worker_instance.stop()
                worker_stopped = True
        elif not shutdown_event.is_set():
            raise
    finally:
        await _cleanup_watcher_task(watcher_task)
        if not worker_stopped:
            await worker_instance.stop()
