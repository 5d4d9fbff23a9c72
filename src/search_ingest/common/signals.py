"""Cross-platform signal handler setup for graceful shutdown."""

import asyncio
import logging
import signal
from collections.abc import Callable

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def setup_shutdown_signal_handlers(callback: Callable[[], None]) -> None:
    """Register SIGTERM/SIGINT handlers that invoke callback on signal.

    On Unix, uses the running loop's add_signal_handler(). On Windows,
    falls back to signal.signal() since add_signal_handler() is not supported.
    """

    def _on_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, initiating graceful shutdown", sig.name)
        callback()

    loop = asyncio.get_event_loop()
    try:
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, _on_signal, sig)
    except NotImplementedError:
        def _handler(signum, frame):
            _on_signal(signal.Signals(signum))

        for sig in SHUTDOWN_SIGNALS:
            signal.signal(sig, _handler)
