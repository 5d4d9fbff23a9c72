"""Worker runners: startup retry, shutdown handling and error mode."""

from search_ingest.runners.common import execute_worker_with_shutdown

__all__ = ["execute_worker_with_shutdown"]
