"""Destination index provisioning.

Runs once at startup, before any record is consumed. The check is idempotent:
an existing index is left untouched, and losing a creation race to another
worker is treated the same as finding the index already present.
"""

import logging
from typing import Any

from opensearchpy import exceptions as opensearch_exceptions

from core.errors.exceptions import IndexProvisioningError

logger = logging.getLogger(__name__)

ALREADY_EXISTS_ERROR = "resource_already_exists_exception"


class IndexLifecycleManager:
    """Confirms the destination index exists, creating it with default settings if not."""

    def __init__(self, client, index_settings: dict[str, Any] | None = None):
        """
        Args:
            client: AsyncOpenSearch instance
            index_settings: Optional index settings (e.g. number_of_shards).
                Empty means the engine defaults.
        """
        self.client = client
        self.index_settings = dict(index_settings or {})

    def _create_body(self) -> dict | None:
        if not self.index_settings:
            return None
        return {"settings": self.index_settings}

    async def ensure_index(self, name: str) -> bool:
        """Make sure ``name`` exists.

        Returns:
            True if this call created the index, False if it was already present

        Raises:
            IndexProvisioningError: The index could not be confirmed or created
        """
        try:
            if await self.client.indices.exists(index=name):
                logger.info(f"Index {name} already exists", extra={"index": name})
                return False

            await self.client.indices.create(index=name, body=self._create_body())
        except opensearch_exceptions.RequestError as e:
            if e.error == ALREADY_EXISTS_ERROR:
                logger.info(
                    f"Index {name} was created concurrently by another worker",
                    extra={"index": name},
                )
                return False
            raise IndexProvisioningError(
                f"Failed to create index {name}",
                cause=e,
                context={"index": name, "status_code": e.status_code},
            ) from e
        except opensearch_exceptions.OpenSearchException as e:
            raise IndexProvisioningError(
                f"Failed to confirm or create index {name}",
                cause=e,
                context={"index": name, "error_type": type(e).__name__},
            ) from e

        logger.info(f"Index {name} created", extra={"index": name})
        return True
