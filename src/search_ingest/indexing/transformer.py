"""Change event to index document conversion.

The document id is read from event metadata rather than the stream position,
so a redelivered event overwrites its earlier copy instead of duplicating it.
The document body is the payload text exactly as received.
"""

import json
import logging

from core.errors.exceptions import MalformedEventError
from search_ingest.common.types import IndexDocument

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY_FIELD = "meta.id"


class DocumentTransformer:
    """Derives an IndexDocument from one raw change event payload."""

    def __init__(self, identity_field: str = DEFAULT_IDENTITY_FIELD):
        self.identity_field = identity_field
        self._path = identity_field.split(".")
        if not all(self._path):
            raise ValueError(f"identity_field must be a dotted path, got {identity_field!r}")

    def transform(self, raw_payload: bytes | str | None) -> IndexDocument:
        """
        Raises:
            MalformedEventError: Payload is not a UTF-8 JSON object, or the
                identity field is missing, not a string, or blank
        """
        if raw_payload is None:
            raise MalformedEventError("Event payload is empty")

        if isinstance(raw_payload, bytes):
            try:
                text = raw_payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedEventError("Event payload is not valid UTF-8", cause=e) from e
        else:
            text = raw_payload

        try:
            event = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedEventError("Event payload is not valid JSON", cause=e) from e

        doc_id = self._extract_identity(event)
        return IndexDocument(doc_id=doc_id, body=text)

    def _extract_identity(self, event) -> str:
        node = event
        walked = []
        for key in self._path:
            if not isinstance(node, dict):
                where = ".".join(walked) or "payload"
                raise MalformedEventError(
                    f"Cannot read {self.identity_field}: {where} is not an object",
                    context={"identity_field": self.identity_field},
                )
            if key not in node:
                walked.append(key)
                raise MalformedEventError(
                    f"Event has no {'.'.join(walked)}",
                    context={"identity_field": self.identity_field},
                )
            node = node[key]
            walked.append(key)

        if not isinstance(node, str):
            raise MalformedEventError(
                f"{self.identity_field} must be a string, got {type(node).__name__}",
                context={"identity_field": self.identity_field},
            )
        if not node.strip():
            raise MalformedEventError(
                f"{self.identity_field} is blank",
                context={"identity_field": self.identity_field},
            )
        return node
