"""OpenSearch client construction.

The endpoint is configured as a single URL. Credentials embedded in it as
``user:password@`` are lifted into HTTP basic auth and removed from the host
entry; explicit ``opensearch.username`` / ``opensearch.password`` take
precedence over them.
"""

import logging
from urllib.parse import unquote, urlsplit

from opensearchpy import AsyncOpenSearch

from config.config import IngestConfig

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 9200, "https": 443}


def parse_opensearch_url(url: str) -> tuple[dict, tuple[str, str] | None]:
    """Split an endpoint URL into an opensearch-py host dict and optional basic auth.

    Raises:
        ValueError: If the URL has no host or uses a scheme other than http/https
    """
    parts = urlsplit(url)
    scheme = (parts.scheme or "http").lower()
    if scheme not in DEFAULT_PORTS:
        raise ValueError(f"Unsupported OpenSearch URL scheme '{scheme}' in {url!r}")
    if not parts.hostname:
        raise ValueError(f"OpenSearch URL has no host: {url!r}")

    host = {
        "host": parts.hostname,
        "port": parts.port or DEFAULT_PORTS[scheme],
        "scheme": scheme,
    }
    if parts.path and parts.path != "/":
        host["url_prefix"] = parts.path.rstrip("/")

    auth = None
    if parts.username:
        auth = (unquote(parts.username), unquote(parts.password or ""))
    return host, auth


def build_opensearch_client(config: IngestConfig) -> AsyncOpenSearch:
    """Create the async search client used for index provisioning and bulk writes."""
    host, auth = parse_opensearch_url(config.opensearch_url)
    if config.opensearch_username:
        auth = (config.opensearch_username, config.opensearch_password)

    use_ssl = host["scheme"] == "https"
    logger.info(
        "Creating OpenSearch client",
        extra={
            "opensearch_url": f"{host['scheme']}://{host['host']}:{host['port']}",
            "index": config.index_name,
        },
    )

    return AsyncOpenSearch(
        hosts=[host],
        http_auth=auth,
        use_ssl=use_ssl,
        verify_certs=config.opensearch_verify_certs if use_ssl else False,
        timeout=config.opensearch_timeout_seconds,
    )
