"""Configuration loading for the search ingestion worker.

Configuration lives in a single YAML file (``config/config.yaml`` next to this
package by default) with ``${VAR}`` / ``${VAR:-default}`` environment
expansion.

Structure
---------

kafka:
    connection:   # bootstrap servers, security protocol, SASL credentials
    consumer:     # group_id and aiokafka consumer settings
    topic:        # topic carrying change events
opensearch:       # url, credentials, TLS verification, target index
processing:       # batch size, fetch timeout, pacing delay, identity field
health:           # liveness/readiness HTTP server
metrics:          # Prometheus exporter
startup:          # startup retry policy

Usage
-----

    >>> from config import load_config, get_config
    >>> config = load_config()
    >>> config.index_name
    'wikimedia'

Priority (highest to lowest): selected environment variables
(KAFKA_BOOTSTRAP_SERVERS, OPENSEARCH_URL, OPENSEARCH_USERNAME,
OPENSEARCH_PASSWORD), the YAML file, dataclass defaults.
"""

from config.config import (
    IngestConfig,
    get_config,
    load_config,
    reset_config,
    set_config,
)

__all__ = [
    "load_config",
    "get_config",
    "set_config",
    "reset_config",
    "IngestConfig",
]
