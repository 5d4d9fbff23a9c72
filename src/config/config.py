"""Search ingestion worker configuration from YAML file.

Loads from config/config.yaml with all settings in one place:
- Kafka connection, subscription and consumer settings
- OpenSearch endpoint, credentials and target index
- Processing (batching, pacing) settings
- Health, metrics and startup retry settings

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
"""

import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Configure module logger
logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _as_bool(value: Any, default: bool) -> bool:
    """Interpret YAML/env values such as True, "true", "0" as booleans."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"


@dataclass
class IngestConfig:
    """Search ingestion worker configuration.

    Configuration structure:
        kafka:
          connection: {...}     # Shared connection settings
          topic: ...            # Topic carrying change events
          consumer: {...}       # group_id + aiokafka consumer settings
        opensearch: {...}       # Endpoint, credentials, index
        processing: {...}       # Batch size, fetch timeout, pacing
        health: {...}
        metrics: {...}
        startup: {...}

    All timing values in milliseconds unless the name says otherwise.
    """

    # =========================================================================
    # KAFKA CONNECTION
    # =========================================================================
    bootstrap_servers: str = ""
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""
    request_timeout_ms: int = 40000
    metadata_max_age_ms: int = 300000  # 5 minutes
    connections_max_idle_ms: int = 540000  # 9 minutes

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================
    topic: str = "wikimedia.recentchange"
    group_id: str = "consumer-opensearch-demo"
    consumer: Dict[str, Any] = field(default_factory=dict)

    # =========================================================================
    # OPENSEARCH
    # =========================================================================
    opensearch_url: str = "http://localhost:9200"
    opensearch_username: str = ""
    opensearch_password: str = ""
    opensearch_verify_certs: bool = True
    opensearch_timeout_seconds: int = 30
    index_name: str = "wikimedia"
    index_settings: Dict[str, Any] = field(default_factory=dict)

    # =========================================================================
    # PROCESSING
    # =========================================================================
    batch_size: int = 100
    batch_timeout_ms: int = 1000
    pacing_delay_seconds: float = 1.0
    max_cycles: Optional[int] = None
    identity_field: str = "meta.id"

    # =========================================================================
    # HEALTH / METRICS / STARTUP
    # =========================================================================
    health_enabled: bool = True
    health_port: int = 8080
    metrics_enabled: bool = False
    metrics_port: int = 8000
    startup_max_retries: int = 5
    startup_backoff_seconds: int = 5

    def get_consumer_config(self) -> Dict[str, Any]:
        """aiokafka consumer settings with auto-commit forced off.

        Offsets are committed explicitly after each flush, so an
        ``enable_auto_commit`` in the YAML is ignored.
        """
        result = {
            "auto_offset_reset": "latest",
            "max_poll_interval_ms": 300000,
            "session_timeout_ms": 30000,
        }
        result.update(self.consumer)
        result.pop("group_id", None)
        result["enable_auto_commit"] = False
        return result

    def validate(self) -> None:
        """Validate configuration for correctness and constraints.

        Checks required fields, Kafka timeout constraints, and numeric ranges.
        """
        if not self.bootstrap_servers:
            raise ValueError("bootstrap_servers is required in kafka.connection section")
        if not self.topic:
            raise ValueError("kafka.topic is required")
        if not self.group_id:
            raise ValueError("kafka.consumer.group_id is required")
        if not self.opensearch_url:
            raise ValueError("opensearch.url is required")
        if not self.index_name:
            raise ValueError("opensearch.index is required")
        if not self.identity_field or any(not part for part in self.identity_field.split(".")):
            raise ValueError(
                f"processing.identity_field must be a dotted path, got '{self.identity_field}'"
            )

        self._validate_consumer_settings(self.consumer, "kafka.consumer")

        processing = {
            "batch_size": self.batch_size,
            "batch_timeout_ms": self.batch_timeout_ms,
            "pacing_delay_seconds": self.pacing_delay_seconds,
        }
        self._validate_min(processing, "batch_size", 1, inclusive=True, context="processing")
        self._validate_min(processing, "batch_timeout_ms", 0, inclusive=False, context="processing")
        self._validate_min(processing, "pacing_delay_seconds", 0, inclusive=True, context="processing")
        if self.max_cycles is not None:
            self._validate_min(
                {"max_cycles": self.max_cycles}, "max_cycles", 1, inclusive=True, context="processing"
            )

        self._validate_range({"port": self.health_port}, "port", 0, 65535, "health")
        self._validate_range({"port": self.metrics_port}, "port", 0, 65535, "metrics")
        self._validate_min(
            {"max_retries": self.startup_max_retries}, "max_retries", 1, inclusive=True, context="startup"
        )

    @staticmethod
    def _validate_enum(
        settings: Dict[str, Any],
        key: str,
        valid_values: List[Any],
        context: str
    ) -> None:
        """Validate that a setting's value is in a list of valid values."""
        if key in settings and settings[key] not in valid_values:
            raise ValueError(
                f"{context}: {key} must be one of {valid_values}, "
                f"got '{settings[key]}'"
            )

    @staticmethod
    def _validate_min(
        settings: Dict[str, Any],
        key: str,
        min_value: float,
        inclusive: bool,
        context: str
    ) -> None:
        """Validate that a setting's value meets a minimum threshold."""
        if key in settings:
            value = settings[key]
            if inclusive and value < min_value:
                raise ValueError(
                    f"{context}: {key} must be >= {min_value}, got {value}"
                )
            elif not inclusive and value <= min_value:
                raise ValueError(
                    f"{context}: {key} must be > {min_value}, got {value}"
                )

    @staticmethod
    def _validate_range(
        settings: Dict[str, Any],
        key: str,
        min_value: float,
        max_value: float,
        context: str
    ) -> None:
        """Validate that a setting's value is within a range (inclusive)."""
        if key in settings:
            value = settings[key]
            if not (min_value <= value <= max_value):
                raise ValueError(
                    f"{context}: {key} must be between {min_value} and {max_value}, got {value}"
                )

    def _validate_consumer_settings(self, settings: Dict[str, Any], context: str) -> None:
        """Validate consumer settings against Kafka requirements and logical constraints."""
        if "heartbeat_interval_ms" in settings and "session_timeout_ms" in settings:
            heartbeat = settings["heartbeat_interval_ms"]
            session_timeout = settings["session_timeout_ms"]
            if heartbeat >= session_timeout / 3:
                raise ValueError(
                    f"{context}: heartbeat_interval_ms ({heartbeat}) must be < "
                    f"session_timeout_ms/3 ({session_timeout/3:.0f}). "
                    f"Recommended: heartbeat_interval_ms <= {session_timeout // 3}"
                )

        if "session_timeout_ms" in settings and "max_poll_interval_ms" in settings:
            session_timeout = settings["session_timeout_ms"]
            max_poll_interval = settings["max_poll_interval_ms"]
            if session_timeout >= max_poll_interval:
                raise ValueError(
                    f"{context}: session_timeout_ms ({session_timeout}) must be < "
                    f"max_poll_interval_ms ({max_poll_interval})"
                )

        self._validate_enum(settings, "auto_offset_reset", ["earliest", "latest", "none"], context)


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> IngestConfig:
    """Load worker configuration from a config.yaml file.

    Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
    ``overrides`` is deep-merged over the file contents before parsing.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n" f"Expected file: config/config.yaml"
        )

    logger.info(f"Loading configuration from file: {config_path}")
    yaml_data = load_yaml(config_path)
    yaml_data = _expand_env_vars(yaml_data)

    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        yaml_data = _deep_merge(yaml_data, overrides)

    if "kafka" not in yaml_data:
        raise ValueError(
            "Invalid config file: missing 'kafka:' section\n"
            "See src/config/config.yaml for the expected structure"
        )

    kafka = yaml_data["kafka"]
    connection = kafka.get("connection", {})
    consumer = dict(kafka.get("consumer", {}) or {})
    opensearch = yaml_data.get("opensearch", {}) or {}
    processing = yaml_data.get("processing", {}) or {}
    health = yaml_data.get("health", {}) or {}
    metrics = yaml_data.get("metrics", {}) or {}
    startup = yaml_data.get("startup", {}) or {}

    config = IngestConfig(
        bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS") or connection.get("bootstrap_servers", ""),
        security_protocol=connection.get("security_protocol", "PLAINTEXT"),
        sasl_mechanism=connection.get("sasl_mechanism", "PLAIN"),
        sasl_plain_username=connection.get("sasl_plain_username", "") or "",
        sasl_plain_password=connection.get("sasl_plain_password", "") or "",
        request_timeout_ms=int(connection.get("request_timeout_ms", 40000)),
        metadata_max_age_ms=int(connection.get("metadata_max_age_ms", 300000)),
        connections_max_idle_ms=int(connection.get("connections_max_idle_ms", 540000)),
        topic=kafka.get("topic", "wikimedia.recentchange"),
        group_id=consumer.get("group_id", "consumer-opensearch-demo"),
        consumer=consumer,
        opensearch_url=os.getenv("OPENSEARCH_URL") or opensearch.get("url", "http://localhost:9200"),
        opensearch_username=os.getenv("OPENSEARCH_USERNAME") or opensearch.get("username", "") or "",
        opensearch_password=os.getenv("OPENSEARCH_PASSWORD") or opensearch.get("password", "") or "",
        opensearch_verify_certs=_as_bool(opensearch.get("verify_certs"), True),
        opensearch_timeout_seconds=int(opensearch.get("timeout_seconds", 30)),
        index_name=opensearch.get("index", "wikimedia"),
        index_settings=opensearch.get("index_settings", {}) or {},
        batch_size=int(processing.get("batch_size", 100)),
        batch_timeout_ms=int(processing.get("batch_timeout_ms", 1000)),
        pacing_delay_seconds=float(processing.get("pacing_delay_seconds", 1.0)),
        max_cycles=_as_optional_int(processing.get("max_cycles")),
        identity_field=processing.get("identity_field", "meta.id"),
        health_enabled=_as_bool(health.get("enabled"), True),
        health_port=int(health.get("port", 8080)),
        metrics_enabled=_as_bool(metrics.get("enabled"), False),
        metrics_port=int(metrics.get("port", 8000)),
        startup_max_retries=int(startup.get("max_retries", 5)),
        startup_backoff_seconds=int(startup.get("backoff_seconds", 5)),
    )

    logger.debug("Configuration loaded successfully:")
    logger.debug(f"  - Bootstrap servers: {config.bootstrap_servers}")
    logger.debug(f"  - Topic: {config.topic} (group {config.group_id})")
    logger.debug(f"  - Index: {config.index_name}")

    logger.debug("Validating configuration...")
    config.validate()
    logger.debug("Configuration validation passed")

    return config


_ingest_config: Optional[IngestConfig] = None


def get_config() -> IngestConfig:
    """Get or load the singleton config instance."""
    global _ingest_config
    if _ingest_config is None:
        _ingest_config = load_config()
    return _ingest_config


def set_config(config: IngestConfig) -> None:
    """Set the singleton config instance (useful for testing)."""
    global _ingest_config
    _ingest_config = config


def reset_config() -> None:
    """Reset the singleton config instance (forces reload on next get_config() call)."""
    global _ingest_config
    _ingest_config = None


def _cli_main() -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Search Ingestion Configuration Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration
  python -m config.config --validate

  # Show expanded configuration
  python -m config.config --show-merged

  # Use custom config file, JSON output
  python -m config.config --config /path/to/config.yaml --validate --json
        """,
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration structure and values",
    )
    parser.add_argument(
        "--show-merged",
        action="store_true",
        help="Display configuration after environment expansion as YAML",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml file (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format instead of human-readable",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if not args.validate and not args.show_merged:
        parser.print_help()
        return 0

    try:
        config = load_config(config_path=args.config)

        config_dict = _expand_env_vars(load_yaml(args.config or DEFAULT_CONFIG_FILE))
        output = {}

        if args.validate:
            # Validation happens during load_config(), if we got here it passed
            if args.json:
                output["validation"] = {"passed": True, "errors": []}
            else:
                print("✓ Configuration validation passed")
                print(f"  - Topic: {config.topic}")
                print(f"  - Index: {config.index_name}")

        if args.show_merged:
            if args.json:
                output["merged_config"] = config_dict
            else:
                print("\nConfiguration:")
                print("=" * 80)
                print(yaml.dump(config_dict, default_flow_style=False, sort_keys=False))
                print("=" * 80)

        if args.json:
            print(json.dumps(output, indent=2))

        return 0

    except FileNotFoundError as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"✗ Error: {e}", file=sys.stderr)
        return 1

    except ValueError as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"✗ Validation error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(_cli_main())
