"""Worker ID generation using coolname for memorable identifiers."""

from coolname import generate_slug


def generate_worker_id(prefix: str = "") -> str:
    """Generate a worker ID such as ``indexer-brave-golden-tiger``.

    The ID is used as the Kafka client id suffix and is stamped on every log
    line, so several indexer processes in one consumer group can be told apart.
    """
    slug = generate_slug(3)
    return f"{prefix}-{slug}" if prefix else slug
