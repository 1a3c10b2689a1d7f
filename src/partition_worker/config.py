"""Partition worker configuration from environment variables and YAML."""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from core.errors import ConfigurationError

DEFAULT_CHUNK_SIZE = 100


@dataclass
class WorkerConfig:
    """Kafka connection, channel and step configuration for one worker process.

    Load from environment using WorkerConfig.from_env(), or from environment
    plus a YAML overlay using WorkerConfig.load(path).
    All timing values in milliseconds unless otherwise noted.
    """

    # Connection
    bootstrap_servers: str
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""

    # Consumer defaults
    auto_offset_reset: str = "earliest"
    enable_auto_commit: bool = False
    max_poll_records: int = 10
    max_poll_interval_ms: int = 300000  # 5 minutes
    session_timeout_ms: int = 30000

    # Producer defaults
    acks: str = "all"

    # Channels
    request_topic: str = "partition.requests"
    reply_topic: str = "partition.replies"
    consumer_group_prefix: str = "partition"

    # Step
    step_name: str = "simpleStep"
    chunk_size: int = DEFAULT_CHUNK_SIZE

    # Store: empty path selects the in-memory writer
    entities_table_path: str = ""

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ConfigurationError(
                f"chunk_size must be at least 1, got {self.chunk_size}"
            )

    @classmethod
    def from_env(cls) -> "WorkerConfig":
        """Load configuration from environment variables.

        Required environment variables:
            KAFKA_BOOTSTRAP_SERVERS: Kafka broker addresses

        Optional environment variables (with defaults):
            KAFKA_SECURITY_PROTOCOL: PLAINTEXT (default)
            KAFKA_SASL_MECHANISM: PLAIN (default)
            KAFKA_SASL_PLAIN_USERNAME / KAFKA_SASL_PLAIN_PASSWORD: "" (default)
            KAFKA_MAX_POLL_RECORDS: 10 (default)
            KAFKA_SESSION_TIMEOUT_MS: 30000 (default)
            KAFKA_CONSUMER_GROUP_PREFIX: partition (default)
            WORKER_REQUEST_TOPIC: partition.requests (default)
            WORKER_REPLY_TOPIC: partition.replies (default)
            WORKER_STEP_NAME: simpleStep (default)
            WORKER_CHUNK_SIZE: 100 (default)
            DELTA_ENTITIES_TABLE_PATH: "" (default, in-memory store)

        Raises:
            ValueError: If required environment variables are missing
            ConfigurationError: If a value is out of range
        """
        bootstrap_servers = os.getenv("KAFKA_BOOTSTRAP_SERVERS")
        if not bootstrap_servers:
            raise ValueError("KAFKA_BOOTSTRAP_SERVERS environment variable is required")

        return cls(
            # Connection
            bootstrap_servers=bootstrap_servers,
            security_protocol=os.getenv("KAFKA_SECURITY_PROTOCOL", "PLAINTEXT"),
            sasl_mechanism=os.getenv("KAFKA_SASL_MECHANISM", "PLAIN"),
            sasl_plain_username=os.getenv("KAFKA_SASL_PLAIN_USERNAME", ""),
            sasl_plain_password=os.getenv("KAFKA_SASL_PLAIN_PASSWORD", ""),

            # Consumer defaults
            max_poll_records=int(os.getenv("KAFKA_MAX_POLL_RECORDS", "10")),
            session_timeout_ms=int(os.getenv("KAFKA_SESSION_TIMEOUT_MS", "30000")),

            # Channels
            request_topic=os.getenv("WORKER_REQUEST_TOPIC", "partition.requests"),
            reply_topic=os.getenv("WORKER_REPLY_TOPIC", "partition.replies"),
            consumer_group_prefix=os.getenv("KAFKA_CONSUMER_GROUP_PREFIX", "partition"),

            # Step
            step_name=os.getenv("WORKER_STEP_NAME", "simpleStep"),
            chunk_size=int(os.getenv("WORKER_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE))),

            # Store
            entities_table_path=os.getenv("DELTA_ENTITIES_TABLE_PATH", ""),
        )

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None) -> "WorkerConfig":
        """Load from environment, then overlay the ``worker:`` section of a YAML file.

        Keys in the YAML file use the dataclass field names. Unknown keys are
        rejected so typos don't silently fall back to defaults.

        Raises:
            FileNotFoundError: If config_path is given but doesn't exist
            ConfigurationError: If the file contains unknown keys
        """
        config = cls.from_env()
        if config_path is None:
            return config

        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}

        overrides = data.get("worker", {}) or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown worker config keys in {path}: {', '.join(unknown)}"
            )

        merged = {f.name: getattr(config, f.name) for f in fields(cls)}
        merged.update(overrides)
        return cls(**merged)

    def get_consumer_group(self) -> str:
        """Get consumer group name for this worker's step.

        Returns:
            Full consumer group name (e.g., "partition-simpleStep-worker")
        """
        return f"{self.consumer_group_prefix}-{self.step_name}-worker"
