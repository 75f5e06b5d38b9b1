"""
Configuration management for shardlog.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Credentials are never read here; boto's credential chain supplies them

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the poll defaults within Kinesis per-shard limits
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KinesisConfig:
    """AWS Kinesis backend configuration.

    Attributes:
        stream_name: Kinesis stream name (must already exist with one shard)
        region: AWS region
        endpoint_url: Custom endpoint URL (for LocalStack testing)
        request_timeout_seconds: Timeout applied to each Kinesis call
    """

    stream_name: str = "shardlog"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    request_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> KinesisConfig:
        """Load configuration from environment variables."""
        return cls(
            stream_name=os.getenv("KINESIS_STREAM_NAME", "shardlog"),
            region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            endpoint_url=os.getenv("KINESIS_ENDPOINT_URL"),
            request_timeout_seconds=float(os.getenv("KINESIS_REQUEST_TIMEOUT", "30")),
        )


@dataclass(frozen=True)
class PollConfig:
    """Read and write path tuning.

    Attributes:
        min_cursor_interval_ms: Minimum time between two cursor acquisitions
            (GetShardIterator allows 5 calls/second/shard)
        throttle_backoff_ms: Wait after a throttled GetRecords before retrying
        partition_key: Constant partition key used on every PutRecord
    """

    min_cursor_interval_ms: int = 250
    throttle_backoff_ms: int = 100
    partition_key: str = "uselessPartitionKey"

    @classmethod
    def from_env(cls) -> PollConfig:
        """Load configuration from environment variables."""
        return cls(
            min_cursor_interval_ms=int(os.getenv("SHARDLOG_MIN_CURSOR_INTERVAL_MS", "250")),
            throttle_backoff_ms=int(os.getenv("SHARDLOG_THROTTLE_BACKOFF_MS", "100")),
            partition_key=os.getenv("SHARDLOG_PARTITION_KEY", "uselessPartitionKey"),
        )

    @property
    def min_cursor_interval_seconds(self) -> float:
        return self.min_cursor_interval_ms / 1000

    @property
    def throttle_backoff_seconds(self) -> float:
        return self.throttle_backoff_ms / 1000


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class StoreConfig:
    """Complete transaction store configuration.

    Attributes:
        kinesis: Kinesis configuration
        poll: Poll/append tuning
        observability: Logging configuration
    """

    kinesis: KinesisConfig = field(default_factory=KinesisConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            kinesis=KinesisConfig.from_env(),
            poll=PollConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.kinesis.stream_name:
            raise ValueError("KINESIS_STREAM_NAME is required")
        if not self.kinesis.region:
            raise ValueError("AWS_REGION is required")
        if self.kinesis.request_timeout_seconds <= 0:
            raise ValueError("KINESIS_REQUEST_TIMEOUT must be positive")
        if self.poll.min_cursor_interval_ms < 200:
            # Below 200 ms a single reader alone exceeds 5 GetShardIterator calls/s
            raise ValueError("SHARDLOG_MIN_CURSOR_INTERVAL_MS must be at least 200")
        if self.poll.throttle_backoff_ms <= 0:
            raise ValueError("SHARDLOG_THROTTLE_BACKOFF_MS must be positive")
        if not self.poll.partition_key:
            raise ValueError("SHARDLOG_PARTITION_KEY must not be empty")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Transaction store configuration loaded",
            extra={
                "kinesis_stream": self.kinesis.stream_name,
                "region": self.kinesis.region,
                "endpoint": self.kinesis.endpoint_url or "AWS",
                "min_cursor_interval_ms": self.poll.min_cursor_interval_ms,
                "throttle_backoff_ms": self.poll.throttle_backoff_ms,
                "log_level": self.observability.log_level,
            },
        )
