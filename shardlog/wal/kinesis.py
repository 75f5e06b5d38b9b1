"""
AWS Kinesis shard backend.

This module maps the ShardBackend protocol onto Kinesis Data Streams
using aiobotocore:
    - describe_topology -> DescribeStream (following HasMoreShards)
    - acquire_cursor    -> GetShardIterator
    - read_records      -> GetRecords
    - publish           -> PutRecord

Invariants:
    - PutRecord returns only after data is replicated
    - ProvisionedThroughputExceededException surfaces as
      WalThroughputExceededError, never as a generic WalError
    - The backend never creates, waits for, or reshards the stream

How to change safely:
    - Test with LocalStack before deploying to AWS
    - GetShardIterator is limited to 5 calls/second/shard by AWS; callers
      must rate limit it
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiobotocore.session import get_session
from botocore.exceptions import ClientError, EndpointConnectionError

from .base import (
    BackendRecord,
    CursorMode,
    CursorRequest,
    StreamTopology,
    WalConnectionError,
    WalError,
    WalThroughputExceededError,
    WalTimeoutError,
)

logger = logging.getLogger(__name__)

THROUGHPUT_EXCEEDED_CODE = "ProvisionedThroughputExceededException"
RESOURCE_NOT_FOUND_CODE = "ResourceNotFoundException"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class KinesisShardBackend:
    """Kinesis Data Streams implementation of the ShardBackend protocol.

    Attributes:
        config: Kinesis configuration

    Example:
        >>> config = KinesisConfig(stream_name="shardlog", region="us-east-1")
        >>> backend = KinesisShardBackend(config)
        >>> await backend.connect()
        >>> record = await backend.publish(b"payload", "uselessPartitionKey")
    """

    def __init__(self, config: Any) -> None:
        """Initialize the Kinesis backend.

        Args:
            config: KinesisConfig instance
        """
        self.config = config
        self._session = None
        self._client_ctx = None
        self._client = None
        self._connected = False

    @property
    def stream_name(self) -> str:
        return self.config.stream_name

    @property
    def is_connected(self) -> bool:
        """Whether connected to Kinesis."""
        return self._connected

    async def connect(self) -> None:
        """Create the aiobotocore session and client.

        Raises:
            WalConnectionError: If the client cannot be created
        """
        if self._connected:
            return

        try:
            self._session = get_session()

            client_config = {
                "region_name": self.config.region,
            }
            if self.config.endpoint_url:
                client_config["endpoint_url"] = self.config.endpoint_url

            self._client_ctx = self._session.create_client("kinesis", **client_config)
            self._client = await self._client_ctx.__aenter__()
        except EndpointConnectionError as e:
            raise WalConnectionError(f"Failed to connect to Kinesis endpoint: {e}") from e

        self._connected = True
        logger.info(
            "Connected to Kinesis",
            extra={
                "stream": self.config.stream_name,
                "region": self.config.region,
                "endpoint": self.config.endpoint_url or "AWS",
            },
        )

    async def close(self) -> None:
        """Close the Kinesis client."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)

        self._client = None
        self._client_ctx = None
        self._session = None
        self._connected = False
        logger.info("Kinesis connection closed", extra={"stream": self.config.stream_name})

    async def describe_topology(self) -> StreamTopology:
        """Describe the stream, collecting every shard id.

        Raises:
            WalConnectionError: If the stream does not exist or Kinesis is unreachable
        """
        client = self._require_client()
        shard_ids: list[str] = []
        status = None
        kwargs: dict[str, Any] = {"StreamName": self.config.stream_name}

        try:
            while True:
                response = await self._call(client.describe_stream(**kwargs), "DescribeStream")
                description = response["StreamDescription"]
                status = description.get("StreamStatus")
                shard_ids.extend(shard["ShardId"] for shard in description.get("Shards", []))

                if not description.get("HasMoreShards") or not shard_ids:
                    break
                kwargs["ExclusiveStartShardId"] = shard_ids[-1]
        except ClientError as e:
            if _error_code(e) == RESOURCE_NOT_FOUND_CODE:
                raise WalConnectionError(
                    f"Kinesis stream '{self.config.stream_name}' not found"
                ) from e
            raise WalConnectionError(f"Kinesis DescribeStream failed: {e}") from e

        return StreamTopology(
            stream_name=self.config.stream_name,
            status=status,
            shard_ids=tuple(shard_ids),
        )

    async def acquire_cursor(self, shard_id: str, request: CursorRequest) -> str:
        """Obtain a shard iterator."""
        client = self._require_client()
        kwargs: dict[str, Any] = {
            "StreamName": self.config.stream_name,
            "ShardId": shard_id,
            "ShardIteratorType": request.mode.value,
        }
        if request.mode is CursorMode.AFTER_SEQUENCE_NUMBER:
            kwargs["StartingSequenceNumber"] = request.sequence_number

        try:
            response = await self._call(client.get_shard_iterator(**kwargs), "GetShardIterator")
        except ClientError as e:
            if _error_code(e) == THROUGHPUT_EXCEEDED_CODE:
                raise WalThroughputExceededError("Kinesis GetShardIterator throughput exceeded") from e
            raise WalError(f"Kinesis GetShardIterator failed: {e}") from e

        return response["ShardIterator"]

    async def read_records(self, cursor: str, limit: int) -> list[BackendRecord]:
        """Read up to `limit` records from a shard iterator.

        Raises:
            WalThroughputExceededError: On ProvisionedThroughputExceededException
            WalError: For other Kinesis errors
        """
        client = self._require_client()

        try:
            response = await self._call(
                client.get_records(ShardIterator=cursor, Limit=limit),
                "GetRecords",
            )
        except ClientError as e:
            if _error_code(e) == THROUGHPUT_EXCEEDED_CODE:
                raise WalThroughputExceededError("Kinesis GetRecords throughput exceeded") from e
            raise WalError(f"Kinesis GetRecords failed: {e}") from e

        return [
            BackendRecord(
                sequence_number=record["SequenceNumber"],
                data=bytes(record["Data"]),
                partition_key=record.get("PartitionKey", ""),
            )
            for record in response.get("Records", [])
        ]

    async def publish(self, data: bytes, partition_key: str) -> BackendRecord:
        """Append one record with PutRecord.

        Errors are translated but never retried here.
        """
        client = self._require_client()

        try:
            response = await self._call(
                client.put_record(
                    StreamName=self.config.stream_name,
                    Data=data,
                    PartitionKey=partition_key,
                ),
                "PutRecord",
            )
        except ClientError as e:
            if _error_code(e) == THROUGHPUT_EXCEEDED_CODE:
                raise WalThroughputExceededError("Kinesis PutRecord throughput exceeded") from e
            raise WalError(f"Kinesis PutRecord failed: {e}") from e

        logger.debug(
            "Record published to Kinesis",
            extra={
                "stream": self.config.stream_name,
                "shard": response["ShardId"],
                "sequence": response["SequenceNumber"],
                "size": len(data),
            },
        )

        return BackendRecord(
            sequence_number=response["SequenceNumber"],
            data=data,
            shard_id=response["ShardId"],
            partition_key=partition_key,
        )

    def _require_client(self) -> Any:
        if not self._client:
            raise WalConnectionError("Not connected to Kinesis")
        return self._client

    async def _call(self, awaitable: Any, operation: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.request_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise WalTimeoutError(f"Kinesis {operation} timed out") from e
        except EndpointConnectionError as e:
            raise WalConnectionError(f"Kinesis endpoint unreachable during {operation}: {e}") from e

