"""
Amazon SQS backend built on boto3.

boto3 clients are synchronous, so every call is pushed to a worker thread
with asyncio.to_thread. botocore errors are wrapped in QueueServiceError so
the engine can classify them without importing botocore.
"""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from sqs_listener.listener.exceptions import QueueServiceError
from sqs_listener.listener.schemas import Message
from sqs_listener.queues.base import QueueService

logger = logging.getLogger(__name__)

_RECEIVE_ATTRIBUTES = [
    "ApproximateReceiveCount",
    "ApproximateFirstReceiveTimestamp",
]


def _error_code(e: Exception) -> str:
    if isinstance(e, ClientError):
        return (e.response or {}).get("Error", {}).get("Code", "")
    return type(e).__name__


class SqsQueueService(QueueService):
    """
    QueueService implementation for Amazon SQS.

    The handle returned by lookup_queue() is the queue URL.

    Usage:
        service = SqsQueueService(region_name="eu-west-1")
        url = await service.lookup_queue("orders")
        count = await service.approximate_count(url)
    """

    name = "sqs"

    def __init__(
        self,
        client: Any | None = None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ):
        """
        Initialize the SQS backend.

        Args:
            client: Pre-built boto3 SQS client (tests, custom sessions)
            region_name: AWS region used when building a client
            endpoint_url: Endpoint override (LocalStack, VPC endpoints)
        """
        if client is None:
            kwargs: dict[str, Any] = {}
            if region_name:
                kwargs["region_name"] = region_name
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("sqs", **kwargs)
        self._client = client

    @property
    def client(self) -> Any:
        return self._client

    async def _call(self, operation: str, **params: Any) -> dict[str, Any]:
        """Run a boto3 operation in a worker thread, wrapping SDK errors."""
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except (ClientError, BotoCoreError) as e:
            raise QueueServiceError(
                f"SQS {operation} failed ({_error_code(e)}): {e}",
                operation=operation,
                cause=e,
            ) from e

    async def lookup_queue(self, queue_name: str) -> str:
        response = await self._call("get_queue_url", QueueName=queue_name)
        queue_url = response["QueueUrl"]
        logger.info("Resolved SQS queue %s -> %s", queue_name, queue_url)
        return queue_url

    async def approximate_count(self, handle: str) -> int:
        response = await self._call(
            "get_queue_attributes",
            QueueUrl=handle,
            AttributeNames=["ApproximateNumberOfMessages"],
        )
        attributes = response.get("Attributes", {})
        return int(attributes.get("ApproximateNumberOfMessages", 0))

    async def receive(
        self,
        handle: str,
        wait_seconds: int,
        max_messages: int,
        visibility_timeout: int,
    ) -> list[Message]:
        response = await self._call(
            "receive_message",
            QueueUrl=handle,
            WaitTimeSeconds=wait_seconds,
            MaxNumberOfMessages=max_messages,
            VisibilityTimeout=visibility_timeout,
            AttributeNames=_RECEIVE_ATTRIBUTES,
        )
        return [self._parse_message(raw) for raw in response.get("Messages", [])]

    async def delete(self, handle: str, receipt_handles: Sequence[str]) -> None:
        self._check_delete_batch(receipt_handles)
        if not receipt_handles:
            return

        entries = [
            {"Id": uuid.uuid4().hex, "ReceiptHandle": receipt_handle}
            for receipt_handle in receipt_handles
        ]
        response = await self._call(
            "delete_message_batch",
            QueueUrl=handle,
            Entries=entries,
        )

        failed = response.get("Failed", [])
        if failed:
            codes = sorted({entry.get("Code", "unknown") for entry in failed})
            raise QueueServiceError(
                f"SQS delete_message_batch failed for {len(failed)}/{len(entries)} entries: "
                f"{', '.join(codes)}",
                operation="delete_message_batch",
            )

    async def extend_visibility(
        self,
        handle: str,
        receipt_handle: str,
        timeout_seconds: int,
    ) -> None:
        await self._call(
            "change_message_visibility",
            QueueUrl=handle,
            ReceiptHandle=receipt_handle,
            VisibilityTimeout=timeout_seconds,
        )

    @staticmethod
    def _parse_message(raw: dict[str, Any]) -> Message:
        """Convert a boto3 message dict into a Message."""
        attributes = raw.get("Attributes", {})

        first_received_at = None
        first_received_ms = attributes.get("ApproximateFirstReceiveTimestamp")
        if first_received_ms:
            first_received_at = datetime.fromtimestamp(
                int(first_received_ms) / 1000, tz=timezone.utc
            )

        return Message(
            message_id=raw["MessageId"],
            body=raw.get("Body", ""),
            receipt_handle=raw["ReceiptHandle"],
            receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
            first_received_at=first_received_at,
        )
