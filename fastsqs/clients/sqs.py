import os
from collections.abc import Sequence
from functools import partial
from typing import Any, Protocol

import anyio
import boto3
from botocore.config import Config

from fastsqs.datastructures import Message, MessageAttribute
from fastsqs.logger import FastSQSLogger, get_logger
from fastsqs.types import RawMessage

DEFAULT_REGION = "eu-central-1"
DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_MODE = "adaptive"


class QueueClient(Protocol):
    async def receive_batch(
        self,
        queue_url: str,
        max_messages: int,
        visibility_timeout: int | None = None,
        wait_time_seconds: int | None = None,
        message_attribute_names: Sequence[str] = (),
        message_system_attribute_names: Sequence[str] = (),
    ) -> list[Message]: ...

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None: ...


def create_sqs_client(region_name: str | None = None) -> Any:
    """Builds a boto3 SQS client with adaptive retries.

    The region falls back to AWS_REGION and then to DEFAULT_REGION.
    """
    if not region_name:
        region_name = os.getenv("AWS_REGION") or DEFAULT_REGION

    config = Config(
        retries={"max_attempts": DEFAULT_RETRY_MAX_ATTEMPTS, "mode": DEFAULT_RETRY_MODE}
    )
    return boto3.client("sqs", region_name=region_name, config=config)


class SQSClient:
    """Async adapter over a blocking boto3 SQS client."""

    def __init__(self, client: Any = None, logger: FastSQSLogger | None = None) -> None:
        self.client = client if client is not None else create_sqs_client()
        self.logger = logger or get_logger("client")

    async def receive_batch(
        self,
        queue_url: str,
        max_messages: int,
        visibility_timeout: int | None = None,
        wait_time_seconds: int | None = None,
        message_attribute_names: Sequence[str] = (),
        message_system_attribute_names: Sequence[str] = (),
    ) -> list[Message]:
        request: dict[str, Any] = {
            "QueueUrl": queue_url,
            "MaxNumberOfMessages": max_messages,
        }
        if visibility_timeout is not None:
            request["VisibilityTimeout"] = visibility_timeout

        if wait_time_seconds is not None:
            request["WaitTimeSeconds"] = wait_time_seconds

        if message_attribute_names:
            request["MessageAttributeNames"] = list(message_attribute_names)

        if message_system_attribute_names:
            request["MessageSystemAttributeNames"] = list(message_system_attribute_names)

        response = await anyio.to_thread.run_sync(partial(self.client.receive_message, **request))

        raw_messages: list[RawMessage] = response.get("Messages", [])
        self.logger.debug(f"Received {len(raw_messages)} message(s) from {queue_url}")
        return [self._deserialize_message(raw_message) for raw_message in raw_messages]

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        await anyio.to_thread.run_sync(
            partial(self.client.delete_message, QueueUrl=queue_url, ReceiptHandle=receipt_handle),
            abandon_on_cancel=True,
        )

    def _deserialize_message(self, raw_message: RawMessage) -> Message:
        attributes = {
            name: MessageAttribute(
                data_type=value.get("DataType", "String"),
                string_value=value.get("StringValue"),
                binary_value=value.get("BinaryValue"),
            )
            for name, value in raw_message.get("MessageAttributes", {}).items()
        }

        return Message(
            id=raw_message["MessageId"],
            body=raw_message.get("Body", ""),
            receipt_handle=raw_message["ReceiptHandle"],
            md5_of_body=raw_message.get("MD5OfBody", ""),
            attributes=attributes,
            system_attributes=dict(raw_message.get("Attributes", {})),
        )
