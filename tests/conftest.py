from collections.abc import Callable, Sequence
from typing import Any

import anyio
import pytest

from fastsqs.datastructures import Message

QUEUE_URL = "https://sqs.eu-central-1.amazonaws.com/123456789012/some-queue"


def make_message(message_id: str, body: str = "", receive_count: int = 1) -> Message:
    return Message(
        id=message_id,
        body=body or f"body-{message_id}",
        receipt_handle=f"receipt-{message_id}",
        system_attributes={"ApproximateReceiveCount": str(receive_count)},
    )


class FakeQueueClient:
    """In-memory queue client returning the configured batches in order.

    A batch can be an exception instance, which is raised by the receive call.
    Once the batches are exhausted 'on_exhausted' is called and empty batches
    are returned.
    """

    def __init__(self, batches: Sequence[list[Message] | Exception] = ()) -> None:
        self.batches = list(batches)
        self.receive_calls: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.events: list[tuple[str, str]] = []
        self.delete_error: Exception | None = None
        self.delete_delay: float = 0
        self.on_exhausted: Callable[[], Any] | None = None

    async def receive_batch(
        self,
        queue_url: str,
        max_messages: int,
        visibility_timeout: int | None = None,
        wait_time_seconds: int | None = None,
        message_attribute_names: Sequence[str] = (),
        message_system_attribute_names: Sequence[str] = (),
    ) -> list[Message]:
        await anyio.sleep(0)
        self.receive_calls.append(
            {
                "queue_url": queue_url,
                "max_messages": max_messages,
                "visibility_timeout": visibility_timeout,
                "wait_time_seconds": wait_time_seconds,
                "message_attribute_names": message_attribute_names,
                "message_system_attribute_names": message_system_attribute_names,
            }
        )

        if not self.batches:
            if self.on_exhausted:
                self.on_exhausted()
            return []

        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch

        return batch

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        if self.delete_delay:
            await anyio.sleep(self.delete_delay)

        if self.delete_error:
            raise self.delete_error

        self.events.append(("delete", receipt_handle))
        self.deleted.append(receipt_handle)


@pytest.fixture
def queue_url() -> str:
    return QUEUE_URL


@pytest.fixture
def client() -> FakeQueueClient:
    return FakeQueueClient()
