"""Consumer implementation."""

from collections.abc import Sequence
from typing import Annotated, Any

import anyio
from pydantic import ConfigDict, Field, validate_call

from fastsqs.clients.sqs import QueueClient, SQSClient
from fastsqs.concurrency.shutdown import ShutdownCoordinator
from fastsqs.concurrency.tasks import MessageProcessTask, SQSPollTask
from fastsqs.concurrency.utils import ensure_async_callable_function
from fastsqs.datastructures import ConsumerConfig, Message
from fastsqs.exceptions import FastSQSException
from fastsqs.logger import FastSQSLogger, get_logger
from fastsqs.types import AsyncHandler

MIN_BATCH_SIZE = 1
# SQS receives at most 10 messages per request.
MAX_BATCH_SIZE = 10


def resolve_batch_size(batch_size: int | None) -> int:
    if not batch_size:
        return MIN_BATCH_SIZE

    return max(MIN_BATCH_SIZE, min(batch_size, MAX_BATCH_SIZE))


class Consumer:
    """Long-running SQS consumer.

    Messages flow from the poll task to the process task through a
    zero-buffer channel. The handler is called for each message in the
    order they were received and, on success, the message is deleted
    from the queue unless 'delete_messages' is False.

    Example:
        async def handle(message: Message) -> None:
            ...

        consumer = Consumer("https://sqs.eu-central-1.amazonaws.com/123/queue", handle)
        anyio.run(consumer.start)
    """

    @validate_call(config=ConfigDict(strict=True, arbitrary_types_allowed=True))
    def __init__(
        self,
        queue_url: str,
        handler: AsyncHandler,
        *,
        client: Any = None,
        batch_size: int | None = None,
        poll_delay_ms: int = 0,
        visibility_timeout: Annotated[int, Field(ge=0)] | None = None,
        wait_time_seconds: Annotated[int, Field(ge=0, le=20)] | None = None,
        message_attribute_names: Sequence[str] = (),
        message_system_attribute_names: Sequence[str] = (),
        delete_messages: bool | None = None,
        max_concurrent_deletes: Annotated[int, Field(ge=1)] = 10,
        delete_timeout_seconds: Annotated[float, Field(gt=0)] = 10.0,
        handle_signals: bool = True,
        logger: FastSQSLogger | None = None,
    ) -> None:
        if not queue_url.strip():
            raise FastSQSException(f"The queue url value ({queue_url!r}) is invalid.")

        if poll_delay_ms < 0:
            raise FastSQSException(f"The poll delay ({poll_delay_ms}ms) must not be negative.")

        ensure_async_callable_function(handler)

        self.config = ConsumerConfig(
            queue_url=queue_url,
            batch_size=resolve_batch_size(batch_size),
            poll_delay_seconds=poll_delay_ms / 1000,
            visibility_timeout=visibility_timeout,
            wait_time_seconds=wait_time_seconds,
            message_attribute_names=tuple(message_attribute_names),
            message_system_attribute_names=tuple(message_system_attribute_names),
            delete_messages=True if delete_messages is None else delete_messages,
            max_concurrent_deletes=max_concurrent_deletes,
            delete_timeout_seconds=delete_timeout_seconds,
        )
        self.handler = handler
        self.handle_signals = handle_signals
        self.logger = logger or get_logger("consumer")

        self.client: QueueClient = client if client is not None else SQSClient(logger=logger)
        self.shutdown = ShutdownCoordinator(logger=logger)
        self.poll_task = SQSPollTask(self.config, self.client, self.shutdown, logger=logger)
        self.process_task = MessageProcessTask(self.config, self.client, handler, logger=logger)
        self._started = False

    async def start(self) -> None:
        """Runs the consumer until it is stopped.

        The poll loop runs on the calling task while messages are handled on
        a separate one. Returns once the channel is drained and the pending
        deletes are finished.
        """
        if self._started:
            raise FastSQSException("The consumer can only be started once.")

        self._started = True
        self.shutdown.activate()
        self.logger.debug(f"Consumer starting for queue {self.config.queue_url}")

        send_channel, receive_channel = anyio.create_memory_object_stream[Message](0)
        async with anyio.create_task_group() as tg:
            tg.start_soon(self.process_task.start, receive_channel)

            async with anyio.create_task_group() as watchers:
                if self.handle_signals:
                    watchers.start_soon(self.shutdown.watch_signals)

                await self.poll_task.start(send_channel)
                watchers.cancel_scope.cancel()

        self.logger.debug(f"Consumer stopped for queue {self.config.queue_url}")

    def stop(self) -> bool:
        """Requests a graceful shutdown.

        Must be called from the event loop running 'start' (e.g. inside a
        handler or a task). Calling it more than once is harmless.

        Returns:
            True for the call that triggered the shutdown, False otherwise.
        """
        return self.shutdown.stop(reason="consumer stop called")
