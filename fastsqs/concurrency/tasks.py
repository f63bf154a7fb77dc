from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from fastsqs.clients.sqs import QueueClient
from fastsqs.concurrency.shutdown import ShutdownCoordinator
from fastsqs.datastructures import ConsumerConfig, Message
from fastsqs.logger import FastSQSLogger, get_logger
from fastsqs.types import AsyncHandler


class PollState(StrEnum):
    IDLE = "IDLE"
    POLLING = "POLLING"
    CLOSING = "CLOSING"
    STOPPED = "STOPPED"


class SQSPollTask:
    """Fetches batches from the queue and hands messages over one at a time.

    Every send on the zero-buffer channel waits for the process task to
    receive, so at most one fetched message is waiting to be handled.
    The channel is closed when the loop exits, whatever the reason.
    """

    def __init__(
        self,
        config: ConsumerConfig,
        client: QueueClient,
        shutdown: ShutdownCoordinator,
        logger: FastSQSLogger | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.shutdown = shutdown
        self.logger = logger or get_logger("poller")
        self.state = PollState.IDLE

    async def start(self, channel: MemoryObjectSendStream[Message]) -> None:
        self.logger.debug(f"The message poll loop started for {self.config.queue_url}")
        self.state = PollState.POLLING

        async with channel:
            while not self.shutdown.stopped():
                try:
                    messages = await self.client.receive_batch(
                        self.config.queue_url,
                        self.config.batch_size,
                        visibility_timeout=self.config.visibility_timeout,
                        wait_time_seconds=self.config.wait_time_seconds,
                        message_attribute_names=self.config.message_attribute_names,
                        message_system_attribute_names=self.config.message_system_attribute_names,
                    )
                except Exception:
                    self.logger.exception(
                        f"Could not receive messages from {self.config.queue_url}, "
                        "the poll loop will terminate."
                    )
                    self.shutdown.stop(reason="message receive failure")
                    break

                for message in messages:
                    await channel.send(message)

                await self.shutdown.sleep(self.config.poll_delay_seconds)

            self.state = PollState.CLOSING
            self.logger.debug("Stop signal received, shutting down the message receiver.")

        self.state = PollState.STOPPED
        self.logger.debug(f"The message poll loop stopped for {self.config.queue_url}")


class MessageProcessTask:
    """Feeds channel messages to the handler one by one and deletes handled ones.

    Deletes run as child tasks, bounded in number and duration, so the next
    message can be handled while a delete is still in flight.
    """

    def __init__(
        self,
        config: ConsumerConfig,
        client: QueueClient,
        handler: AsyncHandler,
        logger: FastSQSLogger | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.handler = handler
        self.logger = logger or get_logger("processor")

    async def start(self, channel: MemoryObjectReceiveStream[Message]) -> None:
        # anyio primitives must be created inside a running event loop.
        delete_limiter = anyio.CapacityLimiter(self.config.max_concurrent_deletes)
        async with anyio.create_task_group() as deletes, channel:
            async for message in channel:
                handled = await self._handle(message)
                if handled and self.config.delete_messages:
                    deletes.start_soon(self._delete, message, delete_limiter)

        self.logger.debug("The message channel is closed and drained.")

    async def _handle(self, message: Message) -> bool:
        with self._contextualize(message):
            try:
                await self.handler(message)
            except Exception:
                self.logger.exception(
                    "Error processing message, it will be redelivered after the "
                    "visibility timeout.",
                    extra={
                        "receive_count": message.receive_count,
                        "receipt_handle": message.receipt_handle,
                    },
                )
                return False

            self.logger.info("Message successfully processed.")
            return True

    async def _delete(self, message: Message, limiter: anyio.CapacityLimiter) -> None:
        with self._contextualize(message):
            async with limiter:
                self.logger.debug(f"Deleting message {message.id}")
                try:
                    with anyio.fail_after(self.config.delete_timeout_seconds):
                        await self.client.delete_message(
                            self.config.queue_url, message.receipt_handle
                        )
                except TimeoutError:
                    self.logger.error(
                        f"The message delete took longer than "
                        f"{self.config.delete_timeout_seconds}s. It may be redelivered."
                    )
                except Exception:
                    self.logger.exception("Error deleting message. It may be redelivered.")

    @contextmanager
    def _contextualize(self, message: Message) -> Iterator[None]:
        with self.logger.contextualize(message_id=message.id, queue_url=self.config.queue_url):
            yield
