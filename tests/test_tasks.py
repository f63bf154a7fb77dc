from unittest.mock import MagicMock

import anyio
import pytest

from fastsqs.concurrency.shutdown import ShutdownCoordinator
from fastsqs.concurrency.tasks import MessageProcessTask, PollState, SQSPollTask
from fastsqs.datastructures import ConsumerConfig, Message
from tests.conftest import QUEUE_URL, FakeQueueClient, make_message


def build_config(**overrides) -> ConsumerConfig:
    options = {
        "queue_url": QUEUE_URL,
        "batch_size": 3,
        "poll_delay_seconds": 0,
        "visibility_timeout": 30,
        "wait_time_seconds": 20,
        "message_attribute_names": ("All",),
        "message_system_attribute_names": ("ApproximateReceiveCount",),
        "delete_messages": True,
        "max_concurrent_deletes": 2,
        "delete_timeout_seconds": 1.0,
    }
    options.update(overrides)
    return ConsumerConfig(**options)


async def collect(channel) -> list[Message]:
    async with channel:
        return [message async for message in channel]


class TestSQSPollTask:
    @pytest.fixture
    def shutdown(self) -> ShutdownCoordinator:
        return ShutdownCoordinator()

    @pytest.mark.asyncio
    async def test_sends_every_message_and_closes_the_channel(
        self, client: FakeQueueClient, shutdown: ShutdownCoordinator
    ):
        shutdown.activate()
        client.batches = [[make_message("a"), make_message("b")], [make_message("c")]]
        client.on_exhausted = shutdown.stop
        task = SQSPollTask(build_config(), client, shutdown)
        send_channel, receive_channel = anyio.create_memory_object_stream[Message](0)

        received: list[Message] = []
        with anyio.fail_after(5):
            async with anyio.create_task_group() as tg:

                async def consume() -> None:
                    received.extend(await collect(receive_channel))

                tg.start_soon(consume)
                await task.start(send_channel)

        assert [message.id for message in received] == ["a", "b", "c"]
        assert task.state == PollState.STOPPED

    @pytest.mark.asyncio
    async def test_receive_request(self, client: FakeQueueClient, shutdown: ShutdownCoordinator):
        shutdown.activate()
        client.on_exhausted = shutdown.stop
        task = SQSPollTask(build_config(), client, shutdown)
        send_channel, receive_channel = anyio.create_memory_object_stream[Message](0)

        with anyio.fail_after(5):
            await task.start(send_channel)

        assert client.receive_calls == [
            {
                "queue_url": QUEUE_URL,
                "max_messages": 3,
                "visibility_timeout": 30,
                "wait_time_seconds": 20,
                "message_attribute_names": ("All",),
                "message_system_attribute_names": ("ApproximateReceiveCount",),
            }
        ]
        receive_channel.close()

    @pytest.mark.asyncio
    async def test_receive_error_requests_shutdown(
        self, client: FakeQueueClient, shutdown: ShutdownCoordinator
    ):
        shutdown.activate()
        client.batches = [ConnectionError("boom")]
        task = SQSPollTask(build_config(), client, shutdown)
        send_channel, receive_channel = anyio.create_memory_object_stream[Message](0)

        with anyio.fail_after(5):
            await task.start(send_channel)

        assert shutdown.stopped()
        assert shutdown.reason == "message receive failure"
        assert task.state == PollState.STOPPED
        assert await collect(receive_channel) == []

    @pytest.mark.asyncio
    async def test_poll_delay_is_interrupted_by_stop(
        self, client: FakeQueueClient, shutdown: ShutdownCoordinator
    ):
        shutdown.activate()
        task = SQSPollTask(build_config(poll_delay_seconds=60), client, shutdown)
        send_channel, receive_channel = anyio.create_memory_object_stream[Message](0)

        with anyio.fail_after(5):
            async with anyio.create_task_group() as tg:
                tg.start_soon(task.start, send_channel)
                await anyio.sleep(0.05)
                assert task.state == PollState.POLLING
                shutdown.stop()

        assert len(client.receive_calls) == 1
        assert task.state == PollState.STOPPED
        receive_channel.close()

    @pytest.mark.asyncio
    async def test_stopped_before_start_never_receives(
        self, client: FakeQueueClient, shutdown: ShutdownCoordinator
    ):
        shutdown.stop()
        shutdown.activate()
        task = SQSPollTask(build_config(), client, shutdown)
        send_channel, receive_channel = anyio.create_memory_object_stream[Message](0)

        await task.start(send_channel)

        assert not client.receive_calls
        assert await collect(receive_channel) == []


class TestMessageProcessTask:
    async def run(self, task: MessageProcessTask, messages: list[Message]) -> None:
        send_channel, receive_channel = anyio.create_memory_object_stream[Message](0)
        with anyio.fail_after(5):
            async with anyio.create_task_group() as tg:
                tg.start_soon(task.start, receive_channel)
                async with send_channel:
                    for message in messages:
                        await send_channel.send(message)

    @pytest.mark.asyncio
    async def test_handler_failure_skips_delete(self, client: FakeQueueClient):
        async def handler(message: Message) -> None:
            if message.id == "b":
                raise ValueError("invalid body")

        task = MessageProcessTask(build_config(), client, handler)
        await self.run(task, [make_message("a"), make_message("b"), make_message("c")])

        assert sorted(client.deleted) == ["receipt-a", "receipt-c"]

    @pytest.mark.asyncio
    async def test_delete_disabled(self, client: FakeQueueClient):
        async def handler(message: Message) -> None:
            pass

        task = MessageProcessTask(build_config(delete_messages=False), client, handler)
        await self.run(task, [make_message("a")])

        assert not client.deleted

    @pytest.mark.asyncio
    async def test_handles_the_next_message_while_deleting(self, client: FakeQueueClient):
        handled: list[str] = []
        client.delete_delay = 0.2

        async def handler(message: Message) -> None:
            handled.append(message.id)
            if message.id == "b":
                assert not client.deleted

        task = MessageProcessTask(build_config(), client, handler)
        await self.run(task, [make_message("a"), make_message("b")])

        assert handled == ["a", "b"]
        assert sorted(client.deleted) == ["receipt-a", "receipt-b"]

    @pytest.mark.asyncio
    async def test_slow_delete_is_abandoned_after_the_timeout(self, client: FakeQueueClient):
        async def handler(message: Message) -> None:
            pass

        client.delete_delay = 30
        logger = MagicMock()
        task = MessageProcessTask(
            build_config(delete_timeout_seconds=0.05), client, handler, logger=logger
        )

        await self.run(task, [make_message("a")])

        assert not client.deleted
        logger.error.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_failure_is_logged(self, client: FakeQueueClient):
        async def handler(message: Message) -> None:
            pass

        client.delete_error = RuntimeError("AccessDenied")
        logger = MagicMock()
        task = MessageProcessTask(build_config(), client, handler, logger=logger)

        await self.run(task, [make_message("a")])

        logger.exception.assert_called_once()
        assert "deleting" in logger.exception.call_args[0][0]

    @pytest.mark.asyncio
    async def test_handler_failure_is_logged_with_message_context(self, client: FakeQueueClient):
        async def handler(message: Message) -> None:
            raise ValueError("invalid body")

        logger = MagicMock()
        task = MessageProcessTask(build_config(), client, handler, logger=logger)

        await self.run(task, [make_message("a", receive_count=3)])

        logger.contextualize.assert_any_call(message_id="a", queue_url=QUEUE_URL)
        assert logger.exception.call_args[1]["extra"] == {
            "receive_count": 3,
            "receipt_handle": "receipt-a",
        }
