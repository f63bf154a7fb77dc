import signal

import anyio

from fastsqs.logger import FastSQSLogger, get_logger

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    """One-shot stop signal shared by the poll and process stages.

    A stop requested before the event loop is running is remembered and
    applied once the coordinator is bound with 'activate'.
    """

    def __init__(self, logger: FastSQSLogger | None = None) -> None:
        self.logger = logger or get_logger("shutdown")
        self.reason: str | None = None
        self._requested = False
        self._event: anyio.Event | None = None

    def activate(self) -> None:
        """Binds the stop signal to the running event loop."""
        self._event = anyio.Event()
        if self._requested:
            self._event.set()

    def stop(self, reason: str = "stop requested") -> bool:
        """Requests the pipeline shutdown.

        Returns:
            True for the call that triggered the shutdown, False for repeated calls.
        """
        if self._requested:
            self.logger.debug(f"Shutdown already requested ({self.reason}), ignoring: {reason}")
            return False

        self._requested = True
        self.reason = reason
        self.logger.debug(f"Shutdown requested: {reason}")
        if self._event is not None:
            self._event.set()

        return True

    def stopped(self) -> bool:
        return self._requested

    async def wait(self) -> None:
        if self._event is None:
            raise RuntimeError("The shutdown coordinator is not active.")

        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleeps for the given seconds, waking up early on shutdown."""
        with anyio.move_on_after(seconds):
            await self.wait()

    async def watch_signals(self) -> None:
        """Turns the first termination signal into a shutdown request."""
        with anyio.open_signal_receiver(*TERMINATION_SIGNALS) as signals:
            async for signum in signals:
                self.logger.debug(f"Shutdown signal {signal.Signals(signum).name} received.")
                self.stop(reason=f"signal {signal.Signals(signum).name}")
                return
