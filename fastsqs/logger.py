"""Logging configuration for FastSQS."""

import json
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast

DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_LOG_PATH = "./logs"


class ContextStore:
    """A task-safe store for logging context."""

    def __init__(self) -> None:
        """Initializes the ContextStore."""
        self._context: ContextVar[dict[str, Any]] = ContextVar("fastsqs_log_context")

    def set(self, data: dict[str, Any]) -> Any:
        """Sets the context data.

        Args:
            data: The context data to set.

        Returns:
            A token that restores the previous context when passed to reset.
        """
        return self._context.set(data)

    def get(self) -> dict[str, Any]:
        """Gets the context data.

        Returns:
            The context data.
        """
        return self._context.get({})

    def reset(self, token: Any) -> None:
        """Restores the context that was active before the matching set."""
        self._context.reset(token)


_context_store = ContextStore()


class ContextFilter(logging.Filter):
    """A logging filter that injects context.

    The ContextStore and the 'extra' kwarg into each log record
    is used for this matter.

    """

    # These are the standard attributes of a LogRecord
    RESERVED_ATTRS = (
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Filters a log record.

        Args:
            record: The log record to filter.

        Returns:
            True if the record should be logged, False otherwise.
        """
        task_context = _context_store.get().copy()

        extra_context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED_ATTRS and key not in ("context",)
        }

        # Merge the two, with the per-call 'extra' context taking precedence.
        task_context.update(extra_context)
        record.context = task_context

        return True


class FastSQSLogger(logging.Logger):
    """A custom logger class with a 'contextualize' method."""

    @contextmanager
    def contextualize(self, **kwargs: Any) -> Iterator[None]:
        """A context manager to add temporary context to logs.

        Nested calls extend the outer context and restore it on exit.

        Example:
            with logger.contextualize(message_id="12345"):
                logger.info("This log will have the message_id.")
        """
        token = _context_store.set({**_context_store.get(), **kwargs})
        try:
            yield
        finally:
            _context_store.reset(token)


class TextFormatter(logging.Formatter):
    """Formats logs as a human-readable string."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        """Formats a log record.

        Args:
            record: The log record to format.

        Returns:
            The formatted log record.
        """
        log_message = super().format(record)

        if hasattr(record, "context") and record.context:
            context_text = " ".join(f"{k}={v}" for k, v in record.context.items() if v)
            if context_text:
                log_message += f" | {context_text}"

        return log_message


class JsonFormatter(logging.Formatter):
    """Formats logs as a JSON string."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        """Formats a log record.

        Args:
            record: The log record to format.

        Returns:
            The formatted log record.
        """
        log_object = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread": record.thread,
            **getattr(record, "context", {}),
        }

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, indent=None, separators=(",", ":"), default=str)


def get_log_level_from_env() -> int:
    value = os.getenv("FASTSQS_LOG_LEVEL", "").strip()
    if not value:
        return DEFAULT_LOG_LEVEL

    if value.isdigit():
        return int(value)

    level = logging.getLevelName(value.upper())
    if isinstance(level, int):
        return level

    return DEFAULT_LOG_LEVEL


def _build_log_file_path() -> Path:
    log_path = Path(os.getenv("FASTSQS_LOG_PATH", DEFAULT_LOG_PATH))
    log_path.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")
    return log_path / f"{timestamp}.log"


def setup_logger(
    log_level: int | None = None,
    log_serialize: bool | None = None,
    log_to_file: bool | None = None,
) -> FastSQSLogger:
    """Enables and configures the FastSQS logger.

    Arguments left as None are read from the FASTSQS_* environment variables.
    """
    if log_level is None:
        log_level = get_log_level_from_env()

    if log_serialize is None:
        log_serialize = bool(int(os.getenv("FASTSQS_ENABLE_LOG_SERIALIZE", 0)))

    if log_to_file is None:
        log_to_file = bool(os.getenv("FASTSQS_LOG_TO_FILE", ""))

    logging.setLoggerClass(FastSQSLogger)
    logger = logging.getLogger("fastsqs")
    logging.setLoggerClass(logging.Logger)

    if logger.hasHandlers():
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    logger.setLevel(log_level)
    logger.propagate = False

    formatter: logging.Formatter = JsonFormatter()
    if not log_serialize:
        fmt = (
            "%(asctime)s | %(levelname)-8s "
            "| %(name)s "
            "| %(module)s:%(funcName)s:%(lineno)d "
            "| %(message)s"
        )
        formatter = TextFormatter(fmt)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_to_file:
        handlers.append(logging.FileHandler(_build_log_file_path(), encoding="utf-8"))

    for handler in handlers:
        handler.addFilter(ContextFilter())
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return cast(FastSQSLogger, logger)


def get_logger(component: str) -> FastSQSLogger:
    """Returns the child logger of a pipeline component (e.g. 'fastsqs.poller')."""
    logging.setLoggerClass(FastSQSLogger)
    component_logger = logging.getLogger(f"fastsqs.{component}")
    logging.setLoggerClass(logging.Logger)
    return cast(FastSQSLogger, component_logger)


logger: FastSQSLogger = setup_logger()
