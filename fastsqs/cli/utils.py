import importlib
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from fastsqs.exceptions import FastSQSCLIException

if TYPE_CHECKING:
    from fastsqs.consumer import Consumer


class LogLevels(StrEnum):
    """A class to represent log levels."""

    critical = "CRITICAL"
    fatal = "FATAL"
    error = "ERROR"
    warning = "WARNING"
    warn = "WARN"
    info = "INFO"
    debug = "DEBUG"


LOGGING_LEVEL_MAP: dict[str, int] = {
    LogLevels.critical: logging.CRITICAL,
    LogLevels.fatal: logging.FATAL,
    LogLevels.error: logging.ERROR,
    LogLevels.warning: logging.WARNING,
    LogLevels.warn: logging.WARNING,
    LogLevels.info: logging.INFO,
    LogLevels.debug: logging.DEBUG,
}


def get_log_level(level: LogLevels | str | int) -> int:
    """Get the log level.

    Args:
        level: The log level to get. Can be an integer, a LogLevels enum value, or a string.

    Returns:
        The log level as an integer.

    """
    if isinstance(level, int):
        return level

    if isinstance(level, LogLevels):
        return LOGGING_LEVEL_MAP[level.value]

    if isinstance(level, str) and level.upper() in LOGGING_LEVEL_MAP:
        return LOGGING_LEVEL_MAP[level.upper()]

    possible_values = [member.value for member in LogLevels]
    raise FastSQSCLIException(
        f"Invalid value for '--log-level', it should be one of {possible_values}"
    )


def discover_consumer(consumer_str: str) -> "Consumer":
    """Imports a consumer instance from a 'module:attribute' string."""
    from fastsqs.consumer import Consumer

    module_str, separator, attribute_str = consumer_str.partition(":")
    if not (separator and module_str and attribute_str):
        raise FastSQSCLIException(
            f"The consumer '{consumer_str}' must be in the format 'module:attribute'."
        )

    try:
        module = importlib.import_module(module_str)
    except ModuleNotFoundError as e:
        raise FastSQSCLIException(f"Could not import module '{module_str}'.") from e

    consumer = getattr(module, attribute_str, None)
    if not isinstance(consumer, Consumer):
        raise FastSQSCLIException(f"'{attribute_str}' is not a {Consumer.__name__} instance.")

    return consumer
