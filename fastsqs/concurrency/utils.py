"""Concurrency utilities."""

import inspect
from collections.abc import Callable
from typing import Any

from fastsqs.types import AsyncHandler


def ensure_async_callable_function(callable_object: Callable[..., Any] | AsyncHandler) -> None:
    """Ensures that a callable is an async function.

    Plain functions, bound methods and functools.partial objects wrapping
    them are accepted.

    Args:
        callable_object: The callable to check.
    """
    if not inspect.iscoroutinefunction(callable_object):
        raise TypeError(f"The object {callable_object} must be an async function.")
