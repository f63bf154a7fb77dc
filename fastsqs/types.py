from collections.abc import Awaitable, Callable
from typing import Any

from fastsqs.datastructures import Message

AsyncHandler = Callable[[Message], Awaitable[Any]]
RawMessage = dict[str, Any]
