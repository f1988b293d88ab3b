from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from discope.exceptions import DIScopeDependencyCycleError

# Keys currently under construction in this thread/context.
_resolution_stack: ContextVar[tuple[Any, ...]] = ContextVar(
    "discope_resolution_stack",
    default=(),
)


@contextmanager
def resolving(service_key: Any) -> Iterator[None]:
    """Track ``service_key`` as under construction for the duration of the block.

    Re-entering a key that is already on the stack means the graph loops back
    on itself, which validation did not catch (for example through a factory
    function or a provider built with ``validate=False``).

    Raises:
        DIScopeDependencyCycleError: If ``service_key`` is already being resolved.

    """
    stack = _resolution_stack.get()
    if service_key in stack:
        raise DIScopeDependencyCycleError(service_key, stack[stack.index(service_key) :])

    token = _resolution_stack.set((*stack, service_key))
    try:
        yield
    finally:
        _resolution_stack.reset(token)
