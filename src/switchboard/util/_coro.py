from __future__ import annotations

import inspect

from ..util._types import MaybeAwaitable, T


async def noop_coroutine() -> None:
    pass


async def resolve(value: MaybeAwaitable[T]) -> T:
    """Await `value` if it is awaitable, otherwise return it as-is."""
    if inspect.isawaitable(value):
        return await value
    return value
