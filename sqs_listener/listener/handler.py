"""Invocation of the user-supplied message handler."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Union

# process(body) -> None, either sync or ``async def``. Raising signals failure.
MessageHandler = Callable[[str], Union[None, Awaitable[Any]]]


def is_async_handler(handler: MessageHandler) -> bool:
    """Check whether the handler (or its __call__) is a coroutine function."""
    if inspect.iscoroutinefunction(handler):
        return True
    call = getattr(handler, "__call__", None)
    return inspect.iscoroutinefunction(call)


async def invoke_handler(handler: MessageHandler, body: str) -> None:
    """
    Run the handler on one message body.

    Coroutine handlers are awaited on the event loop. Plain callables run in a
    worker thread so blocking handler code never stalls the schedules.
    Exceptions propagate to the caller.
    """
    if is_async_handler(handler):
        await handler(body)
        return

    result = await asyncio.to_thread(handler, body)
    if inspect.isawaitable(result):
        await result
