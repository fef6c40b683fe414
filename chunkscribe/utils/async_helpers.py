"""
Helpers for calling blocking code from async services.
"""
import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


async def run_in_thread(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking callable in the default executor without blocking the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


async def with_timeout(awaitable: Awaitable[T], timeout_seconds: Optional[float]) -> T:
    """Await with an optional timeout; ``None`` waits indefinitely."""
    if timeout_seconds is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
