"""Shared plumbing for search and metadata providers."""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ProviderResult(BaseModel, Generic[T]):
    """A provider's output tagged with the provider that produced it."""
    source: str
    data: T
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_sync(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking SDK call in the default thread executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))


async def with_deadline(aw: Awaitable[T], timeout_s: Optional[float]) -> T:
    """Await `aw`, bounded by `timeout_s` seconds when it is set and positive."""
    if not timeout_s or timeout_s <= 0:
        return await aw
    return await asyncio.wait_for(aw, timeout=timeout_s)


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "Provider timed out"
    return str(exc) or type(exc).__name__
