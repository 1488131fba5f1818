"""Job dispatcher interface."""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

# A job body: takes no arguments, drives its own registry transitions
JobBody = Callable[[], Awaitable[None]]


class JobDispatcher(ABC):
    """Abstract interface for running job bodies off the request path."""

    @abstractmethod
    async def submit(self, job_id: str, body: JobBody) -> str:
        """Schedule a job body for execution. Returns job_id immediately."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher, cancelling work still in flight."""
        ...
