"""In-process job executor using asyncio tasks.

Each submitted job body runs as its own task on the event loop. An optional
semaphore caps how many bodies run at once; by default there is no cap.
No external dependencies (Redis, Celery) needed.
"""

import asyncio
import logging
from typing import Dict, Optional

from app.jobs.dispatcher import JobBody, JobDispatcher
from app.jobs.models import JobStatus
from app.jobs.registry import JobRegistry

logger = logging.getLogger(__name__)


class InProcessQueue(JobDispatcher):
    """Fire-and-forget executor whose failure channel updates job state."""

    def __init__(self, registry: JobRegistry, max_concurrent: int = 0):
        """
        registry: where job state lives; used to fail jobs whose body crashed.
        max_concurrent: ceiling on simultaneously running bodies (0 = unbounded).
        """
        self._registry = registry
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else None
        )
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, job_id: str, body: JobBody) -> str:
        if not self._running:
            raise RuntimeError("Dispatcher is not running")
        task = asyncio.create_task(self._run(job_id, body), name=f"job-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda t, jid=job_id: self._on_done(jid, t))
        return job_id

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d in-flight job(s) on shutdown", len(tasks))

    async def join(self) -> None:
        """Wait until every submitted body has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def _run(self, job_id: str, body: JobBody) -> None:
        if self._semaphore is None:
            await body()
            return
        async with self._semaphore:
            await body()

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error(
            "Job %s raised past its body: %s: %s",
            job_id, type(exc).__name__, exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        self._fail(job_id, f"{type(exc).__name__}: {exc}")

    def _fail(self, job_id: str, message: str) -> None:
        job = self._registry.get(job_id)
        if job is None or job.status.is_terminal:
            return
        if job.status == JobStatus.PENDING:
            self._registry.update(job_id, status=JobStatus.RUNNING)
        self._registry.update(job_id, status=JobStatus.FAILED, error=message)
