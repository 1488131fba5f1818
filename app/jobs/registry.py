"""In-memory job registry with bounded retention.

Tracks the lifecycle of background work without knowing what the work is.
Records live in one process; a periodic reaper evicts anything older than
the retention window, whatever its status.
"""

import asyncio
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from app.jobs.models import ALLOWED_TRANSITIONS, JobRecord, JobStatus, utcnow

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class JobRegistry:
    """Thread-safe map of job id -> JobRecord.

    One instance is built at startup and handed to whatever creates or
    drives jobs. Tests build their own, optionally with a fake clock.
    """

    def __init__(
        self,
        retention_s: int = 3600,
        reap_interval_s: int = 600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()
        self._retention_s = retention_s
        self._reap_interval_s = reap_interval_s
        self._clock = clock
        self._reaper_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, user_id: Optional[str] = None, kind: str = "discovery") -> str:
        """Insert a fresh `pending` record and return its id."""
        now = self._clock()
        job = JobRecord(kind=kind, user_id=user_id, created_at=now, updated_at=now)
        with self._lock:
            # uuid4 collisions are not a practical concern, but ids are never reused
            while job.id in self._jobs:
                job = JobRecord(kind=kind, user_id=user_id, created_at=now, updated_at=now)
            self._jobs[job.id] = job
        logger.info("Created %s job %s", kind, job.id)
        return job.id

    def update(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        result: Optional[Dict[str, Any]] = _UNSET,
        error: Optional[str] = _UNSET,
    ) -> bool:
        """Partially update a job. Returns False for unknown ids or illegal changes."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.warning("Job %s not found for update", job_id)
                return False

            if job.status.is_terminal:
                # Terminal records are frozen, even for same-status rewrites
                logger.warning("Job %s is already %s", job_id, job.status.value)
                return False

            new_status = job.status
            if status is not None and status != job.status:
                if status not in ALLOWED_TRANSITIONS[job.status]:
                    logger.warning(
                        "Rejected transition %s -> %s for job %s",
                        job.status.value, status.value, job_id,
                    )
                    return False
                new_status = status

            if result is not _UNSET and new_status != JobStatus.COMPLETED:
                logger.warning("Result given for job %s that is not completed", job_id)
                return False
            if error is not _UNSET and new_status != JobStatus.FAILED:
                logger.warning("Error given for job %s that is not failed", job_id)
                return False

            job.status = new_status
            if result is not _UNSET:
                job.result = result
            if error is not _UNSET:
                job.error = error
            job.updated_at = self._clock()

        logger.info("Updated job %s to status %s", job_id, new_status.value)
        return True

    def get(self, job_id: str) -> Optional[JobRecord]:
        """Return a snapshot of the job, or None if absent or reaped."""
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job is not None else None

    def delete(self, job_id: str) -> bool:
        with self._lock:
            deleted = self._jobs.pop(job_id, None) is not None
        if deleted:
            logger.info("Deleted job %s", job_id)
        return deleted

    def list_jobs(self) -> List[JobRecord]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._jobs.values()]

    def stats(self) -> Dict[str, int]:
        """Counts per status, plus the total."""
        with self._lock:
            statuses = [job.status for job in self._jobs.values()]
        counts = {status.value: statuses.count(status) for status in JobStatus}
        counts["total"] = len(statuses)
        return counts

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def reap(self, max_age_s: Optional[float] = None) -> int:
        """Remove every job created more than `max_age_s` ago. Returns the count."""
        if max_age_s is None:
            max_age_s = self._retention_s
        cutoff = self._clock() - timedelta(seconds=max_age_s)
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if job.created_at < cutoff]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info("Reaped %d job(s) older than %ss", len(expired), max_age_s)
        return len(expired)

    async def start_reaper(self) -> None:
        if self._reaper_task is None:
            self._reaper_task = asyncio.create_task(self._reaper_loop())
            logger.info(
                "Started job reaper (every %ss, retention %ss)",
                self._reap_interval_s, self._retention_s,
            )

    async def stop_reaper(self) -> None:
        if self._reaper_task:
            self._reaper_task.cancel()
            try:
                await self._reaper_task
            except asyncio.CancelledError:
                pass
            self._reaper_task = None
            logger.info("Stopped job reaper")

    async def _reaper_loop(self) -> None:
        while True:
            await asyncio.sleep(self._reap_interval_s)
            try:
                self.reap()
            except Exception:
                logger.exception("Job reaper pass failed")
