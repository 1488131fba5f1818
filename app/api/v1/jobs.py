"""Job management API: poll status, delete, registry stats."""

from fastapi import APIRouter, HTTPException, Response

from app.jobs.models import JobStatus
from app.jobs.registry import JobRegistry

router = APIRouter()

# Set by main.py during lifespan
_registry: JobRegistry = None


def set_registry(registry: JobRegistry):
    global _registry
    _registry = registry


def _require_registry() -> JobRegistry:
    if _registry is None:
        raise HTTPException(status_code=503, detail="Job registry not initialized")
    return _registry


@router.get("/jobs")
async def job_stats():
    """Counts of tracked jobs per status."""
    return _require_registry().stats()


@router.get("/jobs/{job_id}")
async def get_job_status(job_id: str):
    """Get the current status and results of a job."""
    job = _require_registry().get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    response = {
        "job_id": job.id,
        "kind": job.kind,
        "status": job.status.value,
        "created_at": job.created_at.isoformat(),
        "updated_at": job.updated_at.isoformat(),
    }

    if job.status == JobStatus.COMPLETED:
        response["result"] = job.result

    if job.status == JobStatus.FAILED:
        response["error"] = job.error

    return response


@router.delete("/jobs/{job_id}", status_code=204)
async def delete_job(job_id: str):
    if not _require_registry().delete(job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    return Response(status_code=204)
