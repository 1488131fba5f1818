"""Discovery API: submit a gift category for product discovery."""

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.config import settings
from app.discovery.pipeline import DiscoveryPipeline, DiscoveryRequest

router = APIRouter()

# Set by main.py during lifespan
_pipeline: DiscoveryPipeline = None


def set_pipeline(pipeline: DiscoveryPipeline):
    global _pipeline
    _pipeline = pipeline


class DiscoverySubmitRequest(BaseModel):
    user_id: str = Field(min_length=1)
    general_gift_idea_id: str = Field(min_length=1)
    count: Optional[int] = Field(default=None, ge=1)
    person_id: Optional[str] = None
    event_id: Optional[str] = None


class DiscoverySubmitResponse(BaseModel):
    job_id: str
    status: str
    message: str


@router.post("/discovery/jobs", response_model=DiscoverySubmitResponse, status_code=202)
async def submit_discovery(request: DiscoverySubmitRequest):
    """Start discovery for a category. Returns as soon as the job is queued."""
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Job dispatcher not initialized")

    count = request.count or settings.default_product_count
    if count > settings.max_product_count:
        raise HTTPException(
            status_code=422,
            detail=f"count must be at most {settings.max_product_count}",
        )

    job_id = await _pipeline.submit(
        DiscoveryRequest(
            user_id=request.user_id,
            general_gift_idea_id=request.general_gift_idea_id,
            count=count,
            person_id=request.person_id,
            event_id=request.event_id,
        )
    )
    return DiscoverySubmitResponse(
        job_id=job_id,
        status="pending",
        message="Discovery started. Poll GET /api/v1/jobs/{id} for status.",
    )
