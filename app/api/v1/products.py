"""Synchronous product endpoints: search, metadata, and one-shot lookup.

These call the orchestrators directly; nothing is persisted.
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, HttpUrl

from app.discovery.pipeline import lookup_product
from app.llm.completion import TextCompletion
from app.providers.metadata.orchestrator import MetadataOrchestrator
from app.providers.search.orchestrator import SearchOrchestrator

router = APIRouter()

# Set by main.py during lifespan
_search: SearchOrchestrator = None
_metadata: MetadataOrchestrator = None
_completion: TextCompletion = None


def set_services(search: SearchOrchestrator, metadata: MetadataOrchestrator, completion: TextCompletion):
    global _search, _metadata, _completion
    _search = search
    _metadata = metadata
    _completion = completion


class ProductNameRequest(BaseModel):
    product_name: str = Field(min_length=1)


class ProductUrlRequest(BaseModel):
    product_url: HttpUrl


@router.post("/products/search")
async def search_product(request: ProductNameRequest):
    """Purchase-oriented search across every configured provider."""
    if _search is None:
        raise HTTPException(status_code=503, detail="Search providers not initialized")
    results = await _search.fan_out(request.product_name)
    return {
        "product_name": request.product_name,
        "results": [r.model_dump(mode="json") for r in results],
    }


@router.post("/products/metadata")
async def product_metadata(request: ProductUrlRequest):
    """Extract product metadata for a URL in the configured routing mode."""
    if _metadata is None:
        raise HTTPException(status_code=503, detail="Metadata providers not initialized")
    url = str(request.product_url)
    results = await _metadata.extract(url)
    return {
        "product_url": url,
        "routing": "routed" if _metadata.use_url_routing else "fan_out",
        "results": [r.model_dump(mode="json") for r in results],
    }


@router.post("/products/lookup")
async def lookup(request: ProductNameRequest):
    """Search a product, pick its best purchase URL, and extract that page."""
    if _search is None or _metadata is None or _completion is None:
        raise HTTPException(status_code=503, detail="Product services not initialized")
    return await lookup_product(request.product_name, _search, _metadata, _completion)
