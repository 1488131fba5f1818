"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

from app.jobs.registry import JobRegistry
from app.providers.metadata.orchestrator import MetadataOrchestrator
from app.providers.search.orchestrator import SearchOrchestrator

router = APIRouter()

# Set by main.py during lifespan
_search: SearchOrchestrator = None
_metadata: MetadataOrchestrator = None
_registry: JobRegistry = None


def set_components(search: SearchOrchestrator, metadata: MetadataOrchestrator, registry: JobRegistry):
    global _search, _metadata, _registry
    _search = search
    _metadata = metadata
    _registry = registry


@router.get("/health")
async def health_check():
    """Service health, configured providers, and job counts."""
    metadata_info = None
    if _metadata is not None:
        default = _metadata.default_provider
        metadata_info = {
            "providers": [p.name.value for p in _metadata.providers],
            "routing": "routed" if _metadata.use_url_routing else "fan_out",
            "default": default.name.value if default else None,
        }

    return {
        "status": "healthy",
        "search_providers": [p.name.value for p in _search.providers] if _search else [],
        "metadata": metadata_info,
        "jobs": _registry.stats() if _registry else None,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
