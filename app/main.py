"""Gift Product Discovery Service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.logging_config import setup_logging
from app.api.v1.router import v1_router
from app.api.v1.health import router as health_root_router
from app.api.v1 import discovery as discovery_api
from app.api.v1 import health as health_api
from app.api.v1 import jobs as jobs_api
from app.api.v1 import products as products_api
from app.db.gift_store import SupabaseGiftStore
from app.db.supabase_client import get_supabase
from app.discovery.pipeline import DiscoveryPipeline
from app.jobs.in_process_queue import InProcessQueue
from app.jobs.registry import JobRegistry
from app.llm.completion import OpenAICompletion
from app.notifications.apns import ApnsNotifier
from app.providers.factory import (
    ProviderClients,
    build_metadata_orchestrator,
    build_search_orchestrator,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    setup_logging()
    logger.info("Starting Gift Product Discovery Service (%s)", settings.environment)

    clients = ProviderClients(settings)
    search = build_search_orchestrator(settings, clients)
    metadata = build_metadata_orchestrator(settings, clients)
    logger.info(
        "Providers: %d search, %d metadata (%s)",
        len(search.providers), len(metadata.providers),
        "routed" if metadata.use_url_routing else "fan-out",
    )

    completion = None
    openai_client = clients.openai()
    if openai_client is not None:
        completion = OpenAICompletion(
            openai_client,
            model=settings.openai_model,
            max_retries=settings.completion_max_retries,
            retry_backoff_s=settings.completion_retry_backoff_s,
        )
    else:
        logger.warning("OPENAI_API_KEY not set - discovery and lookup are disabled")

    # Job registry and dispatcher
    registry = JobRegistry(
        retention_s=settings.job_retention_s,
        reap_interval_s=settings.job_reap_interval_s,
    )
    await registry.start_reaper()
    dispatcher = InProcessQueue(registry, max_concurrent=settings.max_concurrent_jobs)
    await dispatcher.start()
    logger.info("Job dispatcher started")

    notifier = None
    pipeline = None
    try:
        store = SupabaseGiftStore(get_supabase())
    except RuntimeError as e:
        logger.warning("Gift store unavailable (%s) - discovery is disabled", e)
        store = None

    if store is not None:
        notifier = ApnsNotifier(settings, store)
        if not notifier.is_configured:
            logger.info("APNs not configured - products-ready notifications are skipped")
        if completion is not None:
            pipeline = DiscoveryPipeline(
                registry,
                dispatcher,
                search,
                metadata,
                completion,
                store,
                notifier,
                name_pool_oversample=settings.name_pool_oversample,
                name_pool_min=settings.name_pool_min,
            )

    # Wire components into API endpoints
    jobs_api.set_registry(registry)
    discovery_api.set_pipeline(pipeline)
    products_api.set_services(search, metadata, completion)
    health_api.set_components(search, metadata, registry)

    yield

    # Shutdown
    logger.info("Shutting down Gift Product Discovery Service")
    await dispatcher.stop()
    await registry.stop_reaper()
    if notifier is not None:
        await notifier.aclose()


app = FastAPI(
    title="Gift Product Discovery Service",
    description="Turns fuzzy gift ideas into saved, purchasable products",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS - allow the app's dev servers and any configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints
