"""Discovery pipeline: gift category -> saved, purchasable products.

One job body per request, run off the request path by the dispatcher:

1. Load the category (must exist and belong to the requester)
2. Extract concrete product names from search results
3. Search purchase locations for every name, all providers, concurrently
4. Let the completion model pick the best purchase URLs
5. Extract metadata for every selected URL, concurrently
6. Persist the successful records
7. Mark the job completed
8. Notify the user (best effort)

Every failure in steps 1-6 ends the job as `failed` with a message naming
the stage; nothing escapes the job body.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from app.db.gift_store import GiftCategory, GiftStore, ProductContext, product_to_row
from app.discovery.errors import (
    CategoryNotFoundError,
    DiscoveryError,
    EmptyStageError,
    UpstreamFaultError,
)
from app.discovery.product_names import extract_product_names
from app.discovery.url_selection import select_purchase_urls
from app.jobs.dispatcher import JobDispatcher
from app.jobs.models import JobStatus
from app.jobs.registry import JobRegistry
from app.llm.completion import TextCompletion
from app.notifications.apns import Notifier
from app.providers.metadata.orchestrator import MetadataOrchestrator, MetadataResult
from app.providers.search.base import SearchHit
from app.providers.search.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)


class DiscoveryRequest(BaseModel):
    user_id: str
    general_gift_idea_id: str
    count: int = Field(default=10, ge=1)
    person_id: Optional[str] = None
    event_id: Optional[str] = None


class DiscoveryPipeline:
    """Sequences the discovery stages and drives the job's registry transitions."""

    def __init__(
        self,
        registry: JobRegistry,
        dispatcher: JobDispatcher,
        search: SearchOrchestrator,
        metadata: MetadataOrchestrator,
        completion: TextCompletion,
        store: GiftStore,
        notifier: Optional[Notifier] = None,
        name_pool_oversample: int = 2,
        name_pool_min: int = 20,
    ):
        self._registry = registry
        self._dispatcher = dispatcher
        self._search = search
        self._metadata = metadata
        self._completion = completion
        self._store = store
        self._notifier = notifier
        self._oversample = name_pool_oversample
        self._min_pool = name_pool_min

    async def submit(self, request: DiscoveryRequest) -> str:
        """Create a pending job and schedule its body. Returns immediately."""
        job_id = self._registry.create(user_id=request.user_id, kind="discovery")
        await self._dispatcher.submit(job_id, lambda: self.run(job_id, request))
        return job_id

    async def run(self, job_id: str, request: DiscoveryRequest) -> None:
        """The job body. Never raises."""
        self._registry.update(job_id, status=JobStatus.RUNNING)
        logger.info("[Job %s] Starting discovery for category %s", job_id, request.general_gift_idea_id)

        try:
            summary, category = await self._execute(job_id, request)
        except DiscoveryError as exc:
            logger.warning("[Job %s] Failed at %s: %s", job_id, exc.stage, exc)
            self._registry.update(job_id, status=JobStatus.FAILED, error=str(exc))
            return
        except Exception as exc:
            logger.exception("[Job %s] Unexpected error", job_id)
            self._registry.update(
                job_id, status=JobStatus.FAILED, error=str(exc) or type(exc).__name__
            )
            return

        self._registry.update(job_id, status=JobStatus.COMPLETED, result=summary)
        logger.info("[Job %s] Completed with %d product(s)", job_id, summary["count"])
        await self._notify(job_id, request, category, summary["count"])

    async def _execute(self, job_id: str, request: DiscoveryRequest) -> Tuple[Dict[str, Any], GiftCategory]:
        # 1. Category
        category = await self._store.fetch_category(request.general_gift_idea_id, request.user_id)
        if category is None:
            raise CategoryNotFoundError("General gift idea not found")

        # 2. Product names
        names = await extract_product_names(
            category.idea_text,
            request.count,
            self._search,
            self._completion,
            oversample=self._oversample,
            min_pool=self._min_pool,
        )
        if not names:
            raise EmptyStageError(
                "product_names", f'No products found: could not extract any product names from "{category.idea_text}"'
            )
        logger.info("[Job %s] Extracted %d product name(s)", job_id, len(names))

        # 3. Purchase search per name
        pool = await self._search_names(names)
        logger.info("[Job %s] %d search hit(s) across all products", job_id, len(pool))

        # 4. URL selection
        selected = await select_purchase_urls(pool, request.count, self._completion, category.idea_text)
        if not selected:
            raise EmptyStageError("url_selection", "No purchase URLs selected from the search results")
        logger.info("[Job %s] Selected %d URL(s) for metadata extraction", job_id, len(selected))

        # 5. Metadata
        per_url = await self._metadata.extract_many([hit.url for hit in selected])
        successes, failures = split_metadata_results(per_url)
        if not successes:
            raise UpstreamFaultError("metadata", "Could not extract metadata for any product")
        if failures:
            logger.warning(
                "[Job %s] Metadata extraction failed for %d of %d URL(s)", job_id, len(failures), len(per_url)
            )

        # 6. Persist
        context = ProductContext(
            user_id=request.user_id,
            general_gift_idea_id=category.id,
            person_id=request.person_id,
            event_id=request.event_id,
        )
        rows = [product_to_row(result.data, result.source, context) for result in successes]
        inserted = await self._store.insert_products(rows)

        summary = {
            "count": len(inserted),
            "category": {"id": category.id, "idea_text": category.idea_text},
            "product_ids": [row.get("id") for row in inserted],
            "product_names": names,
            "failed_urls": [
                {"url": result.data.product_url, "source": result.source, "error": result.error}
                for result in failures
            ],
        }
        return summary, category

    async def _search_names(self, names: List[str]) -> List[SearchHit]:
        per_name = await asyncio.gather(*(self._search.fan_out(name) for name in names))

        pool: List[SearchHit] = []
        units = 0
        faulted = 0
        for name, results in zip(names, per_name):
            for result in results:
                units += 1
                if not result.ok:
                    faulted += 1
                pool.extend(hit.model_copy(update={"product_name": name}) for hit in result.data)

        if not pool:
            if units and faulted == units:
                raise UpstreamFaultError("search", "Every search provider failed for the extracted products")
            raise EmptyStageError("search", "No purchase URLs found for the extracted products")
        return pool

    async def _notify(self, job_id: str, request: DiscoveryRequest, category: GiftCategory, count: int) -> None:
        if self._notifier is None:
            return
        try:
            report = await self._notifier.notify(
                request.user_id, category.idea_text, count, category_id=category.id
            )
            logger.info("[Job %s] Notification: %d sent, %d failed", job_id, report.sent, report.failed)
        except Exception as exc:
            logger.error("[Job %s] Notification failed: %s", job_id, exc)


def split_metadata_results(
    per_url: List[List[MetadataResult]],
) -> Tuple[List[MetadataResult], List[MetadataResult]]:
    """One result per URL: the first successful provider, else the first error."""
    successes: List[MetadataResult] = []
    failures: List[MetadataResult] = []
    for results in per_url:
        ok = next((r for r in results if r.ok and not r.data.is_error), None)
        if ok is not None:
            successes.append(ok)
        elif results:
            failures.append(results[0])
    return successes, failures


async def lookup_product(
    product_name: str,
    search: SearchOrchestrator,
    metadata: MetadataOrchestrator,
    completion: TextCompletion,
) -> Dict[str, Any]:
    """Synchronous one-off: best purchase URL for a name, plus its metadata.

    Nothing is persisted and no job is created.
    """
    results = await search.fan_out(product_name)
    hits = [
        hit.model_copy(update={"product_name": product_name})
        for result in results
        for hit in result.data
    ]
    if not hits:
        return {"product_name": product_name, "url": None, "metadata": [], "searched": len(results)}

    selected = await select_purchase_urls(hits, 1, completion)
    if not selected:
        return {"product_name": product_name, "url": None, "metadata": [], "searched": len(results)}

    url = selected[0].url
    extracted = await metadata.extract(url)
    return {
        "product_name": product_name,
        "url": url,
        "metadata": [r.model_dump(mode="json") for r in extracted],
        "searched": len(results),
    }
