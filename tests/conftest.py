"""Shared test setup and fakes.

Role:
- test environment variables
- scripted providers, completion double, in-memory store, recording notifier
- helpers to build a fully wired pipeline

No test here touches the network.
"""

import asyncio
import os
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")

from app.db.gift_store import DeviceToken, GiftCategory, GiftStore  # noqa: E402
from app.discovery.errors import PersistenceError  # noqa: E402
from app.discovery.pipeline import DiscoveryPipeline  # noqa: E402
from app.jobs.in_process_queue import InProcessQueue  # noqa: E402
from app.jobs.models import JobStatus  # noqa: E402
from app.jobs.registry import JobRegistry  # noqa: E402
from app.llm.completion import CompletionError, TextCompletion  # noqa: E402
from app.notifications.apns import NotificationReport, Notifier  # noqa: E402
from app.providers.metadata.base import (  # noqa: E402
    MetadataProvider,
    MetadataProviderName,
    Price,
    ProductRecord,
)
from app.providers.metadata.orchestrator import MetadataOrchestrator  # noqa: E402
from app.providers.search.base import SearchHit, SearchProvider, SearchProviderName  # noqa: E402
from app.providers.search.orchestrator import SearchOrchestrator  # noqa: E402


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Manually advanced clock for the job registry."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class RecordingRegistry(JobRegistry):
    """JobRegistry that remembers every accepted status change per job."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.history: Dict[str, List[JobStatus]] = {}

    def create(self, user_id=None, kind="discovery") -> str:
        job_id = super().create(user_id=user_id, kind=kind)
        self.history[job_id] = [JobStatus.PENDING]
        return job_id

    def update(self, job_id, status=None, **kwargs) -> bool:
        ok = super().update(job_id, status=status, **kwargs)
        if ok and status is not None:
            self.history.setdefault(job_id, []).append(status)
        return ok


# ============================================================================
# Search
# ============================================================================

HitScript = Union[List[SearchHit], Exception, Callable[[str, Optional[str]], List[SearchHit]]]


class ScriptedSearchProvider(SearchProvider):
    """Returns scripted hits, or raises the scripted exception."""

    def __init__(
        self,
        script: HitScript,
        name: SearchProviderName = SearchProviderName.EXA,
        delay_s: float = 0.0,
        timeout_s: Optional[float] = None,
    ):
        super().__init__(max_results=10, timeout_s=timeout_s)
        self.name = name
        self._script = script
        self._delay_s = delay_s
        self.queries: List[str] = []

    async def _run_query(self, query: str, product_name: Optional[str] = None) -> List[SearchHit]:
        self.queries.append(query)
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        if isinstance(self._script, Exception):
            raise self._script
        if callable(self._script):
            return self._script(query, product_name)
        return list(self._script)


def catalog_search(query: str, product_name: Optional[str]) -> List[SearchHit]:
    """Editorial hits for raw queries, one shop page per product name."""
    if product_name:
        return [
            SearchHit(
                title=f"Buy {product_name}",
                url=f"https://shop.example.com/{slugify(product_name)}",
            )
        ]
    return [
        SearchHit(
            title=f"Best picks: {query}",
            url=f"https://blog.example.com/{slugify(query)}",
            excerpt="Fitbit Charge 6, Theragun Mini and Hydro Flask 32oz lead the list.",
        )
    ]


# ============================================================================
# Metadata
# ============================================================================

class ScriptedMetadataProvider(MetadataProvider):
    """Builds a record from the URL, or raises for URLs matching `fail_when`."""

    def __init__(
        self,
        name: MetadataProviderName = MetadataProviderName.PARALLEL_WEB,
        restricted: bool = False,
        accepts: Optional[Callable[[str], bool]] = None,
        fail_when: Optional[Callable[[str], bool]] = None,
        price: str = "49.99",
    ):
        super().__init__(timeout_s=None)
        self.name = name
        self.restricted = restricted
        self._accepts = accepts
        self._fail_when = fail_when
        self._price = price
        self.calls: List[str] = []

    def accepts(self, url: str) -> bool:
        return self._accepts(url) if self._accepts else True

    async def _extract(self, url: str) -> ProductRecord:
        self.calls.append(url)
        if self._fail_when and self._fail_when(url):
            raise RuntimeError(f"cannot read {url}")
        slug = url.rstrip("/").rsplit("/", 1)[-1]
        return ProductRecord(
            name=slug.replace("-", " ").title(),
            price=Price(amount=Decimal(self._price), currency="USD"),
            image_urls=[f"https://img.example.com/{slug}.jpg"],
            description=f"Product page for {slug}",
            product_url=url,
        )


# ============================================================================
# Completion
# ============================================================================

class FakeCompletion(TextCompletion):
    """Returns scripted responses in order; an Exception entry is raised.

    A callable instead of a sequence answers each prompt directly.
    """

    def __init__(self, responses: Union[Sequence[Union[str, Exception]], Callable[[str], str]]):
        self._responder = responses if callable(responses) else None
        self._responses = [] if callable(responses) else list(responses)
        self.calls = 0
        self.prompts: List[str] = []

    async def complete(self, prompt, response_format="json", temperature=0.0, system=None) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        if self._responder is not None:
            return self._responder(prompt)
        if not self._responses:
            raise CompletionError("no scripted response left")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


# ============================================================================
# Persistence and notification
# ============================================================================

class InMemoryGiftStore(GiftStore):

    def __init__(
        self,
        categories: Optional[List[GiftCategory]] = None,
        tokens: Optional[Dict[str, List[DeviceToken]]] = None,
        fail_insert: bool = False,
    ):
        self.categories = {c.id: c for c in (categories or [])}
        self.tokens = tokens or {}
        self.rows: List[Dict[str, Any]] = []
        self.fail_insert = fail_insert

    async def fetch_category(self, category_id: str, owner_id: str) -> Optional[GiftCategory]:
        category = self.categories.get(category_id)
        if category is None or category.user_id != owner_id:
            return None
        return category

    async def insert_products(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if self.fail_insert:
            raise PersistenceError("Failed to save products: database unavailable")
        inserted = []
        for row in rows:
            saved = dict(row, id=f"product-{len(self.rows) + 1}")
            self.rows.append(saved)
            inserted.append(saved)
        return inserted

    async def fetch_device_tokens(self, owner_id: str) -> List[DeviceToken]:
        return list(self.tokens.get(owner_id, []))


class RecordingNotifier(Notifier):

    def __init__(self, fail: bool = False):
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    async def notify(self, owner_id, category, result_count, category_id=None) -> NotificationReport:
        self.calls.append(
            {"owner_id": owner_id, "category": category, "count": result_count, "category_id": category_id}
        )
        if self.fail:
            raise RuntimeError("push service unreachable")
        return NotificationReport(sent=1)


# ============================================================================
# Pipeline wiring
# ============================================================================

USER_ID = "user-1"
CATEGORY_ID = "idea-1"

NAMES_RESPONSE = '{"products": ["Fitbit Charge 6", "Theragun Mini", "Hydro Flask 32oz"]}'
SELECTION_RESPONSE = '{"indices": [1, 2, 3]}'


@pytest.fixture
def fitness_category() -> GiftCategory:
    return GiftCategory(id=CATEGORY_ID, user_id=USER_ID, idea_text="fitness gear")


class PipelineHarness:
    """Everything a discovery pipeline needs, built from fakes."""

    def __init__(
        self,
        search_providers: Sequence[SearchProvider],
        metadata_providers: Sequence[MetadataProvider],
        completion: FakeCompletion,
        store: InMemoryGiftStore,
        notifier: Optional[RecordingNotifier] = None,
        use_url_routing: bool = True,
    ):
        self.registry = RecordingRegistry()
        self.queue = InProcessQueue(self.registry)
        self.search = SearchOrchestrator(search_providers)
        self.metadata = MetadataOrchestrator(metadata_providers, use_url_routing=use_url_routing)
        self.completion = completion
        self.store = store
        self.notifier = notifier if notifier is not None else RecordingNotifier()
        self.pipeline = DiscoveryPipeline(
            self.registry,
            self.queue,
            self.search,
            self.metadata,
            self.completion,
            self.store,
            self.notifier,
        )


@pytest.fixture
def make_harness(fitness_category):
    def _make(
        search_providers: Optional[Sequence[SearchProvider]] = None,
        metadata_providers: Optional[Sequence[MetadataProvider]] = None,
        responses: Optional[Union[Sequence[Union[str, Exception]], Callable[[str], str]]] = None,
        store: Optional[InMemoryGiftStore] = None,
        notifier: Optional[RecordingNotifier] = None,
        use_url_routing: bool = True,
    ) -> PipelineHarness:
        return PipelineHarness(
            search_providers if search_providers is not None else [ScriptedSearchProvider(catalog_search)],
            metadata_providers if metadata_providers is not None else [ScriptedMetadataProvider()],
            FakeCompletion(responses if responses is not None else [NAMES_RESPONSE, SELECTION_RESPONSE]),
            store if store is not None else InMemoryGiftStore([fitness_category]),
            notifier,
            use_url_routing,
        )

    return _make
