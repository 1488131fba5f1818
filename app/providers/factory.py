"""Build the configured provider sets from settings.

Provider names in settings are validated against the closed enums; a name
that is unknown, or whose credentials are missing, is skipped with a warning.
"""

import logging
from typing import Callable, Dict, List, Optional

from apify_client import ApifyClientAsync
from exa_py import Exa
from openai import AsyncOpenAI
from parallel import AsyncParallel

from app.config import Settings
from app.providers.metadata.apify_amazon import ApifyAmazonMetadataProvider
from app.providers.metadata.base import MetadataProvider, MetadataProviderName
from app.providers.metadata.exa_contents import ExaContentsMetadataProvider
from app.providers.metadata.orchestrator import MetadataOrchestrator
from app.providers.metadata.parallel_extract import ParallelWebMetadataProvider
from app.providers.search.base import SearchProvider, SearchProviderName
from app.providers.search.exa_search import ExaSearchProvider
from app.providers.search.openai_search import OpenAIWebSearchProvider
from app.providers.search.orchestrator import SearchOrchestrator
from app.providers.search.parallel_search import ParallelWebSearchProvider

logger = logging.getLogger(__name__)


class ProviderClients:
    """Lazily constructed SDK clients, shared by search and metadata providers."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._exa: Optional[Exa] = None
        self._openai: Optional[AsyncOpenAI] = None
        self._apify: Optional[ApifyClientAsync] = None
        self._parallel: Optional[AsyncParallel] = None

    def exa(self) -> Optional[Exa]:
        if self._exa is None and self._settings.exa_api_key:
            self._exa = Exa(self._settings.exa_api_key)
        return self._exa

    def openai(self) -> Optional[AsyncOpenAI]:
        if self._openai is None and self._settings.openai_api_key:
            self._openai = AsyncOpenAI(api_key=self._settings.openai_api_key)
        return self._openai

    def apify(self) -> Optional[ApifyClientAsync]:
        if self._apify is None and self._settings.apify_api_token:
            self._apify = ApifyClientAsync(token=self._settings.apify_api_token)
        return self._apify

    def parallel(self) -> Optional[AsyncParallel]:
        if self._parallel is None and self._settings.parallel_api_key:
            self._parallel = AsyncParallel(api_key=self._settings.parallel_api_key)
        return self._parallel


def _build_exa_search(s: Settings, c: ProviderClients) -> Optional[SearchProvider]:
    client = c.exa()
    if client is None:
        return None
    return ExaSearchProvider(client, s.max_search_results, s.search_timeout_s)


def _build_openai_search(s: Settings, c: ProviderClients) -> Optional[SearchProvider]:
    client = c.openai()
    if client is None:
        return None
    return OpenAIWebSearchProvider(client, s.openai_model, s.max_search_results, s.search_timeout_s)


def _build_parallel_search(s: Settings, c: ProviderClients) -> Optional[SearchProvider]:
    client = c.parallel()
    if client is None:
        return None
    return ParallelWebSearchProvider(client, s.max_search_results, s.search_timeout_s)


def _build_exa_metadata(s: Settings, c: ProviderClients) -> Optional[MetadataProvider]:
    client = c.exa()
    if client is None:
        return None
    return ExaContentsMetadataProvider(client, timeout_s=s.metadata_timeout_s)


def _build_apify_metadata(s: Settings, c: ProviderClients) -> Optional[MetadataProvider]:
    client = c.apify()
    if client is None:
        return None
    return ApifyAmazonMetadataProvider(client, timeout_s=s.metadata_timeout_s)


def _build_parallel_metadata(s: Settings, c: ProviderClients) -> Optional[MetadataProvider]:
    client = c.parallel()
    if client is None:
        return None
    return ParallelWebMetadataProvider(
        client, processor=s.parallel_processor, timeout_s=s.metadata_timeout_s
    )


SEARCH_BUILDERS: Dict[SearchProviderName, Callable[[Settings, ProviderClients], Optional[SearchProvider]]] = {
    SearchProviderName.EXA: _build_exa_search,
    SearchProviderName.OPENAI_WEB_SEARCH: _build_openai_search,
    SearchProviderName.PARALLEL_WEB: _build_parallel_search,
}

METADATA_BUILDERS: Dict[MetadataProviderName, Callable[[Settings, ProviderClients], Optional[MetadataProvider]]] = {
    MetadataProviderName.EXA_CONTENTS: _build_exa_metadata,
    MetadataProviderName.APIFY_AMAZON: _build_apify_metadata,
    MetadataProviderName.PARALLEL_WEB: _build_parallel_metadata,
}


def build_search_providers(settings: Settings, clients: ProviderClients) -> List[SearchProvider]:
    providers = []
    for raw in settings.search_providers:
        try:
            name = SearchProviderName(raw)
        except ValueError:
            logger.warning("Unknown search provider %r, skipping", raw)
            continue
        provider = SEARCH_BUILDERS[name](settings, clients)
        if provider is None:
            logger.warning("Search provider %s is not configured (missing credentials), skipping", name.value)
            continue
        providers.append(provider)
        logger.info("Registered search provider: %s", name.value)
    return providers


def build_metadata_providers(settings: Settings, clients: ProviderClients) -> List[MetadataProvider]:
    providers = []
    for raw in settings.metadata_providers:
        try:
            name = MetadataProviderName(raw)
        except ValueError:
            logger.warning("Unknown metadata provider %r, skipping", raw)
            continue
        provider = METADATA_BUILDERS[name](settings, clients)
        if provider is None:
            logger.warning("Metadata provider %s is not configured (missing credentials), skipping", name.value)
            continue
        providers.append(provider)
        logger.info("Registered metadata provider: %s", name.value)
    return providers


def build_search_orchestrator(settings: Settings, clients: ProviderClients) -> SearchOrchestrator:
    return SearchOrchestrator(build_search_providers(settings, clients))


def build_metadata_orchestrator(settings: Settings, clients: ProviderClients) -> MetadataOrchestrator:
    try:
        default = MetadataProviderName(settings.default_metadata_provider)
    except ValueError:
        logger.warning("Unknown default metadata provider %r", settings.default_metadata_provider)
        default = None
    return MetadataOrchestrator(
        build_metadata_providers(settings, clients),
        use_url_routing=settings.use_url_routing,
        default_provider=default,
    )
