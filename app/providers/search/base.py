"""Search provider interface and the SearchHit data type."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from app.providers.base import with_deadline


class SearchProviderName(str, Enum):
    EXA = "exa"
    OPENAI_WEB_SEARCH = "openai_web_search"
    PARALLEL_WEB = "parallel_web"


class SearchHit(BaseModel):
    """A candidate page surfaced by a search provider. Unranked, possibly duplicated."""
    title: str
    url: str
    published_date: Optional[str] = None
    author: Optional[str] = None
    excerpt: Optional[str] = None
    # Set by the discovery pipeline when pooling hits across product names
    product_name: Optional[str] = None


class SearchProvider(ABC):
    """Abstract base class for search backends.

    Subclasses implement `_run_query()`; the base class owns the
    purchase-query convention and the per-call deadline.
    """

    name: SearchProviderName

    def __init__(self, max_results: int = 10, timeout_s: Optional[float] = None):
        self.max_results = max_results
        self.timeout_s = timeout_s

    def build_query(self, product_name: str) -> str:
        """Turn a product name into a purchase-oriented query."""
        return f"where to buy {product_name} online"

    async def search(self, product_name: str) -> List[SearchHit]:
        """Find purchase locations for a concrete product name."""
        return await with_deadline(
            self._run_query(self.build_query(product_name), product_name=product_name),
            self.timeout_s,
        )

    async def query(self, text: str) -> List[SearchHit]:
        """Run a raw query, without the purchase prefix."""
        return await with_deadline(self._run_query(text), self.timeout_s)

    @abstractmethod
    async def _run_query(self, query: str, product_name: Optional[str] = None) -> List[SearchHit]:
        """Execute one query against the backend.

        `product_name` is set when the query came from `search()`; backends
        that take an objective or several queries may use it.
        """
        ...
