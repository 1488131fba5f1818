"""Metadata provider interface and the normalized ProductRecord."""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from app.providers.base import with_deadline

ERROR_SENTINEL_NAME = "Error"
UNKNOWN_PRODUCT_NAME = "Unknown Product"


class MetadataProviderName(str, Enum):
    EXA_CONTENTS = "exa_contents"
    APIFY_AMAZON = "apify_amazon"
    PARALLEL_WEB = "parallel_web"


class Price(BaseModel):
    # amount and currency are independent; either may be known alone
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    formatted: Optional[str] = None


class ProductRecord(BaseModel):
    """Provider-agnostic product metadata."""
    name: str = UNKNOWN_PRODUCT_NAME
    price: Price = Field(default_factory=Price)
    image_urls: List[str] = Field(default_factory=list)  # primary image first
    description: str = ""
    product_url: str
    availability: Optional[str] = None
    brand: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    provider_product_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def thumbnail(self) -> Optional[str]:
        return self.image_urls[0] if self.image_urls else None


def error_record(url: str, message: str) -> ProductRecord:
    """The sentinel returned when extraction for `url` crashed."""
    return ProductRecord(
        name=ERROR_SENTINEL_NAME,
        description=message,
        product_url=url,
        error=message or "Failed to extract metadata",
    )


class MetadataProvider(ABC):
    """Abstract base class for metadata extraction backends.

    A provider that only understands some URLs overrides `accepts()`;
    general-purpose providers accept everything.
    """

    name: MetadataProviderName
    restricted: bool = False

    def __init__(self, timeout_s: Optional[float] = None):
        self.timeout_s = timeout_s

    def accepts(self, url: str) -> bool:
        return True

    async def extract_metadata(self, url: str) -> ProductRecord:
        return await with_deadline(self._extract(url), self.timeout_s)

    @abstractmethod
    async def _extract(self, url: str) -> ProductRecord:
        """Fetch and normalize metadata for one URL. May raise."""
        ...
