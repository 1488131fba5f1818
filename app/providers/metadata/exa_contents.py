"""Exa page-contents metadata backend.

General purpose: any URL. Knows the page title and text only, so the
record carries no price or images.
"""

import logging
from typing import Optional

from exa_py import Exa

from app.providers.base import run_sync
from app.providers.metadata.base import (
    MetadataProvider,
    MetadataProviderName,
    ProductRecord,
    UNKNOWN_PRODUCT_NAME,
)

logger = logging.getLogger(__name__)

DESCRIPTION_CHARS = 300


class ExaContentsMetadataProvider(MetadataProvider):
    name = MetadataProviderName.EXA_CONTENTS

    def __init__(self, client: Exa, timeout_s: Optional[float] = None):
        super().__init__(timeout_s=timeout_s)
        self._client = client

    async def _extract(self, url: str) -> ProductRecord:
        logger.info("[exa_contents] Extracting metadata from: %s", url)
        response = await run_sync(self._client.get_contents, [url], text=True)

        results = getattr(response, "results", None) or []
        if not results:
            raise ValueError("No content retrieved from URL")

        page = results[0]
        text = getattr(page, "text", None) or ""
        return ProductRecord(
            name=getattr(page, "title", None) or UNKNOWN_PRODUCT_NAME,
            description=text[:DESCRIPTION_CHARS],
            product_url=getattr(page, "url", None) or url,
        )
