"""
Catalog enrichment: title, images, brand and category hints for a product.

The listing pipeline treats enrichment as best effort. A lookup that fails
or returns nothing never fails an item.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from crosslist.core.exceptions import StockXAPIError
from crosslist.schemas.listing import EnrichmentResult, IdentityHint
from crosslist.services.stockx.client import StockXClient

logger = logging.getLogger(__name__)

# eBay US leaf categories
CATEGORY_FALLBACKS = {
    "shoes": "15709",
    "sneakers": "15709",
    "apparel": "185100",
    "streetwear": "185100",
    "collectibles": "73511",
    "electronics": "58058",
}
DEFAULT_CATEGORY_ID = "15709"

APPAREL_KEYWORDS = ("hoodie", "t-shirt", "tee", "jacket", "shorts", "pants", "sweatshirt", "apparel")


def fallback_category(product_type: Optional[str], title: Optional[str] = None) -> str:
    """Keyword category for when neither the catalog nor eBay suggests one"""
    if product_type:
        category = CATEGORY_FALLBACKS.get(product_type.strip().lower())
        if category:
            return category
    if title:
        lowered = title.lower()
        if any(word in lowered for word in APPAREL_KEYWORDS):
            return CATEGORY_FALLBACKS["apparel"]
    return DEFAULT_CATEGORY_ID


class CatalogEnrichment(ABC):
    """Looks up catalog data for a product identity"""

    @abstractmethod
    async def lookup(self, hint: IdentityHint) -> Optional[EnrichmentResult]:
        ...


class NullEnrichment(CatalogEnrichment):
    async def lookup(self, hint: IdentityHint) -> Optional[EnrichmentResult]:
        return None


class StockXCatalogEnrichment(CatalogEnrichment):
    """Enrichment from the StockX catalog, preferring an exact style id match"""

    def __init__(self, client: StockXClient):
        self.client = client

    async def lookup(self, hint: IdentityHint) -> Optional[EnrichmentResult]:
        try:
            products = await self.client.search_catalog(hint.base_sku)
        except StockXAPIError as e:
            logger.warning(f"Catalog lookup failed for {hint.base_sku}: {e}")
            return None

        if not products:
            logger.debug(f"No catalog match for {hint.base_sku}")
            return None

        product = products[0]
        product_type = (product.product_type or "").lower() or None
        return EnrichmentResult(
            title=product.title or None,
            brand=product.brand,
            colorway=product.colorway,
            product_type=product_type,
            image_urls=product.image_urls,
        )
