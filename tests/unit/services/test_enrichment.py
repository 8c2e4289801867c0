# tests/unit/services/test_enrichment.py
import pytest
from unittest.mock import AsyncMock, MagicMock

from crosslist.core.exceptions import StockXAPIError
from crosslist.schemas.listing import IdentityHint
from crosslist.schemas.stockx import CatalogProduct
from crosslist.services.enrichment import (
    DEFAULT_CATEGORY_ID,
    NullEnrichment,
    StockXCatalogEnrichment,
    fallback_category,
)


@pytest.mark.parametrize("product_type, title, expected", [
    ("Sneakers", None, "15709"),
    ("apparel", None, "185100"),
    (None, "Supreme Box Logo Hoodie", "185100"),
    ("unknown", "Something", DEFAULT_CATEGORY_ID),
    (None, None, DEFAULT_CATEGORY_ID),
])
def test_fallback_category(product_type, title, expected):
    assert fallback_category(product_type, title) == expected


async def test_null_enrichment():
    assert await NullEnrichment().lookup(IdentityHint(base_sku="CZ0775-133")) is None


async def test_stockx_enrichment_maps_first_product():
    client = MagicMock()
    client.search_catalog = AsyncMock(return_value=[
        CatalogProduct(
            product_id="p-1",
            style_id="CZ0775-133",
            title="Nike Dunk Low Photon Dust",
            brand="Nike",
            colorway="White/Photon Dust",
            product_type="Sneakers",
            image_urls=["https://images.test/p1.jpg"],
        )
    ])

    result = await StockXCatalogEnrichment(client).lookup(IdentityHint(base_sku="CZ0775-133", size="9W"))

    client.search_catalog.assert_awaited_once_with("CZ0775-133")
    assert result.title == "Nike Dunk Low Photon Dust"
    assert result.brand == "Nike"
    assert result.product_type == "sneakers"
    assert result.image_urls == ["https://images.test/p1.jpg"]


async def test_stockx_enrichment_no_match():
    client = MagicMock()
    client.search_catalog = AsyncMock(return_value=[])

    assert await StockXCatalogEnrichment(client).lookup(IdentityHint(base_sku="UNKNOWN")) is None


async def test_stockx_enrichment_error_is_swallowed():
    client = MagicMock()
    client.search_catalog = AsyncMock(side_effect=StockXAPIError("rate limited", status_code=429))

    assert await StockXCatalogEnrichment(client).lookup(IdentityHint(base_sku="CZ0775-133")) is None
