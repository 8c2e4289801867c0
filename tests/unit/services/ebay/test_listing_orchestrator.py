# tests/unit/services/ebay/test_listing_orchestrator.py
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock

from crosslist.core.enums import ItemOutcome, MappingStatus, PipelineStep, WithdrawOutcome
from crosslist.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    LocationUnavailableError,
    PermanentRejectionError,
)
from crosslist.schemas.ebay import Location, OfferUpdate, PriceQuantityUpdate
from crosslist.schemas.listing import BatchRequest, EnrichmentResult, ListingItem
from crosslist.schemas.mapping import MappingCreate
from crosslist.services import sku_codec
from crosslist.services.ebay.listing import ListingOrchestrator
from crosslist.services.enrichment import CatalogEnrichment
from tests.mocks.mock_marketplace import FakeEbayClient, InMemoryMappingStore


def make_item(base_sku, size, source_listing_id=None, price="150", **extra):
    return ListingItem(
        base_sku=base_sku,
        size=size,
        price=Decimal(price),
        source_listing_id=source_listing_id,
        **extra,
    )


@pytest.fixture
def ebay_client():
    return FakeEbayClient(locations=[Location(merchant_location_key="wh-1", merchant_location_status="ENABLED")])


@pytest.fixture
def mapping_store():
    return InMemoryMappingStore()


@pytest.fixture
def orchestrator(ebay_client, settings, mapping_store):
    return ListingOrchestrator(ebay_client, settings, mapping_store=mapping_store)


@pytest.fixture
def three_items():
    return [
        make_item("CZ0775-133", "9W", "sx-1", brand="Nike"),
        make_item("DD1391-100", "10", "sx-2", brand="Nike"),
        make_item("FQ1759-100", "10.5", "sx-3", brand="Nike"),
    ]


"""
1. Configuration
"""

async def test_missing_policies_fail_before_any_call(ebay_client, unconfigured_settings, three_items):
    orchestrator = ListingOrchestrator(ebay_client, unconfigured_settings)

    with pytest.raises(ConfigurationError) as exc_info:
        await orchestrator.run_batch(BatchRequest(items=three_items))

    assert "EBAY_FULFILLMENT_POLICY_ID" in str(exc_info.value)
    assert ebay_client.calls == []


async def test_location_failure_fails_batch(settings, three_items):
    client = FakeEbayClient()
    client.create_location = AsyncMock(side_effect=PermanentRejectionError("bad address", status_code=400))
    orchestrator = ListingOrchestrator(client, settings)

    with pytest.raises(LocationUnavailableError):
        await orchestrator.run_batch(BatchRequest(items=three_items))

    assert client.calls_to("create_or_update_inventory_item") == []


"""
2. Batch Pipeline
"""

async def test_batch_with_existing_published_offer(orchestrator, ebay_client, mapping_store, three_items):
    """The second item already has a live offer: it is recovered, never republished"""
    existing_sku = sku_codec.encode("DD1391-100", "10")
    existing = ebay_client.add_offer(existing_sku, status="PUBLISHED", listing_id="110000000099")

    batch = await orchestrator.run_batch(BatchRequest(items=three_items))

    assert [r.status for r in batch.items] == [ItemOutcome.CREATED] * 3
    assert [r.sku for r in batch.items] == ["CZ0775133S9W", "DD1391100S10", "FQ1759100S105"]
    assert batch.created == 3
    assert batch.failed == 0

    recovered = batch.items[1]
    assert recovered.already_existed is True
    assert recovered.offer_id == existing.offer_id
    assert recovered.listing_id == "110000000099"
    assert recovered.listing_url == "https://www.ebay.com/itm/110000000099"

    published = [call[1] for call in ebay_client.calls_to("publish_offer")]
    assert len(published) == 2
    assert existing.offer_id not in published

    assert len(mapping_store.records) == 3
    assert all(r.mapped for r in batch.items)
    assert {r.source_listing_id for r in mapping_store.records} == {"sx-1", "sx-2", "sx-3"}


async def test_batch_prices_and_location(orchestrator, ebay_client, three_items):
    batch = await orchestrator.run_batch(BatchRequest(items=three_items))

    assert all(r.price == Decimal("165") for r in batch.items)
    assert len(ebay_client.calls_to("list_locations")) == 1


async def test_concurrency_is_bounded(orchestrator, ebay_client, settings):
    items = [make_item(f"STYLE-{i}", "10", f"sx-{i}") for i in range(6)]

    await orchestrator.run_batch(BatchRequest(items=items))

    assert len(ebay_client.calls_to("create_or_update_inventory_item")) == 6
    assert 1 <= ebay_client.max_in_flight <= settings.LISTING_CONCURRENCY


async def test_resubmitting_batch_is_idempotent(orchestrator, ebay_client, mapping_store, three_items):
    first = await orchestrator.run_batch(BatchRequest(items=three_items))
    second = await orchestrator.run_batch(BatchRequest(items=three_items))

    assert [r.offer_id for r in first.items] == [r.offer_id for r in second.items]
    assert all(r.already_existed for r in second.items)
    assert len(ebay_client.offers) == 3
    assert len(ebay_client.calls_to("publish_offer")) == 3
    assert len(mapping_store.records) == 3


async def test_recovered_unpublished_offer_is_published(orchestrator, ebay_client):
    sku = sku_codec.encode("CZ0775-133", "9W")
    existing = ebay_client.add_offer(sku, status="UNPUBLISHED")

    batch = await orchestrator.run_batch(BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")]))

    result = batch.items[0]
    assert result.status == ItemOutcome.CREATED
    assert result.already_existed is True
    assert ebay_client.calls_to("publish_offer") == [("publish_offer", existing.offer_id)]


async def test_results_reported_through_callback(orchestrator, three_items):
    seen = []

    async def on_result(result):
        seen.append(result.sku)

    batch = await orchestrator.run_batch(BatchRequest(items=three_items), on_result=on_result)

    assert sorted(seen) == sorted(r.sku for r in batch.items)


"""
3. Drafts
"""

async def test_missing_required_aspect_keeps_draft(orchestrator, ebay_client, mapping_store):
    ebay_client.required_aspects = ["Brand", "Color", "US Shoe Size"]

    batch = await orchestrator.run_batch(BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")]))

    result = batch.items[0]
    assert result.status == ItemOutcome.DRAFT
    assert result.missing_aspects == ["Color"]
    assert "Color" in result.missing_reasons
    assert result.offer_id is not None
    assert ebay_client.calls_to("publish_offer") == []
    assert mapping_store.records == []


async def test_publish_not_requested_gives_draft(orchestrator, ebay_client):
    batch = await orchestrator.run_batch(
        BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")], publish_immediately=False)
    )

    assert batch.items[0].status == ItemOutcome.DRAFT
    assert batch.drafts == 1
    assert ebay_client.calls_to("publish_offer") == []


async def test_batch_result_counts(orchestrator, ebay_client):
    ebay_client.fail_inventory.add(sku_codec.encode("DD1391-100", "10"))
    items = [make_item("CZ0775-133", "9W", "sx-1"), make_item("DD1391-100", "10", "sx-2")]

    batch = await orchestrator.run_batch(BatchRequest(items=items, publish_immediately=False))
    body = batch.model_dump()

    assert batch.summary() == {"total": 2, "created": 0, "drafts": 1, "failed": 1}
    assert {key: body[key] for key in ("created", "drafts", "failed")} == {"created": 0, "drafts": 1, "failed": 1}
    assert "skipped" not in body


async def test_recovered_draft_offer_is_not_mapped(orchestrator, ebay_client, mapping_store):
    """An unpublished offer is not live, so mapping it would read as an eBay sale"""
    sku = sku_codec.encode("CZ0775-133", "9W")
    existing = ebay_client.add_offer(sku, status="UNPUBLISHED")

    batch = await orchestrator.run_batch(
        BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")], publish_immediately=False)
    )

    result = batch.items[0]
    assert result.status == ItemOutcome.DRAFT
    assert result.already_existed is True
    assert result.offer_id == existing.offer_id
    assert result.mapped is False
    assert mapping_store.records == []


"""
4. Grouping and Collisions
"""

async def test_same_identity_is_merged(orchestrator, ebay_client, mapping_store):
    items = [
        make_item("CZ0775-133", "9W", "sx-1"),
        make_item("cz0775 133", "9 w", "sx-2", quantity=2),
    ]

    batch = await orchestrator.run_batch(BatchRequest(items=items))

    assert len(ebay_client.calls_to("create_or_update_inventory_item")) == 1
    sku = sku_codec.encode("CZ0775-133", "9W")
    assert ebay_client.inventory[sku]["availability"]["shipToLocationAvailability"]["quantity"] == 3
    assert batch.items[0].offer_id == batch.items[1].offer_id
    assert [r.source_listing_id for r in batch.items] == ["sx-1", "sx-2"]
    assert len(mapping_store.by_offer(batch.items[0].offer_id)) == 2


async def test_sku_collision_fails_later_identity(orchestrator, ebay_client, mocker):
    mocker.patch.object(sku_codec, "encode", return_value="COLLIDINGSKU")
    items = [make_item("STYLE-A", "10", "sx-1"), make_item("STYLE-B", "10", "sx-2")]

    batch = await orchestrator.run_batch(BatchRequest(items=items))

    assert batch.items[0].status == ItemOutcome.CREATED
    assert batch.items[1].status == ItemOutcome.FAILED
    assert batch.items[1].step == PipelineStep.CANONICALIZE
    assert "STYLE-A" in batch.items[1].error
    assert len(ebay_client.calls_to("create_or_update_inventory_item")) == 1


"""
5. Failures
"""

async def test_inventory_failure_isolated(orchestrator, ebay_client, three_items):
    ebay_client.fail_inventory = {sku_codec.encode("DD1391-100", "10")}

    batch = await orchestrator.run_batch(BatchRequest(items=three_items))

    statuses = [r.status for r in batch.items]
    assert statuses == [ItemOutcome.CREATED, ItemOutcome.FAILED, ItemOutcome.CREATED]
    assert batch.items[1].step == PipelineStep.INVENTORY
    assert batch.items[1].offer_id is None


async def test_publish_failure_reports_offer(orchestrator, ebay_client):
    ebay_client.publish_offer = AsyncMock(side_effect=PermanentRejectionError("Missing item specific", status_code=400))

    batch = await orchestrator.run_batch(BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")]))

    result = batch.items[0]
    assert result.status == ItemOutcome.FAILED
    assert result.step == PipelineStep.PUBLISH
    assert result.offer_id is not None
    assert "Missing item specific" in result.error


async def test_enrichment_errors_do_not_fail_item(ebay_client, settings):
    class BrokenEnrichment(CatalogEnrichment):
        async def lookup(self, hint):
            raise RuntimeError("catalog down")

    orchestrator = ListingOrchestrator(ebay_client, settings, enrichment=BrokenEnrichment())

    batch = await orchestrator.run_batch(BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")]))

    assert batch.items[0].status == ItemOutcome.CREATED


async def test_mapping_store_failure_reported(orchestrator, mapping_store):
    mapping_store.insert = AsyncMock(side_effect=DatabaseError("connection lost"))

    batch = await orchestrator.run_batch(BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")]))

    assert batch.items[0].status == ItemOutcome.CREATED
    assert batch.items[0].mapped is False


"""
6. Category and Enrichment
"""

async def test_item_category_skips_suggestions(orchestrator, ebay_client):
    batch = await orchestrator.run_batch(
        BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1", category_id="95672")])
    )

    assert batch.items[0].category_id == "95672"
    assert ebay_client.calls_to("get_category_suggestions") == []


async def test_fallback_category_without_suggestions(orchestrator, ebay_client):
    ebay_client.category_suggestions = []

    batch = await orchestrator.run_batch(
        BatchRequest(items=[make_item("HOODIE-1", "L", "sx-1", product_type="apparel")])
    )

    assert batch.items[0].category_id == "185100"


async def test_enrichment_fills_title_and_brand(ebay_client, settings):
    class StaticEnrichment(CatalogEnrichment):
        async def lookup(self, hint):
            return EnrichmentResult(
                title="Nike Dunk Low Photon Dust",
                brand="Nike",
                colorway="White/Photon Dust",
                image_urls=["http://images.test/dunk.jpg"],
            )

    orchestrator = ListingOrchestrator(ebay_client, settings, enrichment=StaticEnrichment())
    await orchestrator.run_batch(BatchRequest(items=[make_item("CZ0775-133", "9W", "sx-1")]))

    product = ebay_client.inventory["CZ0775133S9W"]["product"]
    assert product["title"] == "Nike Dunk Low Photon Dust Size 9W"
    assert product["brand"] == "Nike"
    assert product["aspects"]["Color"] == ["White"]
    assert product["imageUrls"] == ["https://images.test/dunk.jpg"]


"""
7. Updates and Withdrawals
"""

async def test_update_price_quantity_chunks(orchestrator, ebay_client):
    updates = [PriceQuantityUpdate(offer_id=str(i), sku=f"SKU{i}", quantity=1) for i in range(30)]

    results = await orchestrator.update_price_quantity(updates)

    assert len(results) == 30
    assert ebay_client.calls_to("bulk_update_price_quantity") == [
        ("bulk_update_price_quantity", 25),
        ("bulk_update_price_quantity", 5),
    ]


async def test_update_offer_merges_body(orchestrator, ebay_client):
    offer = ebay_client.add_offer("CZ0775133S9W", status="PUBLISHED", listing_id="1")
    ebay_client.inventory["CZ0775133S9W"] = {"product": {"title": "Old title"}}

    await orchestrator.update_offer(offer.offer_id, OfferUpdate(price=Decimal("180"), title="New title"))

    _, offer_id, body = ebay_client.calls_to("update_offer")[0]
    assert offer_id == offer.offer_id
    assert body["pricingSummary"]["price"]["value"] == "180"
    assert "offerId" not in body
    assert "status" not in body
    assert ebay_client.inventory["CZ0775133S9W"]["product"]["title"] == "New title"


async def test_withdraw_offers_marks_mappings(orchestrator, ebay_client, mapping_store):
    await mapping_store.insert(MappingCreate(
        base_sku="CZ0775-133", size="9W", source_listing_id="sx-1",
        destination_offer_id="OFFER-9", destination_sku="CZ0775133S9W",
    ))
    ebay_client.fail_withdraw = {"OFFER-10"}

    results = await orchestrator.withdraw_offers(["OFFER-9", "OFFER-10"])

    assert results[0].success is True
    assert results[0].outcome == WithdrawOutcome.WITHDRAWN
    assert results[0].mappings_updated == 1
    assert results[1].success is False
    assert mapping_store.records[0].status == MappingStatus.DELISTED
