# crosslist/services/ebay/listing.py
"""
Listing orchestration for eBay.

Each distinct destination SKU goes through:

    START -> LOCATION_READY -> INVENTORY_UPSERTED -> OFFER_RESOLVED -> PUBLISHED | DRAFT

or ends FAILED with the step that failed. Inventory items are upserted by
SKU and an existing offer is recovered instead of duplicated, so a batch can
be re-submitted safely after a partial failure.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from crosslist.core.config import Settings
from crosslist.core.enums import ItemOutcome, MappingStatus, PipelineState, PipelineStep
from crosslist.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    EbayAPIError,
    MappingConflictError,
    OfferConflictError,
)
from crosslist.schemas.ebay import InventoryItemPayload, OfferPayload, OfferUpdate, PriceQuantityResult, PriceQuantityUpdate
from crosslist.schemas.listing import (
    BatchRequest,
    BatchResult,
    EnrichmentResult,
    IdentityHint,
    ItemResult,
    ListingItem,
    WithdrawItemResult,
)
from crosslist.schemas.mapping import MappingCreate
from crosslist.services import sku_codec
from crosslist.services.ebay.aspects import AspectValidator, build_aspects
from crosslist.services.ebay.client import EbayClient
from crosslist.services.ebay.content import (
    apply_markup,
    build_title,
    generate_description,
    map_condition,
    normalize_image_urls,
)
from crosslist.services.ebay.location import LocationCache, LocationResolver
from crosslist.services.enrichment import CatalogEnrichment, NullEnrichment, fallback_category
from crosslist.services.mapping_store import MappingStore

logger = logging.getLogger(__name__)

LISTING_URL = "https://www.ebay.com/itm/{listing_id}"

ResultCallback = Callable[[ItemResult], Union[None, Awaitable[None]]]


@dataclass
class SkuGroup:
    """Input items that share one destination SKU"""
    sku: str
    items: List[ListingItem] = field(default_factory=list)
    positions: List[int] = field(default_factory=list)

    @property
    def lead(self) -> ListingItem:
        return self.items[0]

    @property
    def quantity(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass
class PipelineRun:
    """Mutable state of one SKU pipeline"""
    group: SkuGroup
    state: PipelineState = PipelineState.START
    location_key: Optional[str] = None
    offer_id: Optional[str] = None
    offer_status: Optional[str] = None
    listing_id: Optional[str] = None
    already_existed: bool = False
    category_id: Optional[str] = None
    price: Optional[Decimal] = None
    missing_aspects: List[str] = field(default_factory=list)
    missing_reasons: Dict[str, str] = field(default_factory=dict)


class PipelineFailure(Exception):
    def __init__(self, step: PipelineStep, error: str):
        super().__init__(error)
        self.step = step
        self.error = error


class ListingOrchestrator:
    """Creates, updates and withdraws eBay listings for source inventory"""

    def __init__(
        self,
        client: EbayClient,
        settings: Settings,
        enrichment: Optional[CatalogEnrichment] = None,
        mapping_store: Optional[MappingStore] = None,
        validator: Optional[AspectValidator] = None,
    ):
        self.client = client
        self.settings = settings
        self.enrichment = enrichment or NullEnrichment()
        self.mapping_store = mapping_store
        self.validator = validator or AspectValidator()
        # One session behind the store; writes from concurrent pipelines take turns
        self._store_lock = asyncio.Lock()

    def check_configuration(self):
        """Raises ConfigurationError before any network call if policies are missing"""
        missing = self.settings.missing_policy_settings()
        if missing:
            raise ConfigurationError(
                f"eBay business policies are not configured: {', '.join(missing)}"
            )

    async def run_batch(self, request: BatchRequest, on_result: Optional[ResultCallback] = None) -> BatchResult:
        """
        List a batch of items.

        Items are grouped by destination SKU and each group runs once, with at
        most LISTING_CONCURRENCY groups in flight. Results come back in input
        order. on_result is called as each item finishes, so a caller that
        cancels the batch still has the completed results.

        Raises:
            ConfigurationError: If business policies are missing
            LocationUnavailableError: If no merchant location can be resolved
        """
        self.check_configuration()

        account_id = request.account_id or self.settings.DEFAULT_ACCOUNT_ID
        results: List[Optional[ItemResult]] = [None] * len(request.items)
        groups = self._group_items(request.items)

        for position, result in self._collision_failures(groups).items():
            results[position] = result
            await self._notify(on_result, result)
        groups = [g for g in groups if results[g.positions[0]] is None]

        if not groups:
            return BatchResult(items=[r for r in results if r is not None])

        location_cache = LocationCache(LocationResolver(self.client, self.settings))
        await location_cache.get()

        semaphore = asyncio.Semaphore(max(1, self.settings.LISTING_CONCURRENCY))

        async def run_group(group: SkuGroup):
            async with semaphore:
                group_results = await self._run_pipeline(
                    group, location_cache, request.publish_immediately, account_id
                )
            for position, result in zip(group.positions, group_results):
                results[position] = result
                await self._notify(on_result, result)

        await asyncio.gather(*(run_group(group) for group in groups))

        batch = BatchResult(items=[r for r in results if r is not None])
        logger.info(f"Batch finished: {batch.summary()}")
        return batch

    async def _notify(self, callback: Optional[ResultCallback], result: ItemResult):
        if callback is None:
            return
        outcome = callback(result)
        if inspect.isawaitable(outcome):
            await outcome

    def _group_items(self, items: List[ListingItem]) -> List[SkuGroup]:
        groups: Dict[Tuple[str, str], SkuGroup] = {}
        for position, item in enumerate(items):
            key = sku_codec.identity_key(item.base_sku, item.size)
            group = groups.get(key)
            if group is None:
                group = groups[key] = SkuGroup(sku=sku_codec.encode(item.base_sku, item.size))
            group.items.append(item)
            group.positions.append(position)
        return list(groups.values())

    def _collision_failures(self, groups: List[SkuGroup]) -> Dict[int, ItemResult]:
        """Fail every group after the first that lands on an already used SKU"""
        failures: Dict[int, ItemResult] = {}
        owners: Dict[str, SkuGroup] = {}
        for group in groups:
            owner = owners.get(group.sku)
            if owner is None:
                owners[group.sku] = group
                continue
            error = (
                f"SKU {group.sku} is already used by {owner.lead.base_sku}/{owner.lead.size} "
                f"in this batch"
            )
            logger.error(f"[{group.sku}] canonicalize failed: {error}")
            for position, item in zip(group.positions, group.items):
                failures[position] = self._item_result(
                    group, item, ItemOutcome.FAILED, step=PipelineStep.CANONICALIZE, error=error
                )
        return failures

    def _item_result(self, group: SkuGroup, item: ListingItem, status: ItemOutcome, run: Optional[PipelineRun] = None, **kwargs) -> ItemResult:
        data = dict(
            sku=group.sku,
            base_sku=item.base_sku,
            size=item.size,
            source_listing_id=item.source_listing_id,
            status=status,
        )
        if run is not None:
            data.update(
                offer_id=run.offer_id,
                listing_id=run.listing_id,
                listing_url=LISTING_URL.format(listing_id=run.listing_id) if run.listing_id else None,
                already_existed=run.already_existed,
                missing_aspects=list(run.missing_aspects),
                missing_reasons=dict(run.missing_reasons),
                category_id=run.category_id,
                price=run.price,
            )
        data.update(kwargs)
        return ItemResult(**data)

    async def _run_pipeline(
        self,
        group: SkuGroup,
        location_cache: LocationCache,
        publish: bool,
        account_id: str,
    ) -> List[ItemResult]:
        run = PipelineRun(group=group)
        sku = group.sku

        try:
            run.location_key = await location_cache.get()
            run.state = PipelineState.LOCATION_READY

            enrichment = await self._enrich(group.lead)
            title = build_title(group.lead.title or enrichment.title or group.lead.base_sku, group.lead.size)
            run.category_id = await self._resolve_category(group.lead, enrichment, title)
            required = await self._required_aspects(sku, run.category_id)
            aspects = build_aspects(group.lead, enrichment, required, title=title)

            await self._upsert_inventory(run, title, enrichment, aspects)
            run.state = PipelineState.INVENTORY_UPSERTED

            await self._resolve_offer(run, title)
            run.state = PipelineState.OFFER_RESOLVED

            if run.already_existed and run.offer_status == "PUBLISHED":
                logger.info(f"[{sku}] Offer {run.offer_id} already published as {run.listing_id}")
                run.state = PipelineState.PUBLISHED
            elif publish:
                validation = self.validator.validate(aspects, required)
                if validation.ready:
                    await self._publish(run)
                    run.state = PipelineState.PUBLISHED
                else:
                    run.missing_aspects = validation.missing
                    run.missing_reasons = validation.reasons
                    logger.info(f"[{sku}] Kept as draft, missing aspects: {validation.missing}")
                    run.state = PipelineState.DRAFT
            else:
                run.state = PipelineState.DRAFT

        except PipelineFailure as failure:
            run.state = PipelineState.FAILED
            logger.error(f"[{sku}] Failed at {failure.step.value}: {failure.error}")
            return [
                self._item_result(group, item, ItemOutcome.FAILED, run, step=failure.step, error=failure.error)
                for item in group.items
            ]

        # Drafts stay unmapped, recovered ones included. Reconciliation only sees
        # published offers, so an active mapping to a draft would read as an eBay sale.
        if run.state == PipelineState.DRAFT:
            return [self._item_result(group, item, ItemOutcome.DRAFT, run) for item in group.items]

        results = []
        for item in group.items:
            mapped = await self._record_mapping(run, item, account_id)
            results.append(self._item_result(group, item, ItemOutcome.CREATED, run, mapped=mapped))
        return results

    async def _enrich(self, item: ListingItem) -> EnrichmentResult:
        hint = IdentityHint(base_sku=item.base_sku, size=item.size, title=item.title, brand=item.brand)
        try:
            result = await self.enrichment.lookup(hint)
        except Exception as e:
            logger.warning(f"Enrichment failed for {item.base_sku}: {e}")
            result = None
        return result or EnrichmentResult()

    async def _resolve_category(self, item: ListingItem, enrichment: EnrichmentResult, title: str) -> str:
        if item.category_id:
            return item.category_id
        if enrichment.category_id:
            return enrichment.category_id
        try:
            suggestions = await self.client.get_category_suggestions(title)
            if suggestions:
                return suggestions[0].category_id
        except EbayAPIError as e:
            logger.warning(f"Category suggestion failed for '{title}': {e}")
        return fallback_category(item.product_type or enrichment.product_type, title)

    async def _required_aspects(self, sku: str, category_id: str) -> List[str]:
        try:
            return await self.client.get_required_aspects(category_id)
        except EbayAPIError as e:
            logger.warning(f"[{sku}] Could not fetch aspects for category {category_id}: {e}")
            return []

    async def _upsert_inventory(self, run: PipelineRun, title: str, enrichment: EnrichmentResult, aspects: Dict[str, List[str]]):
        item = run.group.lead
        colorway = item.colorway or enrichment.colorway
        payload = InventoryItemPayload(
            title=title,
            condition=map_condition(item.condition),
            quantity=run.group.quantity,
            image_urls=normalize_image_urls(item.image_urls, enrichment.image_urls),
            aspects=aspects,
            description=item.description or generate_description(title, item.size, colorway, item.base_sku),
            brand=aspects.get("Brand", [None])[0],
            mpn=item.base_sku,
        )
        try:
            await self.client.create_or_update_inventory_item(run.group.sku, payload)
        except EbayAPIError as e:
            raise PipelineFailure(PipelineStep.INVENTORY, str(e))
        logger.info(f"[{run.group.sku}] Inventory item upserted")

    async def _resolve_offer(self, run: PipelineRun, title: str):
        item = run.group.lead
        run.price = apply_markup(item.price, self.settings.EBAY_PRICE_MARKUP)
        payload = OfferPayload(
            sku=run.group.sku,
            marketplace_id=self.settings.EBAY_MARKETPLACE_ID,
            category_id=run.category_id,
            price=run.price,
            currency=self.settings.EBAY_CURRENCY,
            quantity=run.group.quantity,
            merchant_location_key=run.location_key,
            fulfillment_policy_id=self.settings.EBAY_FULFILLMENT_POLICY_ID,
            payment_policy_id=self.settings.EBAY_PAYMENT_POLICY_ID,
            return_policy_id=self.settings.EBAY_RETURN_POLICY_ID,
            description=item.description or generate_description(title, item.size, item.colorway, item.base_sku),
        )

        try:
            run.offer_id = await self.client.create_offer(payload)
            logger.info(f"[{run.group.sku}] Created offer {run.offer_id}")
            return
        except OfferConflictError as conflict:
            logger.info(f"[{run.group.sku}] Offer exists, recovering it")
            try:
                existing = await self.client.find_offer_by_sku(run.group.sku)
            except EbayAPIError as e:
                raise PipelineFailure(PipelineStep.OFFER, f"{conflict}; recovery lookup failed: {e}")
            if existing is None:
                raise PipelineFailure(PipelineStep.OFFER, f"{conflict}; no existing offer found for SKU")
        except EbayAPIError as e:
            raise PipelineFailure(PipelineStep.OFFER, str(e))

        run.offer_id = existing.offer_id
        run.offer_status = existing.status
        run.listing_id = existing.listing_id
        run.already_existed = True

    async def _publish(self, run: PipelineRun):
        try:
            run.listing_id = await self.client.publish_offer(run.offer_id)
        except EbayAPIError as e:
            raise PipelineFailure(PipelineStep.PUBLISH, str(e))
        logger.info(f"[{run.group.sku}] Published offer {run.offer_id} as listing {run.listing_id}")

    async def _record_mapping(self, run: PipelineRun, item: ListingItem, account_id: str) -> bool:
        if self.mapping_store is None:
            return False
        mapping = MappingCreate(
            account_id=account_id,
            base_sku=item.base_sku,
            size=item.size,
            source_listing_id=item.source_listing_id,
            destination_offer_id=run.offer_id,
            destination_listing_id=run.listing_id,
            destination_sku=run.group.sku,
            status=MappingStatus.ACTIVE,
        )
        try:
            async with self._store_lock:
                await self.mapping_store.insert(mapping)
        except (MappingConflictError, DatabaseError) as e:
            logger.error(f"[{run.group.sku}] Mapping not stored: {e}")
            return False
        return True

    # --- Updates and withdrawals ---

    async def update_price_quantity(self, updates: List[PriceQuantityUpdate]) -> List[PriceQuantityResult]:
        """Bulk price/quantity change, 25 offers per eBay call"""
        results: List[PriceQuantityResult] = []
        for start in range(0, len(updates), 25):
            chunk = updates[start:start + 25]
            try:
                results.extend(await self.client.bulk_update_price_quantity(chunk))
            except EbayAPIError as e:
                results.extend(
                    PriceQuantityResult(offer_id=u.offer_id, sku=u.sku, success=False, error=str(e))
                    for u in chunk
                )
        return results

    async def update_offer(self, offer_id: str, changes: OfferUpdate) -> bool:
        """
        Change price, quantity, description or title of an existing offer.

        The offer is read, merged and written back whole; eBay has no partial
        offer update.
        """
        offer = await self.client.get_offer(offer_id)
        body = {
            key: value for key, value in offer.raw.items()
            if key not in ("offerId", "status", "listing")
        }

        if changes.price is not None:
            body["pricingSummary"] = {
                "price": {"value": str(changes.price), "currency": offer.currency or self.settings.EBAY_CURRENCY}
            }
        if changes.quantity is not None:
            body["availableQuantity"] = changes.quantity
        if changes.description is not None:
            body["listingDescription"] = changes.description

        await self.client.update_offer(offer_id, body)

        if changes.title:
            item = await self.client.get_inventory_item(offer.sku)
            if item is not None:
                item.setdefault("product", {})["title"] = build_title(changes.title, "")
                item.pop("sku", None)
                await self.client.put_inventory_item(offer.sku, item)

        logger.info(f"Updated offer {offer_id}")
        return True

    async def withdraw_offers(self, offer_ids: List[str], account_id: Optional[str] = None) -> List[WithdrawItemResult]:
        """End listings; their active mappings become 'delisted'"""
        account_id = account_id or self.settings.DEFAULT_ACCOUNT_ID
        results = []
        for offer_id in offer_ids:
            try:
                outcome = await self.client.withdraw_offer(offer_id)
            except EbayAPIError as e:
                results.append(WithdrawItemResult(offer_id=offer_id, success=False, error=str(e)))
                continue

            updated = 0
            if self.mapping_store is not None:
                async with self._store_lock:
                    updated = await self.mapping_store.update_status(
                        offer_id, MappingStatus.DELISTED, account_id
                    )
            results.append(WithdrawItemResult(
                offer_id=offer_id, success=True, outcome=outcome, mappings_updated=updated
            ))
        return results
