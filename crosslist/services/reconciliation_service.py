# crosslist/services/reconciliation_service.py
"""
Reconciliation between StockX and eBay.

A unit listed on both marketplaces can sell on either. Sales are not pushed
to us, so each run compares the live listings on both sides with the active
mappings and withdraws whichever side is still up when its twin has gone.
The same pass adopts eBay offers that match a StockX listing but have no
mapping yet.
"""

import logging
from typing import Dict, List, Optional, Set

from crosslist.core.config import Settings
from crosslist.core.enums import MappingStatus, ReconcileAction
from crosslist.core.exceptions import DatabaseError, EbayAPIError, MappingConflictError, StockXAPIError
from crosslist.schemas.mapping import MappingCreate, MappingRecord
from crosslist.schemas.reconcile import (
    DestinationLiveOffer,
    PlannedAction,
    ReconcileReport,
    SourceLiveListing,
)
from crosslist.services import sku_codec
from crosslist.services.ebay.client import EbayClient
from crosslist.services.mapping_store import AccountLockManager, DelistLogger, MappingStore
from crosslist.services.stockx.client import StockXClient

logger = logging.getLogger(__name__)


def plan_reconciliation(
    source_live: List[SourceLiveListing],
    destination_live: List[DestinationLiveOffer],
    mappings: List[MappingRecord],
    legacy_match: bool = False,
) -> List[PlannedAction]:
    """
    Decide what to do without touching either marketplace.

    Per active mapping:
        source gone, destination live  -> withdraw destination, sold_source
        destination gone, source live  -> withdraw source, sold_destination
        both gone                      -> sold
        no source listing id and destination gone -> sold_destination

    Each live offer without a mapping is adopted when exactly one unmapped
    StockX listing matches its SKU.
    """
    source_ids: Set[str] = {listing.listing_id for listing in source_live}
    destination_ids: Set[str] = {offer.offer_id for offer in destination_live}
    actions: List[PlannedAction] = []

    for mapping in mappings:
        if mapping.status != MappingStatus.ACTIVE:
            continue

        destination_present = mapping.destination_offer_id in destination_ids
        common = dict(
            mapping_id=mapping.id,
            destination_offer_id=mapping.destination_offer_id,
            source_listing_id=mapping.source_listing_id,
            destination_sku=mapping.destination_sku,
        )

        if not mapping.source_listing_id:
            if not destination_present:
                actions.append(PlannedAction(
                    action=ReconcileAction.MARK_SOLD, new_status=MappingStatus.SOLD_DESTINATION, **common
                ))
            continue

        source_present = mapping.source_listing_id in source_ids
        if source_present and destination_present:
            continue
        if destination_present:
            actions.append(PlannedAction(
                action=ReconcileAction.WITHDRAW_DESTINATION, new_status=MappingStatus.SOLD_SOURCE, **common
            ))
        elif source_present:
            actions.append(PlannedAction(
                action=ReconcileAction.WITHDRAW_SOURCE, new_status=MappingStatus.SOLD_DESTINATION, **common
            ))
        else:
            actions.append(PlannedAction(
                action=ReconcileAction.MARK_SOLD, new_status=MappingStatus.SOLD, **common
            ))

    mapped_offers = {m.destination_offer_id for m in mappings}
    mapped_sources = {m.source_listing_id for m in mappings if m.source_listing_id}
    unmapped_sources = [s for s in source_live if s.listing_id not in mapped_sources]

    for offer in destination_live:
        if offer.offer_id in mapped_offers or not offer.sku:
            continue
        candidates = find_source_matches(offer.sku, unmapped_sources, legacy_match)
        if len(candidates) == 1:
            actions.append(PlannedAction(
                action=ReconcileAction.AUTO_MAP,
                destination_offer_id=offer.offer_id,
                source_listing_id=candidates[0].listing_id,
                destination_sku=offer.sku,
                new_status=MappingStatus.ACTIVE,
            ))
        elif len(candidates) > 1:
            logger.warning(
                f"Offer {offer.offer_id} ({offer.sku}) matches {len(candidates)} StockX listings, skipping"
            )
            actions.append(PlannedAction(
                action=ReconcileAction.AUTO_MAP,
                destination_offer_id=offer.offer_id,
                destination_sku=offer.sku,
                error=f"ambiguous: {len(candidates)} StockX listings match",
            ))

    return actions


def find_source_matches(
    sku: str,
    sources: List[SourceLiveListing],
    legacy_match: bool = False,
) -> List[SourceLiveListing]:
    """StockX listings that a destination SKU belongs to, strictest rule first"""
    exact = [s for s in sources if sku.upper() == sku_codec.encode(s.base_sku, s.size)]
    if exact:
        return exact
    decoded = [s for s in sources if sku_codec.matches(sku, s.base_sku, s.size)]
    if decoded or not legacy_match:
        return decoded
    return [s for s in sources if sku_codec.legacy_sku_match(sku, s.base_sku, s.size)]


class ReconciliationEngine:
    """Runs reconciliation passes for an account"""

    def __init__(
        self,
        ebay_client: EbayClient,
        stockx_client: StockXClient,
        mapping_store: MappingStore,
        settings: Settings,
        delist_logger: Optional[DelistLogger] = None,
        lock_manager: Optional[AccountLockManager] = None,
    ):
        self.ebay_client = ebay_client
        self.stockx_client = stockx_client
        self.mapping_store = mapping_store
        self.settings = settings
        self.delist_logger = delist_logger
        self.lock_manager = lock_manager

    async def fetch_source_live(self) -> List[SourceLiveListing]:
        listings = await self.stockx_client.get_active_listings()
        return [
            SourceLiveListing(listing_id=listing.listing_id, base_sku=listing.style_id, size=listing.size)
            for listing in listings
        ]

    async def fetch_destination_live(self) -> List[DestinationLiveOffer]:
        offers = await self.ebay_client.list_published_offers()
        return [
            DestinationLiveOffer(offer_id=o.offer_id, sku=o.sku, listing_id=o.listing_id)
            for o in offers
        ]

    async def run(
        self,
        account_id: Optional[str] = None,
        dry_run: bool = False,
        source_live: Optional[List[SourceLiveListing]] = None,
        destination_live: Optional[List[DestinationLiveOffer]] = None,
    ) -> ReconcileReport:
        """
        Full pass for one account: fetch live sets not supplied, load active
        mappings, reconcile. Concurrent runs for the same account are skipped.
        """
        account_id = account_id or self.settings.DEFAULT_ACCOUNT_ID

        if self.lock_manager is not None and not dry_run:
            if not await self.lock_manager.acquire(account_id):
                logger.info(f"Reconciliation for {account_id} already running, skipping")
                return ReconcileReport(account_id=account_id, skipped=True)

        try:
            if source_live is None:
                source_live = await self.fetch_source_live()
            if destination_live is None:
                destination_live = await self.fetch_destination_live()
            mappings = await self.mapping_store.list_active(account_id)
            return await self.reconcile(source_live, destination_live, mappings, account_id, dry_run)
        finally:
            if self.lock_manager is not None and not dry_run:
                await self.lock_manager.release(account_id)

    async def reconcile(
        self,
        source_live: List[SourceLiveListing],
        destination_live: List[DestinationLiveOffer],
        mappings: List[MappingRecord],
        account_id: Optional[str] = None,
        dry_run: bool = False,
    ) -> ReconcileReport:
        """
        Apply the reconciliation plan.

        A failed withdraw leaves its mapping active so the next run retries it.
        Listings that are already gone count as withdrawn.
        """
        account_id = account_id or self.settings.DEFAULT_ACCOUNT_ID
        actions = plan_reconciliation(
            source_live, destination_live, mappings, self.settings.RECONCILE_LEGACY_MATCH
        )
        report = ReconcileReport(account_id=account_id, dry_run=dry_run, actions=actions)
        identities: Dict[str, SourceLiveListing] = {s.listing_id: s for s in source_live}
        listing_ids: Dict[str, Optional[str]] = {o.offer_id: o.listing_id for o in destination_live}
        withdrawn_offers: Set[str] = set()

        logger.info(
            f"Reconciling {account_id}: {len(mappings)} active mappings, "
            f"{len(source_live)} StockX listings, {len(destination_live)} eBay offers, "
            f"{len(actions)} actions{' (dry run)' if dry_run else ''}"
        )

        for action in actions:
            if action.error:
                report.ambiguous.append(action.destination_sku or action.destination_offer_id)
                continue
            if dry_run:
                continue

            action.executed = True
            try:
                if action.action == ReconcileAction.WITHDRAW_DESTINATION:
                    await self._withdraw_destination(action, account_id, withdrawn_offers)
                    report.withdrawn_from_destination.append(action.destination_offer_id)
                elif action.action == ReconcileAction.WITHDRAW_SOURCE:
                    await self._withdraw_source(action, account_id)
                    report.withdrawn_from_source.append(action.source_listing_id)
                elif action.action == ReconcileAction.MARK_SOLD:
                    await self.mapping_store.update_status(
                        action.destination_offer_id, action.new_status, account_id,
                        source_listing_id=action.source_listing_id,
                    )
                    report.marked_sold.append(action.destination_offer_id)
                elif action.action == ReconcileAction.AUTO_MAP:
                    await self._adopt(
                        action, identities[action.source_listing_id],
                        listing_ids.get(action.destination_offer_id), account_id,
                    )
                    report.auto_mapped.append(action.destination_sku)
                action.success = True
            except (EbayAPIError, StockXAPIError, DatabaseError, MappingConflictError) as e:
                action.error = str(e)
                report.errors.append(f"{action.action.value} {action.destination_sku}: {e}")
                logger.error(f"Reconcile {action.action.value} failed for {action.destination_sku}: {e}")

        # Other units that shared a withdrawn offer lost their eBay listing with it
        for offer_id in withdrawn_offers:
            try:
                await self.mapping_store.update_status(offer_id, MappingStatus.DELISTED, account_id)
            except DatabaseError as e:
                report.errors.append(f"delist siblings of {offer_id}: {e}")
                logger.error(f"Could not delist remaining mappings of offer {offer_id}: {e}")

        logger.info(
            f"Reconciled {account_id}: {len(report.withdrawn_from_destination)} eBay withdrawn, "
            f"{len(report.withdrawn_from_source)} StockX withdrawn, {len(report.marked_sold)} sold, "
            f"{len(report.auto_mapped)} adopted, {len(report.errors)} errors"
        )
        return report

    async def _withdraw_destination(self, action: PlannedAction, account_id: str, withdrawn_offers: Set[str]):
        offer_id = action.destination_offer_id
        if offer_id not in withdrawn_offers:
            try:
                action.outcome = await self.ebay_client.withdraw_offer(offer_id)
            except EbayAPIError as e:
                await self._log_delist(action, account_id, "ebay", offer_id, "sold_on_stockx", False, error=str(e))
                raise
            withdrawn_offers.add(offer_id)
            await self._log_delist(action, account_id, "ebay", offer_id, "sold_on_stockx", True)

        await self.mapping_store.update_status(
            offer_id, action.new_status, account_id, source_listing_id=action.source_listing_id
        )

    async def _withdraw_source(self, action: PlannedAction, account_id: str):
        listing_id = action.source_listing_id
        try:
            action.outcome = await self.stockx_client.delete_listing(listing_id)
        except StockXAPIError as e:
            await self._log_delist(action, account_id, "stockx", listing_id, "sold_on_ebay", False, error=str(e))
            raise
        await self._log_delist(action, account_id, "stockx", listing_id, "sold_on_ebay", True)
        await self.mapping_store.update_status(
            action.destination_offer_id, action.new_status, account_id, source_listing_id=listing_id
        )

    async def _adopt(
        self,
        action: PlannedAction,
        source: SourceLiveListing,
        listing_id: Optional[str],
        account_id: str,
    ):
        await self.mapping_store.insert(MappingCreate(
            account_id=account_id,
            base_sku=source.base_sku,
            size=source.size,
            source_listing_id=source.listing_id,
            destination_offer_id=action.destination_offer_id,
            destination_listing_id=listing_id,
            destination_sku=action.destination_sku,
            status=MappingStatus.ACTIVE,
        ))
        logger.info(f"Adopted offer {action.destination_offer_id} for StockX listing {source.listing_id}")

    async def _log_delist(
        self,
        action: PlannedAction,
        account_id: str,
        platform: str,
        listing_ref: str,
        reason: str,
        success: bool,
        error: Optional[str] = None,
    ):
        if self.delist_logger is None:
            return
        await self.delist_logger.log(
            account_id=account_id,
            platform=platform,
            listing_ref=listing_ref,
            reason=reason,
            success=success,
            sku=action.destination_sku,
            link_id=action.mapping_id,
            outcome=action.outcome.value if action.outcome else None,
            error=error,
        )


async def process_reconciliation(
    account_id: Optional[str] = None,
    dry_run: bool = False,
    settings: Optional[Settings] = None,
) -> ReconcileReport:
    """
    Common reconciliation entry point for the CLI and the scheduler.

    Opens its own database session and marketplace clients.
    """
    from crosslist.core.config import get_settings
    from crosslist.database import get_session
    from crosslist.services.mapping_store import SqlMappingStore

    settings = settings or get_settings()
    async with get_session() as db:
        engine = ReconciliationEngine(
            ebay_client=EbayClient(settings=settings),
            stockx_client=StockXClient(settings=settings),
            mapping_store=SqlMappingStore(db),
            settings=settings,
            delist_logger=DelistLogger(db),
            lock_manager=AccountLockManager(db, settings.RECONCILE_LOCK_MINUTES),
        )
        return await engine.run(account_id=account_id, dry_run=dry_run)
