from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crosslist.core.config import Settings, get_settings
from crosslist.database import get_session_factory
from crosslist.services.ebay.client import EbayClient
from crosslist.services.ebay.listing import ListingOrchestrator
from crosslist.services.enrichment import CatalogEnrichment, NullEnrichment, StockXCatalogEnrichment
from crosslist.services.mapping_store import AccountLockManager, DelistLogger, SqlMappingStore
from crosslist.services.reconciliation_service import ReconciliationEngine
from crosslist.services.stockx.client import StockXClient


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


def get_ebay_client(settings: Settings = Depends(get_settings)) -> EbayClient:
    return EbayClient(settings=settings)


def get_stockx_client(settings: Settings = Depends(get_settings)) -> StockXClient:
    return StockXClient(settings=settings)


def get_enrichment(settings: Settings = Depends(get_settings)) -> CatalogEnrichment:
    if not settings.STOCKX_API_KEY:
        return NullEnrichment()
    return StockXCatalogEnrichment(StockXClient(settings=settings))


def get_mapping_store(db: AsyncSession = Depends(get_db)) -> SqlMappingStore:
    return SqlMappingStore(db)


def get_orchestrator(
    settings: Settings = Depends(get_settings),
    client: EbayClient = Depends(get_ebay_client),
    enrichment: CatalogEnrichment = Depends(get_enrichment),
    mapping_store: SqlMappingStore = Depends(get_mapping_store),
) -> ListingOrchestrator:
    return ListingOrchestrator(client, settings, enrichment=enrichment, mapping_store=mapping_store)


def get_reconciliation_engine(
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
    ebay_client: EbayClient = Depends(get_ebay_client),
    stockx_client: StockXClient = Depends(get_stockx_client),
) -> ReconciliationEngine:
    return ReconciliationEngine(
        ebay_client=ebay_client,
        stockx_client=stockx_client,
        mapping_store=SqlMappingStore(db),
        settings=settings,
        delist_logger=DelistLogger(db),
        lock_manager=AccountLockManager(db, settings.RECONCILE_LOCK_MINUTES),
    )


def get_delist_logger(db: AsyncSession = Depends(get_db)) -> DelistLogger:
    return DelistLogger(db)
