# crosslist/routes/listings.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from crosslist.core.exceptions import EbayAPIError
from crosslist.dependencies import get_ebay_client, get_orchestrator
from crosslist.schemas.ebay import Offer, OfferUpdate, PriceQuantityResult, PriceQuantityUpdate
from crosslist.schemas.listing import BatchRequest, BatchResult, WithdrawItemResult, WithdrawRequest
from crosslist.services.ebay.client import EbayClient
from crosslist.services.ebay.listing import ListingOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["listings"])


@router.post("", response_model=BatchResult)
async def create_listings(
    request: BatchRequest,
    orchestrator: ListingOrchestrator = Depends(get_orchestrator),
):
    """List a batch of StockX items on eBay"""
    if not request.items:
        raise HTTPException(status_code=400, detail="No items provided")
    logger.info(f"Listing batch of {len(request.items)} items")
    return await orchestrator.run_batch(request)


@router.get("/offers", response_model=List[Offer])
async def list_offers(
    published_only: bool = False,
    client: EbayClient = Depends(get_ebay_client),
):
    """All eBay offers created through inventory items"""
    try:
        if published_only:
            return await client.list_published_offers()
        return await client.list_offers()
    except EbayAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.patch("", response_model=List[PriceQuantityResult])
async def update_price_quantity(
    updates: List[PriceQuantityUpdate],
    orchestrator: ListingOrchestrator = Depends(get_orchestrator),
):
    """Bulk price and quantity update"""
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    return await orchestrator.update_price_quantity(updates)


@router.patch("/{offer_id}")
async def update_offer(
    offer_id: str,
    changes: OfferUpdate,
    orchestrator: ListingOrchestrator = Depends(get_orchestrator),
):
    try:
        await orchestrator.update_offer(offer_id, changes)
    except EbayAPIError as e:
        raise HTTPException(status_code=e.status_code if e.status_code and e.status_code < 500 else 502, detail=str(e))
    return {"success": True, "offer_id": offer_id}


@router.delete("", response_model=List[WithdrawItemResult])
async def withdraw_listings(
    request: WithdrawRequest,
    orchestrator: ListingOrchestrator = Depends(get_orchestrator),
):
    """End eBay listings and mark their mappings delisted"""
    if not request.offer_ids:
        raise HTTPException(status_code=400, detail="No offer ids provided")
    return await orchestrator.withdraw_offers(request.offer_ids)
