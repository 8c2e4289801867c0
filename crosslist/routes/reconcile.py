# crosslist/routes/reconcile.py
import logging

from fastapi import APIRouter, Depends, HTTPException

from crosslist.core.exceptions import EbayAPIError, StockXAPIError
from crosslist.dependencies import get_reconciliation_engine
from crosslist.schemas.reconcile import ReconcileReport, ReconcileRequest
from crosslist.services.reconciliation_service import ReconciliationEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reconcile", tags=["reconcile"])


@router.post("", response_model=ReconcileReport)
async def reconcile(
    request: ReconcileRequest,
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
):
    """
    Withdraw listings whose twin sold and adopt unmapped eBay offers.

    Live sets left out of the request are fetched from the marketplaces.
    """
    try:
        return await engine.run(
            account_id=request.account_id,
            dry_run=request.dry_run,
            source_live=request.source_live,
            destination_live=request.destination_live,
        )
    except (EbayAPIError, StockXAPIError) as e:
        logger.error(f"Reconciliation aborted: {e}")
        raise HTTPException(status_code=502, detail=f"Could not read live listings: {e}")
