# crosslist/routes/delist_history.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from crosslist.core.config import Settings, get_settings
from crosslist.core.exceptions import DatabaseError
from crosslist.dependencies import get_delist_logger
from crosslist.schemas.reconcile import DelistHistory, DelistLogEntry
from crosslist.services.mapping_store import DEFAULT_HISTORY_LIMIT, DelistLogger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/delist-history", tags=["reconcile"])

STATUS_FILTERS = {"success": True, "failed": False}


@router.get("", response_model=DelistHistory)
async def delist_history(
    account_id: Optional[str] = None,
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1),
    status: Optional[str] = Query(None, pattern="^(success|failed)$"),
    delist_logger: DelistLogger = Depends(get_delist_logger),
    settings: Settings = Depends(get_settings),
):
    """Withdraw attempts made by reconciliation, newest first. limit is capped at 200."""
    account_id = account_id or settings.DEFAULT_ACCOUNT_ID
    try:
        rows = await delist_logger.list(account_id, limit=limit, success=STATUS_FILTERS.get(status))
    except DatabaseError as e:
        logger.error(f"Delist history unavailable: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch delist history")

    logs = [DelistLogEntry.from_orm_model(row) for row in rows]
    succeeded = sum(1 for entry in logs if entry.success)
    return DelistHistory(
        logs=logs,
        summary={"total": len(logs), "success": succeeded, "failed": len(logs) - succeeded},
    )
