from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from crosslist.core.enums import MappingStatus, ReconcileAction, WithdrawOutcome
from crosslist.schemas.base import BaseSchema


class SourceLiveListing(BaseModel):
    listing_id: str
    base_sku: str = ""
    size: str = ""


class DestinationLiveOffer(BaseModel):
    offer_id: str
    sku: str = ""
    listing_id: Optional[str] = None


class ReconcileRequest(BaseModel):
    """Live sets may be supplied by the caller; missing ones are fetched"""
    account_id: Optional[str] = None
    source_live: Optional[List[SourceLiveListing]] = None
    destination_live: Optional[List[DestinationLiveOffer]] = None
    dry_run: bool = False


class PlannedAction(BaseModel):
    action: ReconcileAction
    mapping_id: Optional[int] = None
    destination_offer_id: Optional[str] = None
    source_listing_id: Optional[str] = None
    destination_sku: Optional[str] = None
    new_status: Optional[MappingStatus] = None
    outcome: Optional[WithdrawOutcome] = None
    executed: bool = False
    success: bool = False
    error: Optional[str] = None


class ReconcileReport(BaseModel):
    account_id: str
    dry_run: bool = False
    skipped: bool = False
    withdrawn_from_destination: List[str] = []
    withdrawn_from_source: List[str] = []
    marked_sold: List[str] = []
    auto_mapped: List[str] = []
    ambiguous: List[str] = []
    errors: List[str] = []
    actions: List[PlannedAction] = []


class DelistLogEntry(BaseSchema):
    id: int
    account_id: str
    link_id: Optional[int] = None
    platform: str
    listing_ref: str
    sku: Optional[str] = None
    reason: str
    success: bool
    outcome: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None


class DelistHistory(BaseModel):
    logs: List[DelistLogEntry] = []
    summary: Dict[str, int] = {}
