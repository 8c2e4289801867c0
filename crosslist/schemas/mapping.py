from datetime import datetime
from typing import Optional

from crosslist.core.enums import MappingStatus
from crosslist.schemas.base import BaseSchema


class MappingCreate(BaseSchema):
    account_id: str = "default"
    base_sku: str
    size: str = ""
    source_listing_id: Optional[str] = None
    destination_offer_id: str
    destination_listing_id: Optional[str] = None
    destination_sku: str
    status: MappingStatus = MappingStatus.ACTIVE


class MappingRecord(MappingCreate):
    id: Optional[int] = None
    sold_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
