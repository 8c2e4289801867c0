"""
Records exchanged with the listing orchestrator.
"""
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from crosslist.core.enums import ItemOutcome, PipelineStep, WithdrawOutcome


class ListingItem(BaseModel):
    """One unit of source inventory to list on eBay"""
    base_sku: str
    size: str = ""
    price: Decimal
    quantity: int = Field(default=1, ge=1)
    source_listing_id: Optional[str] = None
    title: Optional[str] = None
    condition: str = "new"
    brand: Optional[str] = None
    colorway: Optional[str] = None
    model: Optional[str] = None
    silhouette: Optional[str] = None
    product_type: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    image_urls: List[str] = []
    attributes: Dict[str, List[str]] = {}

    @field_validator("base_sku")
    @classmethod
    def base_sku_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("base_sku must not be blank")
        return value.strip()


class BatchRequest(BaseModel):
    items: List[ListingItem]
    publish_immediately: bool = True
    account_id: Optional[str] = None


class ItemResult(BaseModel):
    sku: str
    base_sku: str
    size: str = ""
    source_listing_id: Optional[str] = None
    status: ItemOutcome
    offer_id: Optional[str] = None
    listing_id: Optional[str] = None
    listing_url: Optional[str] = None
    step: Optional[PipelineStep] = None
    error: Optional[str] = None
    already_existed: bool = False
    missing_aspects: List[str] = []
    missing_reasons: Dict[str, str] = {}
    category_id: Optional[str] = None
    price: Optional[Decimal] = None
    mapped: bool = False


class BatchResult(BaseModel):
    items: List[ItemResult] = []

    @computed_field
    @property
    def created(self) -> int:
        return sum(1 for item in self.items if item.status == ItemOutcome.CREATED)

    @computed_field
    @property
    def drafts(self) -> int:
        return sum(1 for item in self.items if item.status == ItemOutcome.DRAFT)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if item.status == ItemOutcome.FAILED)

    def summary(self) -> Dict[str, int]:
        return {
            "total": len(self.items),
            "created": self.created,
            "drafts": self.drafts,
            "failed": self.failed,
        }


class IdentityHint(BaseModel):
    """What is known about a product before catalog lookup"""
    base_sku: str
    size: str = ""
    title: Optional[str] = None
    brand: Optional[str] = None


class EnrichmentResult(BaseModel):
    title: Optional[str] = None
    brand: Optional[str] = None
    colorway: Optional[str] = None
    model: Optional[str] = None
    product_type: Optional[str] = None
    category_id: Optional[str] = None
    image_urls: List[str] = []
    attributes: Dict[str, List[str]] = {}


class WithdrawRequest(BaseModel):
    offer_ids: List[str]


class WithdrawItemResult(BaseModel):
    offer_id: str
    success: bool
    outcome: Optional[WithdrawOutcome] = None
    error: Optional[str] = None
    mappings_updated: int = 0
