"""
Shared enums and constants used across the application.
"""

from enum import Enum


class MappingStatus(str, Enum):
    """Lifecycle of a cross-listing mapping. Rows are never hard-deleted."""
    ACTIVE = "active"
    DELISTED = "delisted"
    SOLD_SOURCE = "sold_source"
    SOLD_DESTINATION = "sold_destination"
    SOLD = "sold"


class OfferStatus(str, Enum):
    UNPUBLISHED = "UNPUBLISHED"
    PUBLISHED = "PUBLISHED"
    WITHDRAWN = "WITHDRAWN"


class LocationStatus(str, Enum):
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"


class PipelineState(str, Enum):
    """States of the per-SKU listing pipeline"""
    START = "START"
    LOCATION_READY = "LOCATION_READY"
    INVENTORY_UPSERTED = "INVENTORY_UPSERTED"
    OFFER_RESOLVED = "OFFER_RESOLVED"
    PUBLISHED = "PUBLISHED"
    DRAFT = "DRAFT"
    FAILED = "FAILED"


class PipelineStep(str, Enum):
    """Step at which a listing pipeline failed"""
    CANONICALIZE = "canonicalize"
    LOCATION = "location"
    ENRICH = "enrich"
    INVENTORY = "inventory"
    OFFER = "offer"
    PUBLISH = "publish"


class ItemOutcome(str, Enum):
    CREATED = "created"
    DRAFT = "draft"
    FAILED = "failed"


class WithdrawOutcome(str, Enum):
    WITHDRAWN = "withdrawn"
    ALREADY_REMOVED = "already_removed"
    NOT_PUBLISHED = "not_published"


class ItemCondition(str, Enum):
    """eBay inventory condition enumeration values"""
    NEW = "NEW"
    NEW_OTHER = "NEW_OTHER"
    NEW_WITH_DEFECTS = "NEW_WITH_DEFECTS"
    USED_EXCELLENT = "USED_EXCELLENT"
    USED_GOOD = "USED_GOOD"
    USED_ACCEPTABLE = "USED_ACCEPTABLE"


class ReconcileAction(str, Enum):
    WITHDRAW_DESTINATION = "withdraw_destination"
    WITHDRAW_SOURCE = "withdraw_source"
    MARK_SOLD = "mark_sold"
    AUTO_MAP = "auto_map"
