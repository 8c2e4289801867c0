# crosslist/models/cross_list_link.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from crosslist.core.enums import MappingStatus
from crosslist.database import Base


def utc_now():
    return datetime.now(timezone.utc)


class CrossListLink(Base):
    """
    Links a StockX listing to the eBay offer created from it.

    Status moves away from 'active' when either side sells or is withdrawn.
    Rows are never deleted; they are the audit trail of the cross-listing.
    """
    __tablename__ = "cross_list_links"

    id = Column(Integer, primary_key=True)
    account_id = Column(String, nullable=False, default="default", index=True)

    base_sku = Column(String, nullable=False)
    size = Column(String, nullable=False, default="")
    source_listing_id = Column(String, nullable=True, index=True)

    destination_offer_id = Column(String, nullable=False, index=True)
    destination_listing_id = Column(String, nullable=True)
    destination_sku = Column(String(50), nullable=False, index=True)

    status = Column(String, nullable=False, default=MappingStatus.ACTIVE.value)
    sold_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            'account_id', 'destination_offer_id', 'source_listing_id',
            name='uq_cross_list_link_offer_source'
        ),
        Index('ix_cross_list_links_account_status', 'account_id', 'status'),
    )

    def __repr__(self):
        return f"<CrossListLink(id={self.id}, sku='{self.destination_sku}', status='{self.status}')>"
