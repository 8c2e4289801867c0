# crosslist/models/delist_log.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from crosslist.database import Base
from crosslist.models.cross_list_link import utc_now


class DelistLog(Base):
    """One row per withdraw attempt made by reconciliation"""
    __tablename__ = "delist_log"

    id = Column(Integer, primary_key=True)
    account_id = Column(String, nullable=False, index=True)
    link_id = Column(Integer, nullable=True)
    platform = Column(String, nullable=False)  # 'ebay' or 'stockx'
    listing_ref = Column(String, nullable=False)  # offer id or StockX listing id
    sku = Column(String, nullable=True)
    reason = Column(String, nullable=False)
    success = Column(Boolean, nullable=False, default=False)
    outcome = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
