# crosslist/models/reconcile_lock.py
from sqlalchemy import Column, DateTime, String

from crosslist.database import Base
from crosslist.models.cross_list_link import utc_now


class ReconcileLock(Base):
    """Serializes reconciliation runs per account across processes"""
    __tablename__ = "reconcile_locks"

    account_id = Column(String, primary_key=True)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
