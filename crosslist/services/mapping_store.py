# crosslist/services/mapping_store.py
"""
Persistence for cross-listing mappings, the delist audit log and the
per-account reconciliation lock.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crosslist.core.enums import MappingStatus
from crosslist.core.exceptions import DatabaseError, MappingConflictError
from crosslist.models.cross_list_link import CrossListLink
from crosslist.models.delist_log import DelistLog
from crosslist.models.reconcile_lock import ReconcileLock
from crosslist.schemas.mapping import MappingCreate, MappingRecord

logger = logging.getLogger(__name__)

SOLD_STATUSES = (MappingStatus.SOLD, MappingStatus.SOLD_SOURCE, MappingStatus.SOLD_DESTINATION)
DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200


class MappingStore(ABC):
    """Narrow CRUD interface the orchestrator and reconciliation depend on"""

    @abstractmethod
    async def insert(self, mapping: MappingCreate) -> Tuple[MappingRecord, bool]:
        """Insert a mapping. Returns (record, created); created is False if it already existed."""

    @abstractmethod
    async def update_status(
        self,
        destination_offer_id: str,
        status: MappingStatus,
        account_id: str,
        source_listing_id: Optional[str] = None,
    ) -> int:
        """Set the status of the active mappings of an offer. Returns rows changed."""

    @abstractmethod
    async def list_active(self, account_id: str) -> List[MappingRecord]:
        ...


class SqlMappingStore(MappingStore):
    """Mapping store on the cross_list_links table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _natural_key(self, account_id: str, offer_id: str, source_listing_id: Optional[str]):
        source_clause = (
            CrossListLink.source_listing_id.is_(None)
            if source_listing_id is None
            else CrossListLink.source_listing_id == source_listing_id
        )
        return and_(
            CrossListLink.account_id == account_id,
            CrossListLink.destination_offer_id == offer_id,
            source_clause,
        )

    async def _find(self, mapping: MappingCreate) -> Optional[CrossListLink]:
        stmt = select(CrossListLink).where(
            self._natural_key(mapping.account_id, mapping.destination_offer_id, mapping.source_listing_id)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def insert(self, mapping: MappingCreate) -> Tuple[MappingRecord, bool]:
        existing = await self._find(mapping)
        if existing is not None:
            logger.debug(f"Mapping already exists for offer {mapping.destination_offer_id}")
            return MappingRecord.from_orm_model(existing), False

        link = CrossListLink(
            account_id=mapping.account_id,
            base_sku=mapping.base_sku,
            size=mapping.size,
            source_listing_id=mapping.source_listing_id,
            destination_offer_id=mapping.destination_offer_id,
            destination_listing_id=mapping.destination_listing_id,
            destination_sku=mapping.destination_sku,
            status=mapping.status.value,
        )
        self.db.add(link)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            existing = await self._find(mapping)
            if existing is None:
                raise MappingConflictError(
                    f"Could not store mapping for offer {mapping.destination_offer_id}: {e}"
                )
            return MappingRecord.from_orm_model(existing), False
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to store mapping for offer {mapping.destination_offer_id}: {e}")

        await self.db.refresh(link)
        logger.info(
            f"Stored mapping {link.destination_sku}: offer {link.destination_offer_id} "
            f"<- StockX listing {link.source_listing_id}"
        )
        return MappingRecord.from_orm_model(link), True

    async def update_status(
        self,
        destination_offer_id: str,
        status: MappingStatus,
        account_id: str,
        source_listing_id: Optional[str] = None,
    ) -> int:
        conditions = [
            CrossListLink.account_id == account_id,
            CrossListLink.destination_offer_id == destination_offer_id,
            CrossListLink.status == MappingStatus.ACTIVE.value,
        ]
        if source_listing_id is not None:
            conditions.append(CrossListLink.source_listing_id == source_listing_id)

        now = datetime.now(timezone.utc)
        values = {"status": status.value, "updated_at": now}
        if status in SOLD_STATUSES:
            values["sold_at"] = now

        try:
            result = await self.db.execute(update(CrossListLink).where(*conditions).values(**values))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to set offer {destination_offer_id} to {status.value}: {e}")
        return result.rowcount or 0

    async def list_active(self, account_id: str) -> List[MappingRecord]:
        stmt = (
            select(CrossListLink)
            .where(
                CrossListLink.account_id == account_id,
                CrossListLink.status == MappingStatus.ACTIVE.value,
            )
            .order_by(CrossListLink.id)
        )
        result = await self.db.execute(stmt)
        return [MappingRecord.from_orm_model(link) for link in result.scalars().all()]


class DelistLogger:
    """Audit trail of withdraw attempts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        account_id: str,
        platform: str,
        listing_ref: str,
        reason: str,
        success: bool,
        sku: Optional[str] = None,
        link_id: Optional[int] = None,
        outcome: Optional[str] = None,
        error: Optional[str] = None,
    ) -> DelistLog:
        entry = DelistLog(
            account_id=account_id,
            link_id=link_id,
            platform=platform,
            listing_ref=listing_ref,
            sku=sku,
            reason=reason,
            success=success,
            outcome=outcome,
            error=error,
        )
        self.db.add(entry)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to log delist of {platform} {listing_ref}: {e}")
        logger.debug(f"Delist logged: {platform} {listing_ref} success={success}")
        return entry

    async def list(
        self,
        account_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
        success: Optional[bool] = None,
    ) -> List[DelistLog]:
        """Newest withdraw attempts first, at most MAX_HISTORY_LIMIT rows"""
        limit = min(max(limit, 1), MAX_HISTORY_LIMIT)
        stmt = select(DelistLog).where(DelistLog.account_id == account_id)
        if success is not None:
            stmt = stmt.where(DelistLog.success == success)
        stmt = stmt.order_by(DelistLog.created_at.desc(), DelistLog.id.desc()).limit(limit)

        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to read delist history for {account_id}: {e}")
        return list(result.scalars().all())


class AccountLockManager:
    """
    Lease-style lock so only one reconciliation runs per account.

    A lock that is not released (crashed worker) expires after the lease.
    """

    def __init__(self, db: AsyncSession, lease_minutes: int = 10):
        self.db = db
        self.lease = timedelta(minutes=lease_minutes)

    async def acquire(self, account_id: str) -> bool:
        now = datetime.now(timezone.utc)
        lock = await self.db.get(ReconcileLock, account_id)
        if lock is None:
            self.db.add(ReconcileLock(account_id=account_id, locked_until=now + self.lease))
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.info(f"Reconcile lock for {account_id} taken by another worker")
                return False
            return True

        stmt = (
            update(ReconcileLock)
            .where(
                ReconcileLock.account_id == account_id,
                or_(ReconcileLock.locked_until.is_(None), ReconcileLock.locked_until < now),
            )
            .values(locked_until=now + self.lease, updated_at=now)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        if not result.rowcount:
            logger.info(f"Reconcile lock for {account_id} is held")
            return False
        return True

    async def release(self, account_id: str):
        stmt = (
            update(ReconcileLock)
            .where(ReconcileLock.account_id == account_id)
            .values(locked_until=None, updated_at=datetime.now(timezone.utc))
        )
        await self.db.execute(stmt)
        await self.db.commit()
