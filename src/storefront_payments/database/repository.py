"""Repository layer for storefront persistence."""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from .models import StorageEntry, ReconciliationAttempt, utcnow

logger = logging.getLogger(__name__)


class StorageRepository:
    """Key/value operations over ``storage_entries``."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def get(self, key: str) -> Optional[StorageEntry]:
        """Get an entry by key.

        Args:
            key: Storage key.

        Returns:
            StorageEntry if present, None otherwise.
        """
        result = await self.session.execute(
            select(StorageEntry).where(StorageEntry.key == key)
        )
        return result.scalar_one_or_none()

    async def put(self, key: str, value: Any) -> StorageEntry:
        """Create or overwrite an entry.

        Args:
            key: Storage key.
            value: JSON-serializable value.

        Returns:
            The stored StorageEntry.
        """
        entry = await self.get(key)
        if entry is None:
            entry = StorageEntry(key=key)
            self.session.add(entry)
        entry.value = value
        entry.updated_at = utcnow()
        await self.session.flush()
        logger.debug(f"Stored {key}")
        return entry

    async def delete(self, key: str) -> bool:
        """Remove an entry.

        Args:
            key: Storage key.

        Returns:
            True if an entry was removed.
        """
        result = await self.session.execute(
            delete(StorageEntry).where(StorageEntry.key == key)
        )
        await self.session.flush()
        return result.rowcount > 0


class ReconciliationAttemptRepository:
    """Repository for ReconciliationAttempt records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        visit_id: str,
        outcome: str,
        source: str,
        state_path: str,
        order_id: Optional[str] = None,
        transaction_uuid: Optional[str] = None,
        reason: Optional[str] = None,
        error_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ReconciliationAttempt:
        """Record a terminal reconciliation outcome.

        Args:
            visit_id: Identifier of the page visit that reconciled.
            outcome: Terminal outcome kind.
            source: Which branch decided the outcome.
            state_path: Comma separated states visited.
            order_id: Order the payment belongs to, if known.
            transaction_uuid: Gateway transaction id from the callback.
            reason: Why this outcome was chosen.
            error_message: Error raised during the decision, if any.
            context: Payload, intent and responses at decision time.

        Returns:
            Created ReconciliationAttempt instance.
        """
        attempt = ReconciliationAttempt(
            visit_id=visit_id,
            outcome=outcome,
            source=source,
            state_path=state_path,
            order_id=order_id,
            transaction_uuid=transaction_uuid,
            reason=reason,
            error_message=error_message,
        )
        if context:
            attempt.context = context

        self.session.add(attempt)
        await self.session.flush()

        logger.debug(f"Recorded reconciliation attempt {attempt.id}: {outcome} via {source}")
        return attempt

    async def list_between(
        self,
        start_time: datetime,
        end_time: datetime,
        outcome: Optional[str] = None,
    ) -> List[ReconciliationAttempt]:
        """List attempts recorded in a time range, oldest first.

        Args:
            start_time: Start of the range (inclusive).
            end_time: End of the range (inclusive).
            outcome: Optional outcome kind to filter by.

        Returns:
            List of ReconciliationAttempt instances.
        """
        conditions = [
            ReconciliationAttempt.created_at >= start_time,
            ReconciliationAttempt.created_at <= end_time,
        ]
        if outcome:
            conditions.append(ReconciliationAttempt.outcome == outcome)
        result = await self.session.execute(
            select(ReconciliationAttempt)
            .where(and_(*conditions))
            .order_by(ReconciliationAttempt.created_at)
        )
        return list(result.scalars().all())

    async def get_by_order_id(self, order_id: str) -> List[ReconciliationAttempt]:
        result = await self.session.execute(
            select(ReconciliationAttempt)
            .where(ReconciliationAttempt.order_id == order_id)
            .order_by(ReconciliationAttempt.created_at.desc())
        )
        return list(result.scalars().all())
