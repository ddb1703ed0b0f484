"""Journal of terminal reconciliation outcomes."""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..database import DatabaseManager, ReconciliationAttemptRepository
from ..database.models import utcnow
from .models import AttemptRecord, OutcomeKind, ReconciliationOutcome

logger = logging.getLogger(__name__)


class ReconciliationJournal(ABC):
    """Where the reconciler writes down every outcome it reaches."""

    @abstractmethod
    async def record(
        self,
        visit_id: str,
        outcome: ReconciliationOutcome,
        transaction_uuid: Optional[str] = None,
        error_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AttemptRecord:
        raise NotImplementedError

    @abstractmethod
    async def list_between(
        self,
        start_time: datetime,
        end_time: datetime,
        outcome: Optional[OutcomeKind] = None,
    ) -> List[AttemptRecord]:
        raise NotImplementedError

    @abstractmethod
    async def for_order(self, order_id: str) -> List[AttemptRecord]:
        """Attempts for one order, newest first."""
        raise NotImplementedError


class InMemoryJournal(ReconciliationJournal):

    def __init__(self):
        self.records: List[AttemptRecord] = []

    async def record(
        self,
        visit_id: str,
        outcome: ReconciliationOutcome,
        transaction_uuid: Optional[str] = None,
        error_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AttemptRecord:
        entry = AttemptRecord(
            id=str(uuid.uuid4()),
            visit_id=visit_id,
            order_id=outcome.order_id,
            transaction_uuid=transaction_uuid,
            outcome=outcome.kind,
            source=outcome.source,
            state_path=[state.value for state in outcome.state_path],
            reason=outcome.reason,
            error_message=error_message,
            context=context or {},
            created_at=utcnow(),
        )
        self.records.append(entry)
        return entry

    async def list_between(
        self,
        start_time: datetime,
        end_time: datetime,
        outcome: Optional[OutcomeKind] = None,
    ) -> List[AttemptRecord]:
        return [
            r for r in self.records
            if start_time <= r.created_at <= end_time and (outcome is None or r.outcome == outcome)
        ]

    async def for_order(self, order_id: str) -> List[AttemptRecord]:
        return [r for r in reversed(self.records) if r.order_id == order_id]


class SqlReconciliationJournal(ReconciliationJournal):
    """Journal persisted to ``reconciliation_attempts``."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def record(
        self,
        visit_id: str,
        outcome: ReconciliationOutcome,
        transaction_uuid: Optional[str] = None,
        error_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AttemptRecord:
        async with self.db.session() as session:
            row = await ReconciliationAttemptRepository(session).create(
                visit_id=visit_id,
                outcome=outcome.kind.value,
                source=outcome.source.value,
                state_path=",".join(state.value for state in outcome.state_path),
                order_id=outcome.order_id,
                transaction_uuid=transaction_uuid,
                reason=outcome.reason,
                error_message=error_message,
                context=context,
            )
            entry = AttemptRecord.from_row(row)
        logger.info(f"Journaled {entry.outcome.value} outcome for order {entry.order_id or 'unknown'}")
        return entry

    async def list_between(
        self,
        start_time: datetime,
        end_time: datetime,
        outcome: Optional[OutcomeKind] = None,
    ) -> List[AttemptRecord]:
        async with self.db.session() as session:
            rows = await ReconciliationAttemptRepository(session).list_between(
                start_time, end_time, outcome.value if outcome else None
            )
            return [AttemptRecord.from_row(row) for row in rows]

    async def for_order(self, order_id: str) -> List[AttemptRecord]:
        async with self.db.session() as session:
            rows = await ReconciliationAttemptRepository(session).get_by_order_id(order_id)
            return [AttemptRecord.from_row(row) for row in rows]
