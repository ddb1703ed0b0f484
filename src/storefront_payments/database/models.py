"""SQLAlchemy models for durable storefront state."""

import uuid
import json
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy import String, DateTime, Text, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class StorageEntry(Base):
    """Browser-local-storage style key/value record."""
    __tablename__ = "storage_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def value(self) -> Any:
        return json.loads(self.value_json)

    @value.setter
    def value(self, value: Any) -> None:
        self.value_json = json.dumps(value)


class ReconciliationAttempt(Base):
    """One terminal reconciliation outcome, kept for offline reconciliation."""
    __tablename__ = "reconciliation_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    visit_id: Mapped[str] = mapped_column(String(36), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transaction_uuid: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # verified | uncertain | generic_success
    outcome: Mapped[str] = mapped_column(String(50), nullable=False)
    # callback | status_poll | fallback
    source: Mapped[str] = mapped_column(String(50), nullable=False)

    # Comma separated states visited, e.g. "idle,awaiting_decision,verifying,terminal"
    state_path: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Payload, intent and gateway responses at decision time
    context_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_reconciliation_attempts_order_id", "order_id"),
        Index("ix_reconciliation_attempts_outcome", "outcome"),
        Index("ix_reconciliation_attempts_created_at", "created_at"),
    )

    @property
    def context(self) -> Optional[Dict[str, Any]]:
        """Get decision context as dictionary."""
        if self.context_json:
            return json.loads(self.context_json)
        return None

    @context.setter
    def context(self, value: Optional[Dict[str, Any]]) -> None:
        """Set decision context from dictionary."""
        if value is not None:
            self.context_json = json.dumps(value, default=str)
        else:
            self.context_json = None

    @property
    def states(self) -> List[str]:
        return [s for s in self.state_path.split(",") if s]

    def to_dict(self) -> Dict[str, Any]:
        """Convert attempt to dictionary representation."""
        return {
            "id": self.id,
            "visit_id": self.visit_id,
            "order_id": self.order_id,
            "transaction_uuid": self.transaction_uuid,
            "outcome": self.outcome,
            "source": self.source,
            "states": self.states,
            "reason": self.reason,
            "error_message": self.error_message,
            "context": self.context,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
