"""Models for payment-callback reconciliation."""

import enum
from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field

from ..connectors.base import GatewayForm
from ..effects import Notice
from ..orders import Order


class ReconciliationState(str, enum.Enum):
    """States a page visit moves through; terminal is absorbing."""
    IDLE = "idle"
    AWAITING_DECISION = "awaiting_decision"
    VERIFYING = "verifying"
    POLLING = "polling"
    TERMINAL = "terminal"


class OutcomeKind(str, enum.Enum):
    VERIFIED = "verified"
    UNCERTAIN = "uncertain"
    GENERIC_SUCCESS = "generic_success"


class OutcomeSource(str, enum.Enum):
    """Which branch of the decision produced the outcome."""
    CALLBACK = "callback"
    STATUS_POLL = "status_poll"
    FALLBACK = "fallback"


class CallbackClass(str, enum.Enum):
    VERIFIABLE = "verifiable"
    INFORMATIVE = "informative"
    EMPTY = "empty"


class PaymentDetails(BaseModel):
    transaction_uuid: str
    ref_id: Optional[str] = None
    total_amount: Optional[str] = None


class ReconciliationOutcome(BaseModel):
    """Terminal result of one success-page visit."""
    kind: OutcomeKind
    source: OutcomeSource
    clear_cart: bool = True
    navigate_to: str = "/orders"
    payment_details: Optional[PaymentDetails] = None
    notice: Notice
    order_id: Optional[str] = None
    reason: Optional[str] = None
    state_path: List[ReconciliationState] = Field(default_factory=list)

    @property
    def is_confirmed(self) -> bool:
        return self.kind == OutcomeKind.VERIFIED


class FailureOutcome(BaseModel):
    """Result of the gateway's failure redirect."""
    navigate_to: str = "/checkout"
    notice: Notice
    order_id: Optional[str] = None
    auth_restored: bool = False


class CheckoutResult(BaseModel):
    """What placing an order produced: a gateway form to submit, or a finished order."""
    order: Order
    payment_form: Optional[GatewayForm] = None

    @property
    def requires_redirect(self) -> bool:
        return self.payment_form is not None


class AttemptRecord(BaseModel):
    """A journaled terminal outcome."""
    id: str
    visit_id: str
    order_id: Optional[str] = None
    transaction_uuid: Optional[str] = None
    outcome: OutcomeKind
    source: OutcomeSource
    state_path: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
    error_message: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "AttemptRecord":
        """Build from a ``ReconciliationAttempt`` database row."""
        return cls(
            id=row.id,
            visit_id=row.visit_id,
            order_id=row.order_id,
            transaction_uuid=row.transaction_uuid,
            outcome=row.outcome,
            source=row.source,
            state_path=row.states,
            reason=row.reason,
            error_message=row.error_message,
            context=row.context or {},
            created_at=row.created_at,
        )


class AttemptReport(BaseModel):
    """Journal entries over a time range, with counts per outcome."""
    start_time: datetime
    end_time: datetime
    generated_at: datetime
    attempts: List[AttemptRecord] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.attempts)

    def count(self, kind: OutcomeKind) -> int:
        return sum(1 for a in self.attempts if a.outcome == kind)

    @property
    def discrepancies(self) -> List[AttemptRecord]:
        """Outcomes that were not confirmed by the gateway."""
        return [a for a in self.attempts if a.outcome != OutcomeKind.VERIFIED]

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return a summary of the report without the individual attempts."""
        verified = self.count(OutcomeKind.VERIFIED)
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "generated_at": self.generated_at.isoformat(),
            "statistics": {
                "total_attempts": self.total,
                "verified": verified,
                "uncertain": self.count(OutcomeKind.UNCERTAIN),
                "generic_success": self.count(OutcomeKind.GENERIC_SUCCESS),
                "verification_rate": (
                    f"{(verified / self.total * 100):.2f}%" if self.total > 0 else "N/A"
                ),
            },
        }

    def to_full_dict(self) -> Dict[str, Any]:
        result = self.to_summary_dict()
        result["attempts"] = [a.model_dump(mode="json") for a in self.attempts]
        return result
