"""Payment-callback reconciliation.

Turns a visit to the payment success page into exactly one terminal
outcome, using the gateway's callback, an out-of-band status check, or a
fallback when neither is available.

Features:
- Callback parsing, including eSewa's base64 ``data`` parameter
- Single-flight reconciliation per page visit
- Journal of every outcome with the context it was decided in
- Reports in JSON, CSV or text
"""

from .models import (
    ReconciliationState,
    OutcomeKind,
    OutcomeSource,
    CallbackClass,
    PaymentDetails,
    ReconciliationOutcome,
    FailureOutcome,
    CheckoutResult,
    AttemptRecord,
    AttemptReport,
)
from .callback import extract_query, parse_callback, has_query_params, classify
from .journal import ReconciliationJournal, InMemoryJournal, SqlReconciliationJournal
from .reconciler import PaymentReconciler
from .report import ReportGenerator, build_report

__all__ = [
    # Models
    "ReconciliationState",
    "OutcomeKind",
    "OutcomeSource",
    "CallbackClass",
    "PaymentDetails",
    "ReconciliationOutcome",
    "FailureOutcome",
    "CheckoutResult",
    "AttemptRecord",
    "AttemptReport",
    # Callback parsing
    "extract_query",
    "parse_callback",
    "has_query_params",
    "classify",
    # Journal
    "ReconciliationJournal",
    "InMemoryJournal",
    "SqlReconciliationJournal",
    # Reconciler
    "PaymentReconciler",
    # Reports
    "ReportGenerator",
    "build_report",
]
