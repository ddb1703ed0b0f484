# storefront_payments package
__version__ = "0.1.0"

from .config import Settings, settings
from .exceptions import (
    PaymentError,
    InitiationError,
    VerificationError,
    StatusCheckError,
    MalformedCallback,
    OrderServiceError,
)
from .database import (
    DatabaseManager,
    init_db,
    close_db,
    get_db_context,
)
from .cart import CartItem, CartStore, InMemoryCart
from .effects import Notice, NoticeLevel, SideEffectSink, RecordingSink
from .orders import Order, OrderDraft, OrderServiceClient, PaymentMethod
from .storage import (
    PaymentIntent,
    IntentStore,
    CredentialStore,
    InMemoryIntentStore,
    InMemoryCredentialStore,
    SqlIntentStore,
    SqlCredentialStore,
)
from .services import CheckoutService

# Reconciliation exports
from .reconciliation import (
    PaymentReconciler,
    ReconciliationOutcome,
    FailureOutcome,
    CheckoutResult,
    OutcomeKind,
    OutcomeSource,
    ReconciliationState,
    SqlReconciliationJournal,
    ReportGenerator,
)
