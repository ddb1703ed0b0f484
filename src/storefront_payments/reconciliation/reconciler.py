"""State machine that turns a success-page visit into exactly one outcome."""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..cart import CartStore
from ..config import Settings, settings as default_settings
from ..connectors.base import CallbackPayload, GatewayClientBase
from ..effects import Notice, NoticeLevel, SideEffectSink
from ..exceptions import VerificationError
from ..storage import CredentialStore, IntentStore, PaymentIntent
from .callback import classify, has_query_params, parse_callback
from .journal import ReconciliationJournal
from .models import (
    CallbackClass,
    OutcomeKind,
    OutcomeSource,
    PaymentDetails,
    ReconciliationOutcome,
    ReconciliationState,
)

logger = logging.getLogger(__name__)

UNCERTAIN_TEXT = "Your payment status is uncertain. Please check your order status."
UNCONFIRMED_POLL_TEXT = "Your payment status could not be confirmed. Please check your order history."


class PaymentReconciler:
    """
    Reconciles one visit to the payment success page.

    Decision order once awaiting a decision:
    1. Restore an auth token the redirect dropped
    2. Verifiable callback: verify it with the gateway
    3. No callback at all but a stored intent: poll the order's status
    4. Anything else: fall back per ``settings.fallback_policy``

    Every path ends in a terminal outcome. Cart clearing, intent removal,
    journaling, the notice and navigation then happen exactly once, however
    many times ``reconcile`` is called for the visit.
    """

    def __init__(
        self,
        gateway: GatewayClientBase,
        intent_store: IntentStore,
        cart: CartStore,
        sink: SideEffectSink,
        credentials: CredentialStore,
        journal: Optional[ReconciliationJournal] = None,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.intent_store = intent_store
        self.cart = cart
        self.sink = sink
        self.credentials = credentials
        self.journal = journal
        self.settings = settings or default_settings

        self.visit_id = str(uuid.uuid4())
        self.outcome: Optional[ReconciliationOutcome] = None
        self._path: List[ReconciliationState] = [ReconciliationState.IDLE]
        self._run_future: Optional[asyncio.Future] = None

        # Decision context, journaled with the outcome
        self._context: Dict[str, Any] = {}
        self._source = OutcomeSource.FALLBACK
        self._transaction_uuid: Optional[str] = None
        self._error_message: Optional[str] = None

    @property
    def state(self) -> ReconciliationState:
        return self._path[-1]

    @property
    def state_path(self) -> List[ReconciliationState]:
        return list(self._path)

    def _enter(self, state: ReconciliationState) -> None:
        logger.info(f"Visit {self.visit_id}: {self.state.value} -> {state.value}")
        self._path.append(state)

    async def reconcile(
        self,
        location: str,
        current_auth: Optional[str] = None,
    ) -> ReconciliationOutcome:
        """
        Reconcile the redirect that landed on ``location``.

        Args:
            location: Success-page URL or its query string.
            current_auth: Active credential; read from the credential store
                when not given.

        Returns:
            The visit's terminal outcome. Repeated or concurrent calls share
            the first call's run and return the same outcome.
        """
        if self._run_future is None:
            self._run_future = asyncio.ensure_future(self._run(location, current_auth))
        return await asyncio.shield(self._run_future)

    async def _run(self, location: str, current_auth: Optional[str]) -> ReconciliationOutcome:
        self._enter(ReconciliationState.AWAITING_DECISION)
        self._context["location"] = location

        await self._restore_auth(current_auth)
        try:
            outcome = await self._decide(location)
        except Exception as e:
            logger.exception(f"Visit {self.visit_id}: reconciliation failed unexpectedly")
            self._error_message = str(e)
            outcome = self._uncertain(
                self._source,
                order_id=self._context.get("intent", {}).get("order_id"),
                reason=f"unexpected error: {type(e).__name__}",
            )

        self._enter(ReconciliationState.TERMINAL)
        outcome = outcome.model_copy(update={"state_path": self.state_path})
        self.outcome = outcome
        logger.info(
            f"Visit {self.visit_id}: {outcome.kind.value} via {outcome.source.value}"
            f" for order {outcome.order_id or 'unknown'}"
        )
        await self._finish(outcome)
        return outcome

    async def _restore_auth(self, current_auth: Optional[str]) -> None:
        try:
            if current_auth is None:
                current_auth = await self.credentials.get_token()
            token = await self.intent_store.restore_auth_if_dropped(
                current_auth, max_age_seconds=self.settings.intent_max_age_seconds
            )
            if token:
                await self.credentials.set_token(token)
                self._context["auth_restored"] = True
        except Exception:
            logger.exception(f"Visit {self.visit_id}: could not restore authentication")

    async def _load_intent(self) -> Optional[PaymentIntent]:
        intent = await self.intent_store.load()
        if intent is None:
            return None
        age = intent.age_seconds()
        if age > self.settings.intent_max_age_seconds:
            logger.warning(
                f"Ignoring stale payment intent for order {intent.order_id} "
                f"({age:.0f}s old, limit {self.settings.intent_max_age_seconds}s)"
            )
            self._context["stale_intent"] = intent.model_dump(mode="json", exclude={"auth_snapshot"})
            return None
        self._context["intent"] = intent.model_dump(mode="json", exclude={"auth_snapshot"})
        return intent

    async def _decide(self, location: str) -> ReconciliationOutcome:
        payload = parse_callback(location)
        category = classify(payload)
        self._context["classification"] = category.value
        if payload is not None:
            self._context["payload"] = payload.to_wire()
            self._transaction_uuid = payload.transaction_uuid

        intent = await self._load_intent()
        order_id = intent.order_id if intent else None

        if category == CallbackClass.VERIFIABLE:
            return await self._verify(payload, order_id)

        if category == CallbackClass.EMPTY and intent is not None and not has_query_params(location):
            return await self._poll(intent.order_id)

        return self._fallback(payload, order_id)

    async def _verify(self, payload: CallbackPayload, order_id: Optional[str]) -> ReconciliationOutcome:
        self._source = OutcomeSource.CALLBACK
        self._enter(ReconciliationState.VERIFYING)
        try:
            result = await asyncio.wait_for(
                self.gateway.verify(payload), self.settings.network_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Verification of {payload.transaction_uuid} timed out after "
                f"{self.settings.network_timeout_seconds}s"
            )
            self._error_message = "verification timed out"
            return self._uncertain(OutcomeSource.CALLBACK, order_id=order_id, reason="verification timed out")
        except VerificationError as e:
            logger.error(f"Verification of {payload.transaction_uuid} failed: {e.to_dict()}")
            self._error_message = e.message
            self._context["error"] = e.to_dict()
            return self._uncertain(OutcomeSource.CALLBACK, order_id=order_id, reason="verification failed")

        self._context["response"] = result.raw_response or result.model_dump(exclude={"raw_response"})
        if not result.confirmed:
            logger.warning(f"Gateway did not confirm {payload.transaction_uuid}: {result.message}")
            return self._uncertain(
                OutcomeSource.CALLBACK,
                order_id=order_id,
                reason="verification not confirmed",
                text=result.message,
            )

        return ReconciliationOutcome(
            kind=OutcomeKind.VERIFIED,
            source=OutcomeSource.CALLBACK,
            navigate_to=self.settings.orders_route,
            payment_details=PaymentDetails(
                transaction_uuid=payload.transaction_uuid,
                ref_id=payload.ref_id,
                total_amount=payload.total_amount,
            ),
            notice=Notice(
                level=NoticeLevel.SUCCESS,
                title="Payment Successful!",
                text="Your payment has been verified and your order is being processed.",
                confirm_label="View Order",
            ),
            order_id=order_id or payload.transaction_uuid,
            reason="callback verified",
        )

    async def _poll(self, order_id: str) -> ReconciliationOutcome:
        self._source = OutcomeSource.STATUS_POLL
        self._enter(ReconciliationState.POLLING)
        try:
            status = await asyncio.wait_for(
                self.gateway.check_status(order_id), self.settings.network_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(f"Status check for order {order_id} timed out")
            self._error_message = "status check timed out"
            return self._uncertain(
                OutcomeSource.STATUS_POLL, order_id=order_id,
                reason="status check timed out", text=UNCONFIRMED_POLL_TEXT,
            )
        except VerificationError as e:
            logger.error(f"Status check for order {order_id} failed: {e.to_dict()}")
            self._error_message = e.message
            self._context["error"] = e.to_dict()
            return self._uncertain(
                OutcomeSource.STATUS_POLL, order_id=order_id,
                reason="status check failed", text=UNCONFIRMED_POLL_TEXT,
            )

        self._context["response"] = status.raw_response or status.model_dump(exclude={"raw_response"})
        if not status.confirmed:
            logger.warning(f"Order {order_id} payment status is {status.status}, not confirmed")
            return self._uncertain(
                OutcomeSource.STATUS_POLL, order_id=order_id,
                reason=f"gateway status {status.status or 'unknown'}", text=UNCONFIRMED_POLL_TEXT,
            )

        self._transaction_uuid = order_id
        return ReconciliationOutcome(
            kind=OutcomeKind.VERIFIED,
            source=OutcomeSource.STATUS_POLL,
            navigate_to=self.settings.orders_route,
            payment_details=PaymentDetails(
                transaction_uuid=order_id,
                ref_id=status.ref_id,
                total_amount=status.total_amount,
            ),
            notice=Notice(
                level=NoticeLevel.SUCCESS,
                title="Payment Confirmed",
                text="Your payment has been confirmed and your order is being processed.",
                confirm_label="View Order",
            ),
            order_id=order_id,
            reason="status poll confirmed",
        )

    def _fallback(self, payload: Optional[CallbackPayload], order_id: Optional[str]) -> ReconciliationOutcome:
        missing = payload.missing_fields() if payload is not None else []
        reason = "callback not verifiable" if payload is not None else "no callback and no payment intent"
        logger.warning(
            f"Visit {self.visit_id}: cannot confirm payment ({reason}); "
            f"missing {', '.join(missing) or 'all fields'}"
        )
        if self.settings.fallback_policy == "uncertain":
            return self._uncertain(OutcomeSource.FALLBACK, order_id=order_id, reason=reason)

        return ReconciliationOutcome(
            kind=OutcomeKind.GENERIC_SUCCESS,
            source=OutcomeSource.FALLBACK,
            navigate_to=self.settings.orders_route,
            notice=Notice(
                level=NoticeLevel.SUCCESS,
                title="Payment Received",
                text="Your payment has been processed. Please check your order status.",
                confirm_label="View Orders",
            ),
            order_id=order_id,
            reason=reason,
        )

    def _uncertain(
        self,
        source: OutcomeSource,
        order_id: Optional[str] = None,
        reason: Optional[str] = None,
        text: Optional[str] = None,
    ) -> ReconciliationOutcome:
        return ReconciliationOutcome(
            kind=OutcomeKind.UNCERTAIN,
            source=source,
            navigate_to=self.settings.orders_route,
            notice=Notice(
                level=NoticeLevel.WARNING,
                title="Payment Status Uncertain",
                text=text or UNCERTAIN_TEXT,
                confirm_label="View Orders",
            ),
            order_id=order_id,
            reason=reason,
        )

    async def _finish(self, outcome: ReconciliationOutcome) -> None:
        effects: List[Tuple[str, Callable[[], Awaitable[Any]]]] = [
            ("clear cart", self.cart.clear),
            ("clear payment intent", self.intent_store.clear),
        ]
        if self.journal is not None:
            effects.append(("journal outcome", lambda: self.journal.record(
                visit_id=self.visit_id,
                outcome=outcome,
                transaction_uuid=self._transaction_uuid,
                error_message=self._error_message,
                context=self._context,
            )))
        effects.append(("show notice", lambda: self.sink.notify(outcome.notice)))
        effects.append(("navigate", lambda: self.sink.navigate(outcome.navigate_to)))

        for name, effect in effects:
            try:
                await effect()
            except Exception:
                logger.exception(f"Visit {self.visit_id}: failed to {name}")
