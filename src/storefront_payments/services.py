"""Checkout service: places orders and hands the shopper to the gateway."""

import asyncio
import logging
from typing import Optional

from .cart import CartStore
from .config import Settings, settings as default_settings
from .connectors.base import GatewayClientBase, GatewayForm
from .effects import Notice, NoticeLevel, SideEffectSink
from .exceptions import InitiationError, OrderServiceError
from .orders import OrderDraft, OrderServiceClient, PaymentMethod
from .reconciliation.models import CheckoutResult, FailureOutcome
from .storage import CredentialStore, IntentStore

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service class for the checkout side of a redirect payment."""

    def __init__(
        self,
        orders: OrderServiceClient,
        gateway: GatewayClientBase,
        intent_store: IntentStore,
        cart: CartStore,
        sink: SideEffectSink,
        credentials: CredentialStore,
        settings: Optional[Settings] = None,
    ):
        self.orders = orders
        self.gateway = gateway
        self.intent_store = intent_store
        self.cart = cart
        self.sink = sink
        self.credentials = credentials
        self.settings = settings or default_settings

    async def _current_auth(self, current_auth: Optional[str]) -> Optional[str]:
        if current_auth is not None:
            return current_auth
        return await self.credentials.get_token()

    async def initiate_payment(self, order_id: str, current_auth: Optional[str] = None) -> GatewayForm:
        """Prepare the gateway redirect for an order.

        The payment intent is stored only once the gateway form is in hand,
        so a failed initiation leaves nothing behind and can be retried.

        Args:
            order_id: Order to pay for.
            current_auth: Active credential to snapshot; read from the
                credential store when not given.

        Returns:
            The form to POST to ``payment_url``.

        Raises:
            InitiationError: The gateway could not prepare the payment.
        """
        try:
            form = await asyncio.wait_for(
                self.gateway.initiate(order_id), self.settings.network_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Payment initiation for order {order_id} timed out")
            raise InitiationError(
                "Payment initiation timed out",
                {"order_id": order_id, "timeout_seconds": self.settings.network_timeout_seconds},
            ) from e

        auth = await self._current_auth(current_auth)
        await self.intent_store.save(order_id, auth_snapshot=auth)
        logger.info(f"Redirecting to eSewa for order {order_id}")
        return form

    async def place_order(self, draft: OrderDraft, current_auth: Optional[str] = None) -> CheckoutResult:
        """Create the order and either start the eSewa payment or finish checkout.

        Raises:
            OrderServiceError: The order could not be created.
            InitiationError: The order exists but the payment could not be
                started; call ``initiate_payment`` again to retry.
        """
        try:
            order = await self.orders.create_order(draft)
        except OrderServiceError as e:
            logger.error(f"Order creation failed: {e.to_dict()}")
            await self.sink.notify(Notice(
                level=NoticeLevel.ERROR,
                title="Order Failed",
                text=e.message or "Failed to place your order. Please try again.",
            ))
            raise

        if draft.payment_method != PaymentMethod.ESEWA.value:
            await self.cart.clear()
            await self.sink.notify(Notice(
                level=NoticeLevel.SUCCESS,
                title="Order Confirmed!",
                text="Your order has been placed successfully!",
            ))
            await self.sink.navigate(self.settings.orders_route)
            return CheckoutResult(order=order)

        try:
            form = await self.initiate_payment(order.id, current_auth)
        except InitiationError as e:
            logger.error(f"Could not start eSewa payment for order {order.id}: {e.to_dict()}")
            await self.sink.notify(Notice(
                level=NoticeLevel.ERROR,
                title="Payment Error",
                text=e.message,
            ))
            raise
        return CheckoutResult(order=order, payment_form=form)

    async def handle_failure_return(self, current_auth: Optional[str] = None) -> FailureOutcome:
        """Handle the gateway's failure redirect. The cart is left as it was."""
        intent = await self.intent_store.load()
        order_id = intent.order_id if intent else None

        auth_restored = False
        token = await self.intent_store.restore_auth_if_dropped(
            await self._current_auth(current_auth),
            max_age_seconds=self.settings.intent_max_age_seconds,
        )
        if token:
            await self.credentials.set_token(token)
            auth_restored = True

        await self.intent_store.clear()
        logger.warning(f"eSewa payment for order {order_id or 'unknown'} was not completed")

        outcome = FailureOutcome(
            navigate_to=self.settings.checkout_route,
            notice=Notice(
                level=NoticeLevel.ERROR,
                title="Payment Failed",
                text="Your eSewa payment was not successful. Please try again or choose a different payment method.",
                confirm_label="Return to Checkout",
            ),
            order_id=order_id,
            auth_restored=auth_restored,
        )
        await self.sink.notify(outcome.notice)
        await self.sink.navigate(outcome.navigate_to)
        return outcome
