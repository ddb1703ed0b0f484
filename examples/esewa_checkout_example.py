"""
Example eSewa checkout flows run against the in-process gateway simulator.

Each function walks one path a shopper can take: a paid redirect with
callback parameters, a redirect that lost its parameters, and a cancelled
payment. Run this file directly to print every outcome.
"""
import asyncio
import logging
from decimal import Decimal

from storefront_payments.cart import CartItem, InMemoryCart
from storefront_payments.config import Settings
from storefront_payments.connectors import SimulatorConnector
from storefront_payments.effects import RecordingSink
from storefront_payments.orders import OrderServiceClient
from storefront_payments.reconciliation import InMemoryJournal, PaymentReconciler
from storefront_payments.services import CheckoutService
from storefront_payments.storage import InMemoryCredentialStore, InMemoryIntentStore

SUCCESS_PAGE = "http://localhost:5173/payment/esewa/success"


class Shop:
    """The stores a browser tab keeps between the checkout and the redirect back."""

    def __init__(self):
        self.settings = Settings(network_timeout_seconds=5)
        self.gateway = SimulatorConnector()
        self.intents = InMemoryIntentStore()
        self.credentials = InMemoryCredentialStore(token="jwt-shopper")
        self.cart = InMemoryCart([CartItem(id="book-1", title="Muna Madan", price=Decimal("450.00"))])
        self.sink = RecordingSink()
        self.journal = InMemoryJournal()

    async def start_payment(self, order_id: str):
        self.gateway.register_order(order_id, await self.cart.total())
        async with OrderServiceClient(self.settings) as orders:
            checkout = CheckoutService(
                orders, self.gateway, self.intents, self.cart, self.sink, self.credentials,
                settings=self.settings,
            )
            return await checkout.initiate_payment(order_id)

    def reconciler(self) -> PaymentReconciler:
        return PaymentReconciler(
            self.gateway, self.intents, self.cart, self.sink, self.credentials,
            journal=self.journal, settings=self.settings,
        )


# =============================================================================
# Paid, with callback parameters
# =============================================================================
async def paid_with_callback():
    """
    The usual path: eSewa appends signed fields to the success URL and the
    backend confirms them.
    """
    shop = Shop()
    await shop.start_payment("order-1001")
    query = shop.gateway.callback_query("order-1001", encoded=True)
    return await shop.reconciler().reconcile(f"{SUCCESS_PAGE}?{query}")


# =============================================================================
# Paid, but the redirect lost its parameters
# =============================================================================
async def paid_without_callback():
    """
    The stored intent still names the order, so its status is polled. The
    session token was dropped on the way back and is restored.
    """
    shop = Shop()
    await shop.start_payment("order-1002")
    shop.gateway.mark_paid("order-1002")
    await shop.credentials.clear_token()

    outcome = await shop.reconciler().reconcile(SUCCESS_PAGE)
    assert await shop.credentials.get_token() == "jwt-shopper"
    return outcome


# =============================================================================
# Cancelled at the gateway
# =============================================================================
async def cancelled_payment():
    """A callback the gateway does not confirm ends uncertain, never verified."""
    shop = Shop()
    await shop.start_payment("order-1003")
    query = shop.gateway.callback_query("order-1003", status="CANCELED")
    return await shop.reconciler().reconcile(f"{SUCCESS_PAGE}?{query}")


async def main():
    for flow in (paid_with_callback, paid_without_callback, cancelled_payment):
        outcome = await flow()
        print(f"{flow.__name__}: {outcome.kind.value} via {outcome.source.value} - {outcome.notice.title}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
