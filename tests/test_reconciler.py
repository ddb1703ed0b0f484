"""Tests for the payment-callback reconciliation state machine."""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from storefront_payments.cart import InMemoryCart
from storefront_payments.connectors import SimulatorScenario, GatewayClientBase
from storefront_payments.reconciliation import (
    OutcomeKind,
    OutcomeSource,
    ReconciliationState,
)
from storefront_payments.storage import InMemoryCredentialStore, PaymentIntent

SUCCESS_PAGE = "http://localhost:5173/payment/esewa/success"


class TestScenarios:
    """The five reference flows through the decision rules."""

    async def test_verified_callback(self, make_reconciler, simulator, intent_store, cart, sink):
        """A: confirmed callback is verified, cart cleared, shopper sent to orders."""
        await intent_store.save("order-123")
        query = simulator.callback_query("order-123")

        outcome = await make_reconciler().reconcile(f"{SUCCESS_PAGE}?{query}")

        assert outcome.kind == OutcomeKind.VERIFIED
        assert outcome.source == OutcomeSource.CALLBACK
        assert outcome.order_id == "order-123"
        assert outcome.payment_details.transaction_uuid == "order-123"
        assert outcome.payment_details.total_amount == "1500.00"
        assert outcome.payment_details.ref_id is not None
        assert outcome.notice.title == "Payment Successful!"
        assert cart.clear_count == 1
        assert await cart.items() == []
        assert sink.routes == ["/orders"]

    async def test_network_error_during_verify(self, make_reconciler, simulator, intent_store, cart):
        """B: a failed verify call is uncertain but still clears cart and intent."""
        await intent_store.save("order-123")
        simulator.set_scenario("order-123", SimulatorScenario.NETWORK_ERROR)

        outcome = await make_reconciler().reconcile(f"?{simulator.callback_query('order-123')}")

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.source == OutcomeSource.CALLBACK
        assert outcome.clear_cart is True
        assert cart.clear_count == 1
        assert await intent_store.load() is None

    async def test_status_poll_not_confirmed(self, make_reconciler, simulator, intent_store):
        """C: no parameters, stored intent, unconfirmed status is uncertain."""
        simulator.register_order("ORD123", "500")
        await intent_store.save("ORD123")

        outcome = await make_reconciler().reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.source == OutcomeSource.STATUS_POLL
        assert outcome.order_id == "ORD123"
        assert simulator.status_calls == ["ORD123"]
        assert outcome.notice.text == (
            "Your payment status could not be confirmed. Please check your order history."
        )

    async def test_no_parameters_no_intent(self, make_reconciler, simulator, sink):
        """D: nothing to go on is a generic success with no network call."""
        outcome = await make_reconciler().reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.GENERIC_SUCCESS
        assert outcome.source == OutcomeSource.FALLBACK
        assert simulator.verify_calls == []
        assert simulator.status_calls == []
        assert sink.last_notice.title == "Payment Received"

    async def test_partial_payload(self, make_reconciler, simulator, intent_store, caplog):
        """E: informative but unverifiable payload falls back and logs the discrepancy."""
        await intent_store.save("order-123")

        outcome = await make_reconciler().reconcile("?product_code=EPAYTEST&total_amount=1500.00")

        assert outcome.kind == OutcomeKind.GENERIC_SUCCESS
        assert outcome.order_id == "order-123"
        assert simulator.verify_calls == []
        assert simulator.status_calls == []
        assert "cannot confirm payment" in caplog.text


class TestVerification:

    async def test_base64_data_parameter(self, make_reconciler, simulator):
        query = simulator.callback_query("order-123", encoded=True)

        outcome = await make_reconciler().reconcile(f"{SUCCESS_PAGE}?{query}")

        assert outcome.kind == OutcomeKind.VERIFIED
        assert simulator.verify_calls[0].transaction_uuid == "order-123"

    async def test_tampered_amount_is_uncertain(self, make_reconciler, simulator):
        query = simulator.callback_query("order-123").replace("1500.00", "1.00")

        outcome = await make_reconciler().reconcile(f"?{query}")

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.reason == "verification failed"

    async def test_rejected_payment_shows_gateway_message(self, make_reconciler, simulator, sink):
        simulator.set_scenario("order-123", SimulatorScenario.REJECTED)

        outcome = await make_reconciler().reconcile(f"?{simulator.callback_query('order-123')}")

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.notice.text == "Payment canceled"
        assert sink.last_notice.title == "Payment Status Uncertain"

    async def test_verify_timeout(self, make_reconciler, simulator, intent_store):
        await intent_store.save("order-123")
        simulator.set_scenario("order-123", SimulatorScenario.TIMEOUT)

        outcome = await asyncio.wait_for(
            make_reconciler().reconcile(f"?{simulator.callback_query('order-123')}"), timeout=2
        )

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.reason == "verification timed out"
        assert await intent_store.load() is None

    async def test_unexpected_gateway_error(self, make_reconciler, simulator):
        gateway = AsyncMock(spec=GatewayClientBase)
        gateway.verify.side_effect = RuntimeError("boom")

        outcome = await make_reconciler(gateway=gateway).reconcile(
            f"?{simulator.callback_query('order-123')}"
        )

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.reason == "unexpected error: RuntimeError"
        assert outcome.state_path[-1] == ReconciliationState.TERMINAL


class TestStatusPoll:

    async def test_confirmed_status(self, make_reconciler, simulator, intent_store):
        simulator.mark_paid("order-123")
        await intent_store.save("order-123")

        outcome = await make_reconciler().reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.VERIFIED
        assert outcome.source == OutcomeSource.STATUS_POLL
        assert outcome.payment_details.transaction_uuid == "order-123"
        assert outcome.payment_details.total_amount == "1500.00"
        assert outcome.notice.title == "Payment Confirmed"

    async def test_status_timeout(self, make_reconciler, simulator, intent_store):
        simulator.set_scenario("order-123", SimulatorScenario.TIMEOUT)
        await intent_store.save("order-123")

        outcome = await make_reconciler().reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.reason == "status check timed out"

    async def test_blank_parameters_prevent_poll(self, make_reconciler, simulator, intent_store):
        await intent_store.save("order-123")

        outcome = await make_reconciler().reconcile(f"{SUCCESS_PAGE}?utm_source=")

        assert outcome.kind == OutcomeKind.GENERIC_SUCCESS
        assert simulator.status_calls == []

    async def test_stale_intent_is_ignored(self, make_reconciler, simulator, intent_store, caplog):
        intent_store._intent = PaymentIntent(
            order_id="order-123",
            initiated_at=datetime.now(timezone.utc) - timedelta(hours=2),
        )

        outcome = await make_reconciler().reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.GENERIC_SUCCESS
        assert outcome.order_id is None
        assert simulator.status_calls == []
        assert "stale payment intent" in caplog.text
        assert await intent_store.load() is None


class TestFallbackPolicy:

    async def test_uncertain_policy(self, make_reconciler, test_settings):
        settings = test_settings.model_copy(update={"fallback_policy": "uncertain"})

        outcome = await make_reconciler(settings=settings).reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert outcome.source == OutcomeSource.FALLBACK

    async def test_custom_orders_route(self, make_reconciler, test_settings, sink):
        settings = test_settings.model_copy(update={"orders_route": "/account/orders"})

        outcome = await make_reconciler(settings=settings).reconcile(SUCCESS_PAGE)

        assert outcome.navigate_to == "/account/orders"
        assert sink.routes == ["/account/orders"]


class TestSingleFlight:

    async def test_concurrent_calls_share_one_run(self, make_reconciler, simulator, cart, sink, journal):
        reconciler = make_reconciler()
        location = f"?{simulator.callback_query('order-123')}"

        first, second = await asyncio.gather(
            reconciler.reconcile(location),
            reconciler.reconcile(location),
        )

        assert first is second
        assert len(simulator.verify_calls) == 1
        assert cart.clear_count == 1
        assert len(sink.notices) == 1
        assert len(journal.records) == 1

    async def test_repeated_call_returns_same_outcome(self, make_reconciler, simulator, intent_store):
        await intent_store.save("order-123")
        reconciler = make_reconciler()

        first = await reconciler.reconcile(SUCCESS_PAGE)
        second = await reconciler.reconcile(SUCCESS_PAGE)

        assert first is second
        assert len(simulator.status_calls) == 1

    async def test_reload_after_terminal_does_not_poll_again(self, make_reconciler, simulator, intent_store):
        await intent_store.save("order-123")
        await make_reconciler().reconcile(SUCCESS_PAGE)

        outcome = await make_reconciler().reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.GENERIC_SUCCESS
        assert len(simulator.status_calls) == 1


class TestTerminalGuarantee:

    @pytest.mark.parametrize("payload", ["present", "absent", "partial"])
    @pytest.mark.parametrize("has_intent", [True, False])
    @pytest.mark.parametrize("scenario", [
        SimulatorScenario.CONFIRMED,
        SimulatorScenario.NETWORK_ERROR,
        SimulatorScenario.TIMEOUT,
    ])
    async def test_always_terminal(
        self, make_reconciler, simulator, intent_store, cart, sink, payload, has_intent, scenario
    ):
        simulator.set_scenario("order-123", scenario)
        if has_intent:
            await intent_store.save("order-123", auth_snapshot="jwt-active")
        location = {
            "present": f"?{simulator.callback_query('order-123')}",
            "absent": SUCCESS_PAGE,
            "partial": "?product_code=EPAYTEST",
        }[payload]

        reconciler = make_reconciler()
        outcome = await asyncio.wait_for(reconciler.reconcile(location), timeout=2)

        assert outcome.kind in set(OutcomeKind)
        assert reconciler.state == ReconciliationState.TERMINAL
        assert outcome.state_path[0] == ReconciliationState.IDLE
        assert outcome.state_path[-1] == ReconciliationState.TERMINAL
        assert cart.clear_count == 1
        assert len(sink.notices) == 1
        assert sink.routes == ["/orders"]
        assert await intent_store.load() is None


class TestAuthRestoration:

    async def test_dropped_auth_is_restored(self, make_reconciler, intent_store, credentials):
        await credentials.clear_token()
        await intent_store.save("order-123", auth_snapshot="jwt-before-redirect")

        await make_reconciler().reconcile(SUCCESS_PAGE)

        assert await credentials.get_token() == "jwt-before-redirect"
        assert await intent_store.load() is None

    async def test_active_auth_is_kept(self, make_reconciler, intent_store, credentials):
        await intent_store.save("order-123", auth_snapshot="jwt-before-redirect")

        await make_reconciler().reconcile(SUCCESS_PAGE)

        assert await credentials.get_token() == "jwt-active"

    async def test_explicit_current_auth(self, make_reconciler, intent_store, credentials):
        await credentials.clear_token()
        await intent_store.save("order-123", auth_snapshot="jwt-before-redirect")

        await make_reconciler().reconcile(SUCCESS_PAGE, current_auth="jwt-from-cookie")

        assert await credentials.get_token() is None

    async def test_stale_snapshot_is_not_restored(self, make_reconciler, intent_store, credentials):
        await credentials.clear_token()
        intent_store._intent = PaymentIntent(
            order_id="order-old",
            initiated_at=datetime.now(timezone.utc) - timedelta(days=3),
            auth_snapshot="jwt-3-days-old",
        )

        outcome = await make_reconciler().reconcile(SUCCESS_PAGE)

        assert await credentials.get_token() is None
        assert outcome.source == OutcomeSource.FALLBACK
        assert await intent_store.load() is None


class TestEffects:

    async def test_effect_failure_does_not_block_others(
        self, simulator, intent_store, sink, credentials, journal, test_settings
    ):
        from storefront_payments.reconciliation import PaymentReconciler

        cart = InMemoryCart()
        cart.clear = AsyncMock(side_effect=RuntimeError("storage full"))
        await intent_store.save("order-123")
        reconciler = PaymentReconciler(
            simulator, intent_store, cart, sink, credentials, journal, test_settings
        )

        outcome = await reconciler.reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.UNCERTAIN
        assert await intent_store.load() is None
        assert sink.routes == ["/orders"]
        assert len(journal.records) == 1

    async def test_notice_before_navigation(self, make_reconciler, sink):
        await make_reconciler().reconcile(SUCCESS_PAGE)

        assert [event for event, _ in sink.events] == ["notify", "navigate"]

    async def test_journal_records_context(self, make_reconciler, simulator, intent_store, journal):
        await intent_store.save("order-123", auth_snapshot="secret-token")

        await make_reconciler().reconcile(f"?{simulator.callback_query('order-123')}")

        record = journal.records[0]
        assert record.outcome == OutcomeKind.VERIFIED
        assert record.transaction_uuid == "order-123"
        assert record.state_path == ["idle", "awaiting_decision", "verifying", "terminal"]
        assert record.context["classification"] == "verifiable"
        assert record.context["intent"]["order_id"] == "order-123"
        assert "auth_snapshot" not in record.context["intent"]

    async def test_works_without_journal(self, simulator, intent_store, cart, sink, test_settings):
        from storefront_payments.reconciliation import PaymentReconciler

        reconciler = PaymentReconciler(
            simulator, intent_store, cart, sink, InMemoryCredentialStore(), settings=test_settings
        )

        outcome = await reconciler.reconcile(SUCCESS_PAGE)

        assert outcome.kind == OutcomeKind.GENERIC_SUCCESS
