"""Runs the example checkout flows."""

import importlib.util
from pathlib import Path

import pytest

from storefront_payments.config import Settings
from storefront_payments.connectors import SimulatorScenario
from storefront_payments.exceptions import InitiationError
from storefront_payments.reconciliation import OutcomeKind, OutcomeSource

EXAMPLE = Path(__file__).resolve().parents[1] / "examples" / "esewa_checkout_example.py"


@pytest.fixture
def example():
    spec = importlib.util.spec_from_file_location("esewa_checkout_example", EXAMPLE)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


async def test_paid_with_callback(example):
    outcome = await example.paid_with_callback()

    assert outcome.kind == OutcomeKind.VERIFIED
    assert outcome.source == OutcomeSource.CALLBACK
    assert outcome.payment_details.total_amount == "450.00"


async def test_paid_without_callback(example):
    outcome = await example.paid_without_callback()

    assert outcome.kind == OutcomeKind.VERIFIED
    assert outcome.source == OutcomeSource.STATUS_POLL


async def test_cancelled_payment(example):
    outcome = await example.cancelled_payment()

    assert outcome.kind == OutcomeKind.UNCERTAIN
    assert outcome.notice.text == "Payment canceled"


async def test_main_prints_every_flow(example, capsys):
    await example.main()

    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 3
    assert lines[0].startswith("paid_with_callback: verified")


async def test_start_payment_snapshots_auth(example):
    shop = example.Shop()

    form = await shop.start_payment("order-1")

    intent = await shop.intents.load()
    assert form.transaction_uuid == "order-1"
    assert intent.order_id == "order-1"
    assert intent.auth_snapshot == "jwt-shopper"


async def test_start_payment_timeout_leaves_no_intent(example):
    shop = example.Shop()
    shop.settings = Settings(network_timeout_seconds=0.1)
    shop.gateway.set_scenario("order-1", SimulatorScenario.TIMEOUT)

    with pytest.raises(InitiationError):
        await shop.start_payment("order-1")

    assert await shop.intents.load() is None
