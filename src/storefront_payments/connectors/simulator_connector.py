"""Simulator connector for exercising eSewa flows without a real gateway."""

import asyncio
import base64
import json
import random
import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlencode

from ..config import settings as default_settings
from ..exceptions import InitiationError, VerificationError, StatusCheckError
from .base import (
    COMPLETE_STATUS,
    CallbackPayload,
    GatewayClientBase,
    GatewayForm,
    StatusResult,
    VerificationResult,
)
from .signing import DEFAULT_SIGNED_FIELD_NAMES, sign_fields, verify_signature

logger = logging.getLogger(__name__)

CALLBACK_SIGNED_FIELD_NAMES = (
    "transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names"
)
TAX_RATE = Decimal("0.13")
CENTS = Decimal("0.01")


class SimulatorScenario(str, Enum):
    """Predefined gateway behaviours."""
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    INITIATION_FAILURE = "initiation_failure"


@dataclass
class SimulatedTransaction:
    """In-memory record of a payment the simulator has seen."""
    order_id: str
    total_amount: str
    status: str = "INITIATED"
    ref_id: Optional[str] = None
    transaction_code: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SimulatorConfig:
    """Configuration for simulator behaviour."""
    scenario: SimulatorScenario = SimulatorScenario.CONFIRMED
    product_code: str = field(default_factory=lambda: default_settings.esewa_product_code)
    secret_key: str = field(default_factory=lambda: default_settings.esewa_secret_key)
    payment_url: str = "https://rc-epay.esewa.com.np/api/epay/main/v2/form"
    success_url: str = "http://localhost:5173/payment/esewa/success"
    failure_url: str = "http://localhost:5173/payment/esewa/failure"
    default_total: str = "100.00"
    delay_ms: int = 0  # Simulated response delay in ms
    hang_seconds: float = 3600.0  # How long a TIMEOUT call blocks
    failure_rate: float = 0.0  # Rate of random network errors
    seed: Optional[int] = None  # Random seed for reproducibility


class SimulatorConnector(GatewayClientBase):
    """
    In-process eSewa gateway.

    Features:
    - Signs forms and callbacks with eSewa's HMAC-SHA256 scheme
    - Verifies callback signatures for real
    - Per-order scenarios (confirm, reject, fail, hang)
    - Records every verify and status call for assertions
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self._transactions: Dict[str, SimulatedTransaction] = {}
        self._scenarios: Dict[str, SimulatorScenario] = {}
        self._rng = random.Random(self.config.seed)
        self.initiate_calls: List[str] = []
        self.verify_calls: List[CallbackPayload] = []
        self.status_calls: List[str] = []
        logger.info("SimulatorConnector initialized")

    def register_order(self, order_id: str, total_amount: Any) -> SimulatedTransaction:
        """Tell the simulator what an order costs before it is initiated."""
        txn = SimulatedTransaction(order_id=order_id, total_amount=self._money(total_amount))
        self._transactions[order_id] = txn
        return txn

    def set_scenario(self, order_id: str, scenario: SimulatorScenario) -> None:
        self._scenarios[order_id] = scenario

    def mark_paid(self, order_id: str) -> None:
        """Record a payment the gateway observed without a redirect back."""
        txn = self._transactions.get(order_id) or self.register_order(order_id, self.config.default_total)
        txn.status = COMPLETE_STATUS
        txn.ref_id = txn.ref_id or self._generate_ref()

    @staticmethod
    def _money(value: Any) -> str:
        return str(Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP))

    @staticmethod
    def _generate_ref() -> str:
        return f"sim_{uuid.uuid4().hex[:10].upper()}"

    def _scenario_for(self, order_id: Optional[str]) -> SimulatorScenario:
        if order_id and order_id in self._scenarios:
            return self._scenarios[order_id]
        if self._rng.random() < self.config.failure_rate:
            return SimulatorScenario.NETWORK_ERROR
        return self.config.scenario

    async def _apply_delay(self, scenario: SimulatorScenario) -> None:
        if scenario == SimulatorScenario.TIMEOUT:
            await asyncio.sleep(self.config.hang_seconds)
        elif self.config.delay_ms > 0:
            await asyncio.sleep(self.config.delay_ms / 1000.0)

    async def initiate(self, order_id: str) -> GatewayForm:
        self.initiate_calls.append(order_id)
        scenario = self._scenario_for(order_id)
        await self._apply_delay(scenario)
        if scenario in (SimulatorScenario.INITIATION_FAILURE, SimulatorScenario.NETWORK_ERROR):
            raise InitiationError("Simulated initiation failure", {"order_id": order_id})

        txn = self._transactions.get(order_id) or self.register_order(order_id, self.config.default_total)
        total = Decimal(txn.total_amount)
        tax = (total * TAX_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)
        fields = {
            "amount": str(total - tax),
            "tax_amount": str(tax),
            "total_amount": txn.total_amount,
            "transaction_uuid": order_id,
            "product_code": self.config.product_code,
            "product_service_charge": "0",
            "product_delivery_charge": "0",
            "success_url": self.config.success_url,
            "failure_url": self.config.failure_url,
            "signed_field_names": DEFAULT_SIGNED_FIELD_NAMES,
        }
        fields["signature"] = sign_fields(fields, self.config.secret_key)
        txn.status = "PENDING"
        return GatewayForm(payment_url=self.config.payment_url, **fields)

    def build_callback(self, order_id: str, status: str = COMPLETE_STATUS) -> Dict[str, str]:
        """Produce the signed fields the gateway appends to its redirect."""
        txn = self._transactions.get(order_id) or self.register_order(order_id, self.config.default_total)
        txn.transaction_code = txn.transaction_code or uuid.uuid4().hex[:7].upper()
        txn.ref_id = txn.ref_id or self._generate_ref()
        fields = {
            "transaction_code": txn.transaction_code,
            "status": status,
            "total_amount": txn.total_amount,
            "transaction_uuid": order_id,
            "product_code": self.config.product_code,
            "signed_field_names": CALLBACK_SIGNED_FIELD_NAMES,
        }
        fields["signature"] = sign_fields(fields, self.config.secret_key, CALLBACK_SIGNED_FIELD_NAMES)
        fields["ref_id"] = txn.ref_id
        return fields

    def callback_query(self, order_id: str, status: str = COMPLETE_STATUS, encoded: bool = False) -> str:
        """Return the redirect query string, either flat or as eSewa's base64 ``data``."""
        fields = self.build_callback(order_id, status)
        if encoded:
            data = base64.b64encode(json.dumps(fields).encode("utf-8")).decode("ascii")
            return urlencode({"data": data})
        return urlencode(fields)

    async def verify(self, payload: CallbackPayload) -> VerificationResult:
        self.verify_calls.append(payload)
        order_id = payload.transaction_uuid
        scenario = self._scenario_for(order_id)
        await self._apply_delay(scenario)
        if scenario == SimulatorScenario.NETWORK_ERROR:
            raise VerificationError("Simulated network failure", {"transaction_uuid": order_id})

        if not verify_signature(payload.to_wire(), self.config.secret_key):
            raise VerificationError(
                "Invalid payment signature",
                {"transaction_uuid": order_id, "status_code": 400},
            )

        txn = self._transactions.get(order_id)
        if txn is None:
            raise VerificationError("Order not found", {"transaction_uuid": order_id, "status_code": 404})

        if payload.status == COMPLETE_STATUS and scenario != SimulatorScenario.REJECTED:
            txn.status = COMPLETE_STATUS
            txn.ref_id = payload.ref_id or txn.ref_id
            return VerificationResult(confirmed=True, message="Payment verified successfully")

        reported = (payload.status or "unknown").lower()
        if scenario == SimulatorScenario.REJECTED:
            txn.status = "CANCELED"
            reported = "canceled"
        return VerificationResult(confirmed=False, message=f"Payment {reported}")

    async def check_status(self, order_id: str) -> StatusResult:
        self.status_calls.append(order_id)
        scenario = self._scenario_for(order_id)
        await self._apply_delay(scenario)
        if scenario == SimulatorScenario.NETWORK_ERROR:
            raise StatusCheckError("Simulated network failure", {"order_id": order_id})

        txn = self._transactions.get(order_id)
        if txn is None:
            return StatusResult(confirmed=False, status="NOT_FOUND")
        if scenario == SimulatorScenario.REJECTED:
            txn.status = "CANCELED"
        return StatusResult(
            confirmed=txn.status == COMPLETE_STATUS,
            status=txn.status,
            ref_id=txn.ref_id,
            total_amount=txn.total_amount,
        )

    def get_transaction(self, order_id: str) -> Optional[SimulatedTransaction]:
        """Get a transaction from in-memory storage (for testing)."""
        return self._transactions.get(order_id)

    def clear_transactions(self) -> None:
        """Clear all stored transactions and call records (for test cleanup)."""
        self._transactions.clear()
        self._scenarios.clear()
        self.initiate_calls.clear()
        self.verify_calls.clear()
        self.status_calls.clear()

    async def health_check(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "provider": "simulator",
            "transaction_count": len(self._transactions),
            "config": {
                "scenario": self.config.scenario.value,
                "delay_ms": self.config.delay_ms,
                "failure_rate": self.config.failure_rate,
            }
        }
