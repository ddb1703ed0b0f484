import logging
from typing import Dict, Any, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings, settings as default_settings
from ..exceptions import InitiationError, VerificationError, StatusCheckError
from .base import (
    COMPLETE_STATUS,
    CallbackPayload,
    GatewayClientBase,
    GatewayForm,
    StatusResult,
    VerificationResult,
)

logger = logging.getLogger(__name__)


class EsewaConnector(GatewayClientBase):
    """
    eSewa gateway client. Talks to the storefront backend, which holds the
    merchant secret and signs forms and verifies callbacks on our behalf:

        POST {base}/initiate/{order_id}  -> {"success": true, "paymentData": {...}}
        POST {base}/verify               -> {"success": bool, "message": "..."}
        GET  {base}/status/{order_id}    -> {"success": true, "paymentStatus": {...}}

    Pass ``client`` to share a connection pool or to inject a mock transport.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or default_settings
        self.base_url = self.settings.api_base_url.rstrip("/") + self.settings.esewa_api_path
        self._client = client or httpx.AsyncClient(timeout=self.settings.network_timeout_seconds)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def initiate(self, order_id: str) -> GatewayForm:
        url = f"{self.base_url}/initiate/{order_id}"
        try:
            response = await self._client.post(url)
        except httpx.HTTPError as e:
            logger.error(f"eSewa initiation request failed for order {order_id}: {e}")
            raise InitiationError(
                "Could not reach the payment service",
                {"order_id": order_id, "error": str(e)},
            ) from e

        body = self._json(response)
        if not response.is_success:
            logger.error(f"eSewa initiation for order {order_id} returned HTTP {response.status_code}")
            raise InitiationError(
                body.get("message") or f"Payment initiation failed with HTTP {response.status_code}",
                {"order_id": order_id, "status_code": response.status_code},
            )
        if not body.get("success") or not isinstance(body.get("paymentData"), dict):
            raise InitiationError(
                body.get("message") or "Payment service returned no payment data",
                {"order_id": order_id, "response": body},
            )
        try:
            form = GatewayForm(**body["paymentData"])
        except ValidationError as e:
            raise InitiationError(
                "Payment service returned an incomplete payment form",
                {"order_id": order_id, "errors": e.errors()},
            ) from e

        logger.info(f"Initiated eSewa payment for order {order_id}")
        return form

    async def verify(self, payload: CallbackPayload) -> VerificationResult:
        wire = payload.to_wire()
        try:
            response = await self._client.post(f"{self.base_url}/verify", json=wire)
        except httpx.HTTPError as e:
            logger.error(f"eSewa verification request failed for {payload.transaction_uuid}: {e}")
            raise VerificationError(
                "Could not reach the payment service",
                {"transaction_uuid": payload.transaction_uuid, "error": str(e)},
            ) from e

        body = self._json(response)
        if not response.is_success:
            # 4xx/5xx: the backend could not decide, which is not a rejection
            raise VerificationError(
                body.get("message") or f"Verification failed with HTTP {response.status_code}",
                {
                    "transaction_uuid": payload.transaction_uuid,
                    "status_code": response.status_code,
                    "response": body,
                },
            )
        return VerificationResult(
            confirmed=body.get("success") is True,
            message=body.get("message"),
            raw_response=body,
        )

    async def check_status(self, order_id: str) -> StatusResult:
        try:
            response = await self._client.get(f"{self.base_url}/status/{order_id}")
        except httpx.HTTPError as e:
            logger.error(f"eSewa status check failed for order {order_id}: {e}")
            raise StatusCheckError(
                "Could not reach the payment service",
                {"order_id": order_id, "error": str(e)},
            ) from e

        body = self._json(response)
        if not response.is_success or not body.get("success"):
            raise StatusCheckError(
                body.get("message") or f"Status check failed with HTTP {response.status_code}",
                {"order_id": order_id, "status_code": response.status_code, "response": body},
            )

        payment_status = body.get("paymentStatus") or {}
        gateway_status = payment_status.get("status")
        return StatusResult(
            confirmed=gateway_status == COMPLETE_STATUS,
            status=gateway_status,
            ref_id=payment_status.get("ref_id"),
            total_amount=payment_status.get("total_amount"),
            raw_response=body,
        )

    async def health_check(self) -> Dict[str, Any]:
        return {"ok": True, "provider": "esewa", "base_url": self.base_url}
