"""Client for the storefront backend's order endpoints."""

import enum
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from .config import Settings, settings as default_settings
from .exceptions import OrderServiceError

logger = logging.getLogger(__name__)


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "Cash on Delivery"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    PAYPAL = "PayPal"
    ESEWA = "eSewa"


class ShippingMethod(str, enum.Enum):
    STANDARD = "Standard"
    EXPRESS = "Express"
    OVERNIGHT = "Overnight"


class Address(BaseModel):
    street: Optional[str] = None
    city: str
    country: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None


class OrderLine(BaseModel):
    id: str
    title: str
    price: Decimal
    quantity: int = 1

    @field_serializer("price")
    def _price_as_float(self, price: Decimal) -> float:
        return float(price)


class OrderDraft(BaseModel):
    """Checkout form contents submitted to create an order."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    name: str
    email: str
    address: Address
    phone: str
    product_ids: List[str] = Field(default_factory=list, alias="productIds")
    products: List[OrderLine] = Field(default_factory=list)
    total_price: Decimal = Field(alias="totalPrice")
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH_ON_DELIVERY, alias="paymentMethod")
    shipping_method: ShippingMethod = Field(default=ShippingMethod.STANDARD, alias="shippingMethod")
    special_instructions: str = Field(default="", alias="specialInstructions")

    @field_serializer("total_price")
    def _total_as_float(self, total: Decimal) -> float:
        return float(total)

    def to_request(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, mode="json")
        if not data["productIds"]:
            data["productIds"] = [line.id for line in self.products]
        return data


class Order(BaseModel):
    """Order as stored by the backend."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    name: Optional[str] = None
    email: Optional[str] = None
    status: str = "pending"
    payment_method: str = Field(default=PaymentMethod.CASH_ON_DELIVERY.value, alias="paymentMethod")
    total_price: Optional[Decimal] = Field(default=None, alias="totalPrice")
    payment_reference: Optional[Dict[str, Any]] = Field(default=None, alias="paymentReference")


class OrderServiceClient:
    """
    Order Service over HTTP:

        POST {base}/                -> created order
        GET  {base}/email/{email}   -> orders placed with that email
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or default_settings
        self.base_url = self.settings.api_base_url.rstrip("/") + self.settings.orders_api_path
        self._client = client or httpx.AsyncClient(timeout=self.settings.network_timeout_seconds)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "OrderServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Order service request {method} {url} failed: {e}")
            raise OrderServiceError("Could not reach the order service", {"url": url, "error": str(e)}) from e

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None
        if not response.is_success:
            message = body.get("message") if isinstance(body, dict) else None
            raise OrderServiceError(
                message or f"Order service returned HTTP {response.status_code}",
                {"url": url, "status_code": response.status_code, "response": body},
            )
        return body

    async def create_order(self, draft: OrderDraft) -> Order:
        body = await self._request("POST", f"{self.base_url}/", json=draft.to_request())
        try:
            order = Order.model_validate(body)
        except ValidationError as e:
            raise OrderServiceError("Order service returned an unreadable order", {"response": body}) from e
        logger.info(f"Created order {order.id} ({order.payment_method})")
        return order

    async def get_orders_by_email(self, email: str) -> List[Order]:
        """Orders placed with ``email``; an unknown email yields an empty list."""
        try:
            body = await self._request("GET", f"{self.base_url}/email/{email}")
        except OrderServiceError as e:
            if e.details.get("status_code") == 404:
                return []
            raise
        if not isinstance(body, list):
            raise OrderServiceError("Order service returned an unreadable order list", {"response": body})
        return [Order.model_validate(item) for item in body]
