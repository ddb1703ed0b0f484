from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from pydantic import BaseModel, field_validator

# Form-POST field names, spelled exactly as eSewa expects them
FORM_FIELD_NAMES = (
    "amount",
    "tax_amount",
    "total_amount",
    "transaction_uuid",
    "product_code",
    "product_service_charge",
    "product_delivery_charge",
    "success_url",
    "failure_url",
    "signed_field_names",
    "signature",
)

COMPLETE_STATUS = "COMPLETE"


def _as_decimal_string(value: Any) -> Any:
    # amounts cross JSON boundaries as numbers; keep them as strings
    if value is None or isinstance(value, str):
        return value
    return str(value)


class GatewayForm(BaseModel):
    """Fields needed to redirect the shopper to the gateway."""
    payment_url: str
    amount: str
    tax_amount: str
    total_amount: str
    transaction_uuid: str
    product_code: str
    product_service_charge: str = "0"
    product_delivery_charge: str = "0"
    success_url: str
    failure_url: str
    signed_field_names: str
    signature: str

    @field_validator(
        "amount", "tax_amount", "total_amount",
        "product_service_charge", "product_delivery_charge",
        mode="before",
    )
    @classmethod
    def _amounts_as_strings(cls, value: Any) -> Any:
        return _as_decimal_string(value)

    def form_fields(self) -> Dict[str, str]:
        """Return the form-POST body submitted to ``payment_url``."""
        return {name: getattr(self, name) for name in FORM_FIELD_NAMES}


class CallbackPayload(BaseModel):
    """Parameters the gateway sends back on its success redirect."""
    product_code: Optional[str] = None
    total_amount: Optional[str] = None  # decimal string, never a number
    transaction_uuid: Optional[str] = None
    status: Optional[str] = None
    signed_field_names: Optional[str] = None
    signature: Optional[str] = None
    ref_id: Optional[str] = None
    transaction_code: Optional[str] = None
    extra: Dict[str, str] = {}

    @field_validator("total_amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> Any:
        return _as_decimal_string(value)

    @property
    def is_verifiable(self) -> bool:
        return bool(self.transaction_uuid) and bool(self.signature)

    @property
    def is_informative(self) -> bool:
        return bool(self.product_code or self.transaction_uuid or self.signature)

    def missing_fields(self) -> list:
        required = ("product_code", "total_amount", "transaction_uuid",
                    "status", "signed_field_names", "signature")
        return [name for name in required if not getattr(self, name)]

    def to_wire(self) -> Dict[str, str]:
        """Flatten to the gateway's field names, dropping absent values."""
        data = dict(self.extra)
        data.update(self.model_dump(exclude={"extra"}, exclude_none=True))
        return data


class VerificationResult(BaseModel):
    confirmed: bool
    message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


class StatusResult(BaseModel):
    confirmed: bool
    status: Optional[str] = None  # gateway status, e.g. COMPLETE|PENDING|CANCELED
    ref_id: Optional[str] = None
    total_amount: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None

    @field_validator("total_amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> Any:
        return _as_decimal_string(value)


class GatewayClientBase(ABC):
    """
    Payment gateway client interface. All operations may suspend on the
    network and must raise the documented error instead of returning a
    partial result.
    """

    @abstractmethod
    async def initiate(self, order_id: str) -> GatewayForm:
        """
        Prepare the redirect form for an order. Raises InitiationError.
        """
        raise NotImplementedError

    @abstractmethod
    async def verify(self, payload: CallbackPayload) -> VerificationResult:
        """
        Submit callback parameters for server-side signature and amount
        confirmation. Raises VerificationError when the outcome is unknown.
        """
        raise NotImplementedError

    @abstractmethod
    async def check_status(self, order_id: str) -> StatusResult:
        """
        Ask whether the order's payment was confirmed, independent of any
        callback. Raises StatusCheckError.
        """
        raise NotImplementedError

    async def health_check(self) -> Dict[str, Any]:
        return {"ok": True}

    async def aclose(self) -> None:
        """Release network resources. Clients without any keep the default."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
