"""Shopping cart seen from the payment core: read and clear only."""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class CartItem(BaseModel):
    id: str
    title: str
    price: Decimal
    quantity: int = Field(default=1, ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class CartStore(ABC):
    """Cart owned by the storefront UI."""

    @abstractmethod
    async def items(self) -> List[CartItem]:
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        """Empty the cart. Clearing an empty cart is a no-op."""
        raise NotImplementedError

    async def total(self) -> Decimal:
        return sum((item.line_total for item in await self.items()), Decimal("0"))


class InMemoryCart(CartStore):
    """Process-local cart; counts clears so callers can assert on them."""

    def __init__(self, items: Optional[List[CartItem]] = None):
        self._items = list(items or [])
        self.clear_count = 0

    def add(self, item: CartItem) -> None:
        self._items.append(item)

    async def items(self) -> List[CartItem]:
        return list(self._items)

    async def clear(self) -> None:
        self._items.clear()
        self.clear_count += 1
        logger.debug("Cart cleared")
