"""Persistent payment intent and credential store interfaces."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# Single slot: one redirect payment in flight per browser context
INTENT_KEY = "esewa_payment_intent"
TOKEN_KEY = "token"


class PaymentIntent(BaseModel):
    """Record that a redirect payment was started for an order."""
    model_config = ConfigDict(frozen=True)

    order_id: str
    initiated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    auth_snapshot: Optional[str] = None

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        initiated = self.initiated_at
        if initiated.tzinfo is None:
            initiated = initiated.replace(tzinfo=timezone.utc)
        return (now - initiated).total_seconds()


class IntentStore(ABC):
    """
    Durable single-slot store for the in-flight PaymentIntent.

    Writes replace the whole record; an intent is never edited in place.
    """

    @abstractmethod
    async def load(self) -> Optional[PaymentIntent]:
        """Return the stored intent without removing it."""
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        """Remove the slot. Clearing an empty slot is a no-op."""
        raise NotImplementedError

    @abstractmethod
    async def _write(self, intent: PaymentIntent) -> None:
        raise NotImplementedError

    async def save(self, order_id: str, auth_snapshot: Optional[str] = None) -> PaymentIntent:
        """Overwrite the slot with a new intent stamped with the current time."""
        intent = PaymentIntent(order_id=order_id, auth_snapshot=auth_snapshot)
        await self._write(intent)
        logger.info(f"Saved payment intent for order {order_id}")
        return intent

    async def restore_auth_if_dropped(
        self,
        current_auth: Optional[str],
        max_age_seconds: Optional[float] = None,
    ) -> Optional[str]:
        """Hand back the auth snapshot if the session was lost on the way back.

        The snapshot is discarded whether or not it is used, so it can be
        restored at most once.

        Args:
            current_auth: The credential currently active, if any.
            max_age_seconds: Snapshots on intents older than this are
                discarded without being restored.

        Returns:
            The token to reinstate, or None when nothing needs restoring.
        """
        intent = await self.load()
        if intent is None or intent.auth_snapshot is None:
            return None

        await self._write(intent.model_copy(update={"auth_snapshot": None}))
        if current_auth:
            logger.debug("Session survived the gateway redirect; discarded auth snapshot")
            return None
        if max_age_seconds is not None and intent.age_seconds() > max_age_seconds:
            logger.warning(f"Discarded auth snapshot from stale payment intent for order {intent.order_id}")
            return None

        logger.info(f"Restoring authentication after gateway redirect for order {intent.order_id}")
        return intent.auth_snapshot


class CredentialStore(ABC):
    """Holds the shopper's active auth token."""

    @abstractmethod
    async def get_token(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def set_token(self, token: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def clear_token(self) -> None:
        raise NotImplementedError
