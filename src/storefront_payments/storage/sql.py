"""Durable stores backed by the ``storage_entries`` table."""

import logging
from typing import Optional

from pydantic import ValidationError

from ..database import DatabaseManager, StorageRepository
from .base import IntentStore, CredentialStore, PaymentIntent, INTENT_KEY, TOKEN_KEY

logger = logging.getLogger(__name__)


class SqlIntentStore(IntentStore):
    """Intent slot persisted through SQLAlchemy; survives process restarts."""

    def __init__(self, db: DatabaseManager, key: str = INTENT_KEY):
        self.db = db
        self.key = key

    async def load(self) -> Optional[PaymentIntent]:
        async with self.db.session() as session:
            entry = await StorageRepository(session).get(self.key)
            if entry is None:
                return None
            value = entry.value
        try:
            return PaymentIntent.model_validate(value)
        except ValidationError:
            # An unreadable slot cannot be reconciled against; report it as empty
            logger.warning(f"Discarding unreadable payment intent stored under {self.key}: {value!r}")
            return None

    async def clear(self) -> None:
        async with self.db.session() as session:
            removed = await StorageRepository(session).delete(self.key)
        if removed:
            logger.info("Cleared payment intent")

    async def _write(self, intent: PaymentIntent) -> None:
        async with self.db.session() as session:
            await StorageRepository(session).put(self.key, intent.model_dump(mode="json"))


class SqlCredentialStore(CredentialStore):

    def __init__(self, db: DatabaseManager, key: str = TOKEN_KEY):
        self.db = db
        self.key = key

    async def get_token(self) -> Optional[str]:
        async with self.db.session() as session:
            entry = await StorageRepository(session).get(self.key)
            return entry.value if entry is not None else None

    async def set_token(self, token: str) -> None:
        async with self.db.session() as session:
            await StorageRepository(session).put(self.key, token)

    async def clear_token(self) -> None:
        async with self.db.session() as session:
            await StorageRepository(session).delete(self.key)
