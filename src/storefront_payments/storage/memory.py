"""In-memory stores for tests and single-process use."""

from typing import Optional

from .base import IntentStore, CredentialStore, PaymentIntent


class InMemoryIntentStore(IntentStore):
    """Keeps the intent slot in process memory.

    Share one instance between reconcilers to model a page reload.
    """

    def __init__(self, intent: Optional[PaymentIntent] = None):
        self._intent = intent

    async def load(self) -> Optional[PaymentIntent]:
        return self._intent

    async def clear(self) -> None:
        self._intent = None

    async def _write(self, intent: PaymentIntent) -> None:
        self._intent = intent


class InMemoryCredentialStore(CredentialStore):

    def __init__(self, token: Optional[str] = None):
        self._token = token

    async def get_token(self) -> Optional[str]:
        return self._token

    async def set_token(self, token: str) -> None:
        self._token = token

    async def clear_token(self) -> None:
        self._token = None
