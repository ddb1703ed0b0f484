"""Persistent intent and credential storage."""

from .base import (
    PaymentIntent,
    IntentStore,
    CredentialStore,
    INTENT_KEY,
    TOKEN_KEY,
)
from .memory import InMemoryIntentStore, InMemoryCredentialStore
from .sql import SqlIntentStore, SqlCredentialStore

__all__ = [
    "PaymentIntent",
    "IntentStore",
    "CredentialStore",
    "INTENT_KEY",
    "TOKEN_KEY",
    "InMemoryIntentStore",
    "InMemoryCredentialStore",
    "SqlIntentStore",
    "SqlCredentialStore",
]
