"""Database module for durable storefront state."""

from .models import (
    Base,
    StorageEntry,
    ReconciliationAttempt,
)
from .session import (
    get_database_url,
    init_db,
    close_db,
    create_async_engine,
    get_async_session_factory,
    get_db_context,
    DatabaseManager,
)
from .repository import (
    StorageRepository,
    ReconciliationAttemptRepository,
)

__all__ = [
    # Models
    "Base",
    "StorageEntry",
    "ReconciliationAttempt",
    # Session management
    "get_database_url",
    "init_db",
    "close_db",
    "create_async_engine",
    "get_async_session_factory",
    "get_db_context",
    "DatabaseManager",
    # Repositories
    "StorageRepository",
    "ReconciliationAttemptRepository",
]
