"""Shared test fixtures and configuration."""

import os
import pytest

# Set up test environment variables before importing modules
os.environ.setdefault("STOREFRONT_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STOREFRONT_API_BASE_URL", "http://backend.test")

from storefront_payments.config import Settings
from storefront_payments.cart import CartItem, InMemoryCart
from storefront_payments.connectors import SimulatorConnector, SimulatorConfig
from storefront_payments.database import (
    Base,
    DatabaseManager,
    create_async_engine,
    get_async_session_factory,
)
from storefront_payments.effects import RecordingSink
from storefront_payments.reconciliation import InMemoryJournal, PaymentReconciler
from storefront_payments.storage import InMemoryCredentialStore, InMemoryIntentStore


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a short network timeout so hanging calls finish quickly."""
    return Settings(
        api_base_url="http://backend.test",
        network_timeout_seconds=0.2,
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def simulator():
    connector = SimulatorConnector(SimulatorConfig(hang_seconds=5))
    connector.register_order("order-123", "1500.00")
    return connector


@pytest.fixture
def intent_store():
    return InMemoryIntentStore()


@pytest.fixture
def credentials():
    return InMemoryCredentialStore(token="jwt-active")


@pytest.fixture
def cart():
    return InMemoryCart([
        CartItem(id="book-1", title="The Alchemist", price="750.00", quantity=2),
    ])


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def journal():
    return InMemoryJournal()


@pytest.fixture
def make_reconciler(simulator, intent_store, cart, sink, credentials, journal, test_settings):
    """Build a reconciler for a fresh page visit sharing the same stores."""
    def _make(gateway=None, settings=None):
        return PaymentReconciler(
            gateway=gateway or simulator,
            intent_store=intent_store,
            cart=cart,
            sink=sink,
            credentials=credentials,
            journal=journal,
            settings=settings or test_settings,
        )
    return _make


# Database fixtures
@pytest.fixture
async def test_db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db_session(test_db_engine):
    """Create a database session for testing."""
    session_factory = get_async_session_factory(test_db_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def db_manager():
    """An initialized DatabaseManager over in-memory SQLite."""
    db = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await db.initialize()
    yield db
    await db.shutdown()
