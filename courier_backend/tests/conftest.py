"""
Centralized Test Configuration.
"""

import itertools

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from courier_backend.app.main import app
from courier_backend.app.db.session import get_db, get_session_factory, Base
from courier_backend.app.core.exceptions import PaymentFailedError
from courier_backend.app.core.jwt import create_actor_token
from courier_backend.app.core.redis_client import get_redis
import courier_backend.app.core.redis_client as redis_client_module
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.courier_company import CourierCompany
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.services.notification_hub import NotificationHub, get_notification_hub
from courier_backend.app.services.payment_gateway import (
    PaymentAuthorization, PaymentGateway, get_payment_gateway
)

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        return 1 if self.store.pop(key, None) is not None else 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class DeferredNotificationHub(NotificationHub):
    """
    Holds published changes until `drain()` delivers them in order.

    The test database is a single shared sqlite connection, so deliveries must
    never overlap with a test or request session using it.
    """

    def _start_worker(self):
        return None

    async def drain(self):
        while self._changes is not None and not self._changes.empty():
            change = self._changes.get_nowait()
            try:
                await self._deliver_logged(change)
            finally:
                self._changes.task_done()


class FakePaymentGateway(PaymentGateway):
    """
    In-process stand-in for the payment service.

    Set `decline_authorize` / `decline_capture` to simulate declines.
    """

    def __init__(self):
        self.decline_authorize = False
        self.decline_capture = False
        self.authorized = []
        self.captured = []
        self._ids = itertools.count(1)

    async def authorize(self, amount, method):
        if self.decline_authorize:
            raise PaymentFailedError("Payment declined: insufficient funds")
        authorization = PaymentAuthorization(payment_id=f"pay_{next(self._ids)}", amount=amount, method=method)
        self.authorized.append(authorization)
        return authorization

    async def capture(self, payment_id):
        if self.decline_capture:
            return False
        self.captured.append(payment_id)
        return True


@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
async def hub(setup_database):
    """Per-test notification hub writing to the test database."""
    test_hub = DeferredNotificationHub(TestingSessionLocal)
    app.dependency_overrides[get_notification_hub] = lambda: test_hub
    yield test_hub
    await test_hub.shutdown()
    app.dependency_overrides.pop(get_notification_hub, None)


@pytest.fixture(autouse=True)
def gateway():
    fake = FakePaymentGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture
async def client(hub):
    """Async client for testing. Notifications are delivered after each response."""

    async def deliver_notifications(response):
        await hub.drain()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        event_hooks={"response": [deliver_notifications]},
    ) as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def make_company(db_session):
    async def _make(name="Swift Couriers", is_active=True):
        company = CourierCompany(name=name, email=f"ops@{name.lower().replace(' ', '')}.test", is_active=is_active)
        db_session.add(company)
        await db_session.commit()
        await db_session.refresh(company)
        return company
    return _make


@pytest.fixture
def make_actor(db_session):
    counter = itertools.count(1)

    async def _make(role=ActorRole.CUSTOMER, company=None, is_active=True, email=None):
        n = next(counter)
        role_name = role.value if role else "unknown"
        actor = Actor(
            email=email or f"{role_name}{n}@example.com",
            full_name=f"{role_name.title()} {n}",
            role=role,
            is_active=is_active,
            courier_company_id=company.id if company else None,
        )
        db_session.add(actor)
        await db_session.commit()
        await db_session.refresh(actor)
        return actor
    return _make


def auth_headers(actor) -> dict:
    return {"Authorization": f"Bearer {create_actor_token(actor.id)}"}


def package_details(**overrides) -> dict:
    details = {
        "recipient_name": "Ada Lovelace",
        "recipient_phone": "+44 20 7946 0000",
        "recipient_address": "12 Analytical Row, London",
        "pickup_address": "1 Difference St, London",
        "package_type": "standard",
        "weight_kg": 5,
        "declared_value": 100,
        "description": "Books",
    }
    details.update(overrides)
    return details


class World:
    """A small platform: one company with an admin and a driver, plus outsiders."""

    def __init__(self, **actors):
        self.__dict__.update(actors)


@pytest.fixture
async def world(make_company, make_actor):
    company = await make_company("Swift Couriers")
    other_company = await make_company("Slow Couriers")
    return World(
        company=company,
        other_company=other_company,
        sender=await make_actor(ActorRole.CUSTOMER),
        stranger=await make_actor(ActorRole.CUSTOMER),
        driver=await make_actor(ActorRole.DRIVER, company=company),
        other_driver=await make_actor(ActorRole.DRIVER, company=other_company),
        admin=await make_actor(ActorRole.COURIER_ADMIN, company=company),
        inactive_admin=await make_actor(ActorRole.COURIER_ADMIN, company=company, is_active=False),
        other_admin=await make_actor(ActorRole.COURIER_ADMIN, company=other_company),
        super_admin=await make_actor(ActorRole.SUPER_ADMIN),
    )
