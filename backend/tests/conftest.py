"""
tests/conftest.py

Test fixtures for service, aggregator and API tests.
Includes a throwaway SQLite database per test, seeded worker/customer
profiles, a recording notification gateway, identities and dependency overrides.
"""
import os
import sys
import tempfile
from pathlib import Path

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="fixlink-logs-"))

# --- Imports ---
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fixlink.core.dependencies import get_identity, get_notifier
from fixlink.core.schemas import IdentityContext
from fixlink.customer.models import CustomerProfile
from fixlink.database import models  # noqa: F401
from fixlink.database.base import Base
from fixlink.database.enums import ProfileStatus, ServiceCategory, UserRole
from fixlink.database.session import build_engine, build_session_factory, get_db
from fixlink.engagement.models import Engagement, EngagementStatus
from fixlink.main import app
from fixlink.notifications.events import NotificationEvent
from fixlink.notifications.gateway import NotificationDispatcher
from fixlink.worker.models import WorkerProfile, WorkerServiceCategory


# --- Notification Doubles ---


class RecordingGateway:
    """Collects notifications instead of publishing them."""

    def __init__(self) -> None:
        self.sent: list[tuple[UUID, NotificationEvent, dict[str, Any]]] = []

    async def notify(
        self, recipient_id: UUID, event_type: NotificationEvent, payload: dict[str, Any]
    ) -> None:
        self.sent.append((recipient_id, event_type, payload))

    def events_for(self, recipient_id: UUID) -> list[NotificationEvent]:
        return [event for recipient, event, _ in self.sent if recipient == recipient_id]


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest_asyncio.fixture
async def notifier(gateway: RecordingGateway) -> AsyncGenerator[NotificationDispatcher, None]:
    dispatcher = NotificationDispatcher(gateway)
    yield dispatcher
    await dispatcher.drain()


# --- Database Fixtures ---


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database file with the full schema."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'fixlink.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# --- Seed Helpers ---


WorkerFactory = Callable[..., Awaitable[WorkerProfile]]
CustomerFactory = Callable[..., Awaitable[CustomerProfile]]


@pytest.fixture
def make_worker(session_factory: async_sessionmaker[AsyncSession]) -> WorkerFactory:
    """Factory inserting an active, available worker; keyword overrides apply."""

    async def _make(
        categories: tuple[ServiceCategory, ...] = (ServiceCategory.PLUMBING,), **overrides: Any
    ) -> WorkerProfile:
        fields: dict[str, Any] = {
            "user_id": uuid4(),
            "years_experience": 5,
            "hourly_rate": Decimal("2000.00"),
            "is_available": True,
            "profile_status": ProfileStatus.ACTIVE,
            "latitude": 6.5244,
            "longitude": 3.3792,
        }
        fields.update(overrides)
        async with session_factory() as session:
            profile = WorkerProfile(**fields)
            profile.categories = [WorkerServiceCategory(category=c) for c in categories]
            session.add(profile)
            await session.commit()
            return profile

    return _make


@pytest.fixture
def make_customer(session_factory: async_sessionmaker[AsyncSession]) -> CustomerFactory:
    async def _make(**overrides: Any) -> CustomerProfile:
        async with session_factory() as session:
            profile = CustomerProfile(user_id=overrides.pop("user_id", uuid4()), **overrides)
            session.add(profile)
            await session.commit()
            return profile

    return _make


EngagementFactory = Callable[..., Awaitable[Engagement]]


@pytest.fixture
def make_engagement(session_factory: async_sessionmaker[AsyncSession]) -> EngagementFactory:
    """Factory inserting an engagement directly in a given status."""

    async def _make(
        customer_id: UUID,
        worker_id: UUID | None,
        status: EngagementStatus = EngagementStatus.PENDING,
        **overrides: Any,
    ) -> Engagement:
        fields: dict[str, Any] = {
            "customer_id": customer_id,
            "worker_id": worker_id,
            "status": status,
            "service_category": ServiceCategory.PLUMBING,
            "problem_description": "Kitchen sink is leaking under the cabinet",
            "latitude": 6.5244,
            "longitude": 3.3792,
        }
        fields.update(overrides)
        async with session_factory() as session:
            engagement = Engagement(**fields)
            session.add(engagement)
            await session.commit()
            return engagement

    return _make


# --- Identity Fixtures ---


@pytest.fixture
def admin_identity() -> IdentityContext:
    return IdentityContext(subject_id=uuid4(), role=UserRole.ADMIN)


# --- API Fixtures ---


@pytest.fixture(scope="session")
def transport() -> ASGITransport:
    """Fixture for ASGI transport."""
    return ASGITransport(app=app)


@pytest_asyncio.fixture(scope="function")
async def async_client(transport: ASGITransport) -> AsyncGenerator[AsyncClient, None]:
    """Fixture for HTTP async client."""
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def override_get_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> Generator[None, None, None]:
    """Routes run against the per-test SQLite database."""

    async def _override() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def override_get_notifier(notifier: NotificationDispatcher) -> Generator[None, None, None]:
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture
def act_as() -> Generator[Callable[[IdentityContext], None], None, None]:
    """Switch the identity the API sees for the rest of the test."""

    def _act_as(identity: IdentityContext) -> None:
        app.dependency_overrides[get_identity] = lambda: identity

    yield _act_as
    app.dependency_overrides.pop(get_identity, None)
