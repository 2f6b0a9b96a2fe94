"""Shared fixtures: in-memory document store, recording email transport, fixed clock."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from tenderflow.config import Settings
from tenderflow.db import SqlDocumentStore, build_engine, build_session_factory
from tenderflow.models import Base
from tenderflow.schemas import (
    DeliveryResult,
    Invitation,
    NotificationPreferences,
    TenderCreate,
    TenderStatus,
    User,
)
from tenderflow.services import LocalBlobStorage, build_services

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta):
        self.now += timedelta(**delta)


class RecordingTransport:
    """Email transport that keeps sent messages; addresses in ``failing`` fail."""

    def __init__(self):
        self.sent = []
        self.attempts = []
        self.failing: set[str] = set()

    async def send(self, message):
        self.attempts.append(message)
        if message.to in self.failing:
            return DeliveryResult.failed("Mailbox unavailable")
        self.sent.append(message)
        return DeliveryResult.delivered(f"msg-{len(self.sent)}")

    def to(self, address: str, subject_prefix: str = ""):
        return [m for m in self.sent if m.to == address and m.subject.startswith(subject_prefix)]


BUYER = User(
    id="buyer-1",
    email="kari@byggherre.no",
    name="Kari Nordmann",
    company_id="company-buyer",
    company_name="Byggherre AS",
)
SUPPLIERS = [
    User(id=f"supplier-{n}", email=f"post@bygg{n}.no", name=f"Leverandør {n}",
         company_id=f"company-{n}", company_name=f"Bygg {n} AS")
    for n in (1, 2, 3)
]


def invitation_for(user: User) -> Invitation:
    return Invitation(
        supplier_id=user.id,
        company_id=user.company_id,
        company_name=user.company_name,
        email=user.email,
    )


@pytest_asyncio.fixture
async def session_factory():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def gateway(session_factory):
    return SqlDocumentStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_services(gateway, transport, clock, tmp_path):
    def factory(**overrides):
        config = Settings(
            _env_file=None,
            app_base_url="https://app.test",
            storage_root=str(tmp_path / "storage"),
            **overrides,
        )
        storage = LocalBlobStorage(config.storage_root, config.app_base_url)
        return build_services(gateway, transport=transport, storage=storage, config=config, clock=clock)

    return factory


@pytest_asyncio.fixture
async def services(make_services, gateway):
    for user in [BUYER, *SUPPLIERS]:
        await gateway.create("users", user.model_dump())
    return make_services()


@pytest.fixture
def buyer():
    return BUYER


@pytest.fixture
def suppliers():
    return SUPPLIERS


async def set_preferences(services, user: User, **prefs):
    """Store preferences for a user and drop the cached copy."""
    await services.gateway.update(
        "users", user.id, {"notification_preferences": NotificationPreferences(**prefs)}
    )
    services.preference_cache.invalidate(user.id)


async def create_open_tender(services, buyer, invited=(), status=TenderStatus.OPEN, **fields):
    data = TenderCreate(
        title=fields.pop("title", "Rehabilitering av Storgata skole"),
        description="Utskifting av vinduer og fasade",
        deadline=fields.pop("deadline", NOW + timedelta(days=14)),
        status=status,
        invited_suppliers=[invitation_for(user) for user in invited],
        **fields,
    )
    return await services.tenders.create_tender(data, buyer)


@pytest_asyncio.fixture
async def client(services, session_factory):
    """HTTP client against the app, wired to the test services and database."""
    from httpx import ASGITransport, AsyncClient

    from tenderflow.db import get_db
    from tenderflow.main import app
    from tenderflow.services import get_operations, get_services

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_operations] = lambda: services.operations

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()
