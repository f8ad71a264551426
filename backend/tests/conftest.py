"""
Pytest fixtures for test database, client, fakes and authentication.

Every test gets a fresh database: an aiosqlite file under tmp_path by
default, or TEST_DATABASE_URL (e.g. a PostgreSQL test database) when set.
Tables are created before and dropped after each test.

The HTTP client gives every request its own session, like production,
because services commit their own transactions.
"""

import hmac
import os
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from chessbook.api.deps import get_audit_sink, get_gateway, get_notifier, get_policy
from chessbook.core.feature_flags import BookingPolicy
from chessbook.core.security import create_access_token
from chessbook.db.base import Base
from chessbook.db.session import get_db
from chessbook.main import app
from chessbook.models import Category, Event, Participant, User
from chessbook.models.enums import ConcessionType, EventStatus, Gender, UserRole
from chessbook.services.interfaces import (
    AuditRecord,
    AuditSink,
    BookingConfirmedNotice,
    BookingNotifier,
    GatewayOrder,
    GatewayRefund,
    PaymentGateway,
    compute_signature,
)

TEST_GATEWAY_SECRET = "test_gateway_secret"


def is_postgres() -> bool:
    return os.getenv("TEST_DATABASE_URL", "").startswith("postgresql")


class FakeGateway(PaymentGateway):
    """In-memory gateway honouring the real HMAC signature contract."""

    def __init__(self, secret: str = TEST_GATEWAY_SECRET):
        self.secret = secret
        self.orders: list[GatewayOrder] = []
        self.refunds: list[tuple[str, int]] = []
        self.fail_with: Optional[Exception] = None

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        if self.fail_with is not None:
            raise self.fail_with
        order_id = f"order_test{len(self.orders) + 1:04d}"
        order = GatewayOrder(
            order_id=order_id,
            amount=amount,
            currency=currency,
            raw={"id": order_id, "amount": amount, "currency": currency, "receipt": receipt},
        )
        self.orders.append(order)
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign(order_id, payment_id), signature)

    async def refund(self, payment_id: str, amount: int) -> GatewayRefund:
        if self.fail_with is not None:
            raise self.fail_with
        self.refunds.append((payment_id, amount))
        refund_id = f"rfnd_test{len(self.refunds):04d}"
        return GatewayRefund(refund_id=refund_id, status="processed", raw={"id": refund_id})

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_signature(self.secret, order_id, payment_id)


class RecordingNotifier(BookingNotifier):
    def __init__(self):
        self.sent: list[BookingConfirmedNotice] = []

    async def booking_confirmed(self, notice: BookingConfirmedNotice) -> None:
        self.sent.append(notice)


class RecordingAuditSink(AuditSink):
    def __init__(self):
        self.records: list[AuditRecord] = []

    async def record(self, entry: AuditRecord) -> None:
        self.records.append(entry)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = create_async_engine(url, echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding data and driving services directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def policy() -> BookingPolicy:
    return BookingPolicy()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, gateway, notifier, audit_sink, policy) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh session per request and fake collaborators."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_audit_sink] = lambda: audit_sink
    app.dependency_overrides[get_policy] = lambda: policy

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


async def current_bookings(session_factory, event_id: int) -> int:
    """Read the ledger counter from a fresh session, never from a cached object."""
    async with session_factory() as session:
        return (await session.execute(select(Event.current_bookings).where(Event.id == event_id))).scalar_one()


async def persist(db: AsyncSession, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def player(db_session: AsyncSession) -> User:
    return await persist(db_session, User(email="player@example.com", full_name="Priya Player", role=UserRole.PLAYER))


@pytest_asyncio.fixture
async def other_player(db_session: AsyncSession) -> User:
    return await persist(db_session, User(email="other@example.com", full_name="Omar Other", role=UserRole.PLAYER))


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await persist(db_session, User(email="admin@example.com", full_name="Asha Admin", role=UserRole.ADMIN))


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession) -> User:
    return await persist(db_session, User(email="org@example.com", full_name="Olu Organizer", role=UserRole.ORGANIZER))


@pytest.fixture
def auth_headers(player: User) -> dict:
    """Authorization headers with Bearer token for the player."""
    return headers_for(player)


@pytest.fixture
def other_headers(other_player: User) -> dict:
    return headers_for(other_player)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return headers_for(admin)


def make_participant(user: User, name: str, govt: bool = False, born: date = date(2012, 5, 1)) -> Participant:
    return Participant(
        user_id=user.id,
        full_name=name,
        date_of_birth=born,
        gender=Gender.FEMALE,
        is_govt_student=govt,
    )


@pytest_asyncio.fixture
async def participant(db_session: AsyncSession, player: User) -> Participant:
    return await persist(db_session, make_participant(player, "Kavya"))


@pytest_asyncio.fixture
async def govt_participant(db_session: AsyncSession, player: User) -> Participant:
    return await persist(db_session, make_participant(player, "Ravi", govt=True))


@pytest_asyncio.fixture
async def other_participant(db_session: AsyncSession, other_player: User) -> Participant:
    return await persist(db_session, make_participant(other_player, "Meera"))


def make_event(organizer: User, **overrides) -> Event:
    fields = dict(
        organizer_id=organizer.id,
        name="District Rapid Open",
        location="Town Hall",
        start_date=date.today() + timedelta(days=30),
        entry_fee=Decimal("500"),
        max_capacity=100,
        is_online=False,
        govt_concession_type=ConcessionType.NONE,
        govt_concession_value=Decimal("0"),
        event_status=EventStatus.UPCOMING,
    )
    fields.update(overrides)
    return Event(**fields)


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, organizer: User) -> Event:
    """Offline event, 100 slots, 500 entry."""
    return await persist(db_session, make_event(organizer))


@pytest_asyncio.fixture
async def single_slot_event(db_session: AsyncSession, organizer: User) -> Event:
    """maxCapacity=1, entryFee=500, offline."""
    return await persist(db_session, make_event(organizer, name="Last Slot Blitz", max_capacity=1))


@pytest_asyncio.fixture
async def concession_event(db_session: AsyncSession, organizer: User) -> Event:
    """Online event with a 20% concession for government-school students."""
    return await persist(
        db_session,
        make_event(
            organizer,
            name="Online Schools Cup",
            is_online=True,
            govt_concession_type=ConcessionType.PERCENTAGE,
            govt_concession_value=Decimal("20"),
        ),
    )


@pytest_asyncio.fixture
async def categorized_event(db_session: AsyncSession, organizer: User) -> Event:
    """Event offering U9 and OPEN categories."""
    u9 = Category(category_name="Under 9", category_code="U9", age_limit=9)
    open_ = Category(category_name="Open", category_code="OPEN", age_limit=None)
    event = make_event(organizer, name="Junior Championship")
    event.categories = [u9, open_]
    return await persist(db_session, event)
