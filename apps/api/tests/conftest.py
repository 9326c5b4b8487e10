from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from models.package import Package
from models.subscriber import Subscriber
from models.user import User
from routers import rate_limit
from services.session_token import create_session_token


ADMIN_ID = "admin-1"
DISTRIBUTOR_ID = "distributor-1"
OTHER_DISTRIBUTOR_ID = "distributor-2"
RESELLER_ID = "reseller-1"
OTHER_RESELLER_ID = "reseller-2"
INACTIVE_DISTRIBUTOR_ID = "distributor-inactive"

BASIC_PACKAGE_ID = "pkg-basic"
SPORTS_PACKAGE_ID = "pkg-sports"
MOVIES_PACKAGE_ID = "pkg-movies"
KIDS_PACKAGE_ID = "pkg-kids"

SUBSCRIBER_ID = "subscriber-1"
OTHER_SUBSCRIBER_ID = "subscriber-2"


def auth_header(account_id: str, role: str = None) -> dict:
    return {"Authorization": f"Bearer {create_session_token(account_id, role=role)['token']}"}


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "ledger.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    now = datetime.now(timezone.utc)
    async with maker() as session:
        session.add_all(
            [
                User(id=ADMIN_ID, name="Admin", email="admin@example.com", role="admin", balance=Decimal("5000")),
                User(id=DISTRIBUTOR_ID, name="Delta Distribution", email="delta@example.com", role="distributor", balance=Decimal("0")),
                User(id=OTHER_DISTRIBUTOR_ID, name="Omega Distribution", email="omega@example.com", role="distributor", balance=Decimal("800")),
                User(
                    id=INACTIVE_DISTRIBUTOR_ID,
                    name="Dormant Distribution",
                    email="dormant@example.com",
                    role="distributor",
                    balance=Decimal("1000"),
                    status="Inactive",
                ),
                User(
                    id=RESELLER_ID,
                    name="Ravi Resales",
                    email="ravi@example.com",
                    role="reseller",
                    balance=Decimal("500"),
                    created_by=DISTRIBUTOR_ID,
                ),
                User(
                    id=OTHER_RESELLER_ID,
                    name="Sana Streams",
                    email="sana@example.com",
                    role="reseller",
                    balance=Decimal("250"),
                    created_by=OTHER_DISTRIBUTOR_ID,
                ),
            ]
        )
        basic = Package(id=BASIC_PACKAGE_ID, name="Basic", cost=Decimal("100"), duration=30)
        sports = Package(id=SPORTS_PACKAGE_ID, name="Sports", cost=Decimal("200"), duration=30)
        movies = Package(id=MOVIES_PACKAGE_ID, name="Movies", cost=Decimal("150"), duration=30)
        kids = Package(id=KIDS_PACKAGE_ID, name="Kids", cost=Decimal("400"), duration=30)
        session.add_all([basic, sports, movies, kids])
        session.add_all(
            [
                Subscriber(
                    id=SUBSCRIBER_ID,
                    reseller_id=RESELLER_ID,
                    subscriber_name="Living Room Box",
                    serial_number="SN-0001",
                    mac_address="aa:bb:cc:dd:ee:01",
                    status="Active",
                    expiry_date=now + timedelta(days=10),
                    packages=[basic, sports],
                    primary_package_id=SPORTS_PACKAGE_ID,
                ),
                Subscriber(
                    id=OTHER_SUBSCRIBER_ID,
                    reseller_id=OTHER_RESELLER_ID,
                    subscriber_name="Bedroom Stick",
                    serial_number="SN-0002",
                    mac_address="aa:bb:cc:dd:ee:02",
                    status="Inactive",
                    expiry_date=now - timedelta(days=5),
                    packages=[movies],
                    primary_package_id=MOVIES_PACKAGE_ID,
                ),
            ]
        )
        await session.commit()

    yield maker

    await engine.dispose()


@pytest_asyncio.fixture
async def ledger_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


async def fetch_balance(session_maker, account_id: str) -> Decimal:
    async with session_maker() as session:
        account = await session.get(User, account_id)
        return Decimal(account.balance)


def drain_before_guarded_deduction(monkeypatch, module) -> None:
    """Empty the payer's balance after the pre-check but before the guarded UPDATE."""
    guarded = module.deduct_balance_guarded

    async def deduct_after_drain(db, account_id, amount):
        await db.execute(update(User).where(User.id == account_id).values(balance=Decimal("0")))
        return await guarded(db, account_id, amount)

    monkeypatch.setattr(module, "deduct_balance_guarded", deduct_after_drain)
