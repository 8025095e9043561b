"""Service test fixtures — async DB, seeded bids/orders, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - Concurrency tests get a file-backed SQLite database so each session
      has its own connection (in-memory shares one)
    - get_db and get_payment_provider are overridden for route tests
    - db_manager patched so the readiness probe sees the test engine
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from plantbid.db.base import Base
from plantbid.db.session import create_session_factory
from plantbid.infrastructure.database import get_db, DatabaseSessionManager
from plantbid.infrastructure.payment_client import get_payment_provider
import plantbid.infrastructure.database as db_module
import plantbid.models  # noqa: F401
from plantbid.models.bid import Bid
from plantbid.models.conversation import Conversation
from plantbid.models.order import Order
from plantbid.models.payment_record import PaymentRecord
from plantbid.models.product import Product
from plantbid.main import app

from tests.services.fake_payment_provider import FakePaymentProvider

NOW = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
VENDOR_ID = 1
CUSTOMER_ID = 10


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def file_session_factory(tmp_path):
    """One connection per session: lets coroutines really race on the DB."""
    factory = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    engine = factory.kw["bind"]
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest.fixture
def fake_provider():
    return FakePaymentProvider()


@pytest.fixture
async def client(test_engine, test_session_factory, fake_provider):
    """FastAPI test client with DB and payment provider overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: fake_provider

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


# ─── Seed data ───────────────────────────────────────────────────

async def seed_catalog(db: AsyncSession) -> None:
    db.add_all([
        Product(id=7, vendor_id=VENDOR_ID, name="Monstera Deliciosa", price=12000,
                image_url="https://img.example/monstera.jpg"),
        Product(id=8, vendor_id=VENDOR_ID, name="Golden Pothos", price=8000),
        Product(id=9, vendor_id=2, name="Fiddle Leaf Fig", price=30000),
    ])
    await db.commit()


async def seed_conversation(db: AsyncSession, conversation_id: int = 1) -> Conversation:
    conversation = Conversation(
        id=conversation_id, customer_id=CUSTOMER_ID, vendor_id=VENDOR_ID, messages=[],
    )
    db.add(conversation)
    await db.commit()
    return conversation


async def seed_bid(db: AsyncSession, bid_id: int = 42, **fields) -> Bid:
    values = {
        "customer_id": CUSTOMER_ID,
        "vendor_id": VENDOR_ID,
        "conversation_id": 1,
        "status": "pending",
        "selected_product_ids": [],
        "reference_images": [],
    }
    values.update(fields)
    bid = Bid(id=bid_id, **values)
    db.add(bid)
    await db.commit()
    return bid


async def seed_order(db: AsyncSession, order_id: str = "100", **fields) -> Order:
    values = {
        "vendor_id": VENDOR_ID,
        "customer_id": CUSTOMER_ID,
        "price": 15000,
        "status": "created",
        "conversation_id": 1,
        "payment_ref": f"pay_{order_id}",
    }
    values.update(fields)
    order = Order(order_id=order_id, **values)
    db.add(order)
    await db.commit()
    return order


async def seed_payment(
    db: AsyncSession, order_id: str = "100", status: str = "success",
) -> PaymentRecord:
    record = PaymentRecord(
        order_id=order_id, payment_key=f"pay_{order_id}",
        status=status, raw_status=status.upper(), amount=15000,
    )
    db.add(record)
    await db.commit()
    return record


@pytest.fixture
async def catalog(test_db):
    await seed_catalog(test_db)
    await seed_conversation(test_db)


@pytest.fixture
async def pending_bid(test_db, catalog):
    return await seed_bid(test_db)


@pytest.fixture
async def created_order(test_db, catalog):
    return await seed_order(test_db)
