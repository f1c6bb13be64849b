import re
from datetime import datetime, timezone

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db import crud
from app.models import Base
from app.services.auth import AuthContext
from app.services.numbering import generate_work_order_number, local_day_bounds
from app.services.work_orders import create_work_order, soft_delete

ACTOR = AuthContext(user_id="01TESTUSER0000000000000000", role="agent", email="agent@test.com",
                    display_name="Agent")
NOW = datetime(2025, 1, 10, 9, 30)


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


async def test_first_number_of_the_day(db):
    assert await generate_work_order_number(db, NOW) == "WO202501100001"


async def test_created_work_order_gets_dated_number(db):
    wo = await create_work_order(db, {"customer_name": "Sara", "visit_date": "2025-01-10"}, ACTOR, now=NOW)
    assert re.fullmatch(r"WO20250110\d{4}", wo.work_order_number)


async def test_same_day_creates_get_distinct_increasing_numbers(db):
    numbers = []
    for i in range(3):
        wo = await create_work_order(db, {"customer_name": f"Customer {i}"}, ACTOR, now=NOW)
        numbers.append(wo.work_order_number)
    assert numbers == ["WO202501100001", "WO202501100002", "WO202501100003"]


async def test_soft_deleted_records_still_count(db):
    wo = await create_work_order(db, {"customer_name": "Sara"}, ACTOR, now=NOW)
    await soft_delete(db, wo.id, ACTOR)
    assert await generate_work_order_number(db, NOW) == "WO202501100002"


async def test_other_days_do_not_count(db):
    await create_work_order(db, {"customer_name": "Sara"}, ACTOR, now=datetime(2025, 1, 9, 23, 0))
    assert await generate_work_order_number(db, NOW) == "WO202501100001"


async def test_collision_falls_back_to_hyphenated_number(db):
    # A record created on another day already holds today's first number.
    await crud.create_work_order(
        db,
        work_order_number="WO202501100001",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    assert await generate_work_order_number(db, NOW) == "WO-20250110-0002"


def test_local_day_bounds_span_one_day():
    start, end = local_day_bounds(NOW)
    assert (end - start).total_seconds() == 86400
    assert start.tzinfo is not None
