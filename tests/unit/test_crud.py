from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db import crud
from app.exceptions import ConflictError
from app.models import Base, WorkOrder


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


async def test_create_and_get_work_order(db):
    wo = await crud.create_work_order(db, work_order_number="WO202501100001", customer_name="Sara")
    assert wo.id is not None
    assert wo.work_order_status == "Pending"
    assert wo.job_status == "Not Attend"
    assert wo.hours == 0
    assert wo.attachments == []

    fetched = await crud.get_work_order(db, wo.id)
    assert fetched is not None
    assert fetched.customer_name == "Sara"

    by_number = await crud.get_work_order_by_number(db, "wo202501100001")
    assert by_number.id == wo.id


async def test_duplicate_number_is_a_conflict(db):
    await crud.create_work_order(db, work_order_number="WO1")
    with pytest.raises(ConflictError) as exc_info:
        await crud.create_work_order(db, work_order_number="WO1")
    assert "WO1" in exc_info.value.message
    # The session is usable after the conflict.
    assert await crud.count_work_orders(db, []) == 1


async def test_deleted_records_keep_their_number(db):
    await crud.create_work_order(db, work_order_number="WO1", is_deleted=True)
    assert await crud.get_work_order_by_number(db, "WO1") is None
    assert await crud.work_order_number_exists(db, "WO1")


async def test_find_count_and_group(db):
    for number, status in [("WO1", "Pending"), ("WO2", "Pending"), ("WO3", "Completed")]:
        await crud.create_work_order(db, work_order_number=number, work_order_status=status,
                                     visit_date=datetime(2025, 1, int(number[-1])))

    pending = [WorkOrder.work_order_status == "Pending"]
    assert await crud.count_work_orders(db, pending) == 2

    page = await crud.find_work_orders(db, [], [WorkOrder.visit_date.desc()], skip=1, limit=1)
    assert [wo.work_order_number for wo in page] == ["WO2"]

    groups = await crud.group_count(db, WorkOrder.work_order_status, [])
    assert groups == [("Pending", 2), ("Completed", 1)]


async def test_save_persists_changes(db):
    wo = await crud.create_work_order(db, work_order_number="WO1")
    wo.technician = "Ravi"
    saved = await crud.save_work_order(db, wo)
    assert saved.technician == "Ravi"
    assert saved.updated_at >= saved.created_at


async def test_users_are_looked_up_case_insensitively(db):
    user = await crud.create_user(db, "Agent@Test.com", "hash", display_name="Mona")
    assert user.email == "agent@test.com"
    assert user.role == "agent"
    assert (await crud.get_user_by_email(db, "AGENT@test.com")).id == user.id


async def test_schema_index_names_are_unique():
    names = [ix.name for ix in WorkOrder.__table__.indexes]
    assert len(names) == len(set(names))

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
