from datetime import date, datetime

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db import crud
from app.models import Base
from app.schemas.work_order import WorkOrderFilters
from app.services.query_builder import build_conditions, build_order_by, build_work_order_query


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await _seed(session)
        yield session
    await engine.dispose()


async def _seed(db):
    rows = [
        ("WO1", "Sara Haddad", "Al Barsha", "BRS", "Pending", "Ravi", datetime(2025, 1, 10, 9)),
        ("WO2", "Omar Saleh", "Barsha Heights", "BRH", "Completed", "Ravi", datetime(2025, 1, 12, 18)),
        ("WO3", "Leila Nasser", "Mirdif", "MRD", "Pending", "Ajay", datetime(2025, 1, 15, 8)),
        ("WO4", "100% Pure Water Co", "Deira", "DRA", "No Answer", None, datetime(2025, 1, 20)),
    ]
    for number, name, area, code, status, tech, visit in rows:
        await crud.create_work_order(
            db, work_order_number=number, customer_name=name, area=area, area_code=code,
            work_order_status=status, technician=tech, visit_date=visit,
            description=f"Visit for {name}",
        )
    deleted = await crud.create_work_order(
        db, work_order_number="WO5", customer_name="Sara Deleted", area="Al Barsha",
        work_order_status="Pending", visit_date=datetime(2025, 1, 10), is_deleted=True,
    )
    assert deleted.is_deleted


async def _numbers(db, **filters):
    items = await crud.find_work_orders(
        db, build_conditions(WorkOrderFilters(**filters)), build_order_by("work_order_number", "asc"),
    )
    return [wo.work_order_number for wo in items]


async def test_no_filters_excludes_deleted(db):
    assert await _numbers(db) == ["WO1", "WO2", "WO3", "WO4"]


async def test_exact_filters(db):
    assert await _numbers(db, status="Pending") == ["WO1", "WO3"]
    assert await _numbers(db, technician="Ravi", status="Completed") == ["WO2"]
    assert await _numbers(db, technician="ravi") == []


async def test_area_is_case_insensitive_substring(db):
    assert await _numbers(db, area="barsha") == ["WO1", "WO2"]


async def test_area_code_is_uppercased(db):
    assert await _numbers(db, area_code="mrd") == ["WO3"]


async def test_date_range_is_inclusive_of_whole_end_day(db):
    numbers = await _numbers(db, start_date=date(2025, 1, 10), end_date=date(2025, 1, 12))
    assert numbers == ["WO1", "WO2"]


async def test_search_matches_name_description_or_number(db):
    assert await _numbers(db, search="leila") == ["WO3"]
    assert await _numbers(db, search="wo2") == ["WO2"]
    assert await _numbers(db, search="visit for omar") == ["WO2"]


async def test_search_wildcards_are_literal(db):
    assert await _numbers(db, search="100%") == ["WO4"]
    assert await _numbers(db, search="%") == ["WO4"]


async def test_blank_filters_are_ignored(db):
    assert await _numbers(db, status="", search="  ") == ["WO1", "WO2", "WO3", "WO4"]


async def test_query_and_sort(db):
    result = await db.execute(build_work_order_query().order_by(*build_order_by("visit_date", "desc")))
    assert [wo.work_order_number for wo in result.scalars()] == ["WO4", "WO3", "WO2", "WO1"]


def test_unknown_sort_column_falls_back_to_visit_date():
    clauses = build_order_by("password_hash", "asc")
    assert "visit_date" in str(clauses[0])
