import csv
import io
from datetime import datetime

import pytest_asyncio
from openpyxl import load_workbook
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db import crud
from app.models import Base, WorkOrder
from app.schemas.work_order import WorkOrderFilters
from app.services import work_orders
from app.services.auth import AuthContext
from app.services.columns import COLUMNS, EXPORT_HEADERS
from app.services.export import export_work_orders, render_csv, render_xlsx, template_csv
from app.services.importer import run_import

ADMIN = AuthContext(user_id="01ADMIN0000000000000000000", role="admin", email="admin@test.com",
                    display_name="Admin")
NOW = datetime(2025, 1, 15, 9)


async def _make_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db():
    engine, factory = await _make_db()
    async with factory() as session:
        yield session
    await engine.dispose()


async def _seed(db):
    await work_orders.create_work_order(db, {
        "customer_name": "Sara Haddad", "customer_phone": "0501234567", "agent_name": "Mona",
        "visit_date": "2025-01-10", "work_order_type": "Repair", "area": "Al Barsha",
        "area_code": "BRS", "supervisor": "Omar", "technician": "Ravi",
        "work_order_status": "In Progress", "hours": 2.5,
        "description": 'Leak under sink, "urgent"',
    }, ADMIN, now=NOW)
    await work_orders.create_work_order(db, {
        "customer_name": "Leila Nasser", "visit_date": "2025-01-12", "area": "Mirdif", "agent_name": "Ali",
        "work_order_status": "Completed", "completion_date": "2025-01-12T15:30:00",
    }, ADMIN, now=NOW)


def test_template_header_matches_export_header():
    assert template_csv().strip() == ",".join(EXPORT_HEADERS)
    assert render_csv([]).splitlines() == [",".join(EXPORT_HEADERS)]


async def test_csv_quotes_embedded_commas(db):
    await _seed(db)
    content, media_type = await export_work_orders(db, WorkOrderFilters(area="barsha"))
    assert media_type == "text/csv"
    rows = list(csv.DictReader(io.StringIO(content.decode("utf-8"))))
    assert len(rows) == 1
    assert rows[0]["Description"] == 'Leak under sink, "urgent"'
    assert rows[0]["Visit Date"] == "2025-01-10"
    assert rows[0]["Distribution"] == "Distributed"


async def test_export_excludes_deleted(db):
    await _seed(db)
    wo = await crud.get_work_order_by_number(db, "WO202501150001")
    await work_orders.soft_delete(db, wo.id, ADMIN)
    content, _ = await export_work_orders(db)
    assert len(content.decode().strip().splitlines()) == 2


async def test_csv_round_trip_reconstructs_records(db):
    await _seed(db)
    content, _ = await export_work_orders(db)
    originals = {
        wo.work_order_number: wo
        for wo in await crud.find_work_orders(db, [WorkOrder.is_deleted == False])
    }

    engine, factory = await _make_db()
    try:
        async with factory() as fresh:
            report = await run_import(fresh, content, "export.csv", ADMIN, now=NOW)
            assert report.errors == []
            assert report.success_count == 2
            for number, original in originals.items():
                copy = await crud.get_work_order_by_number(fresh, number)
                for col in COLUMNS:
                    assert getattr(copy, col.field) == getattr(original, col.field), col.field
    finally:
        await engine.dispose()


async def test_xlsx_is_styled_and_readable(db):
    await _seed(db)
    records = await crud.find_work_orders(db, [WorkOrder.is_deleted == False])
    wb = load_workbook(io.BytesIO(render_xlsx(records)))
    ws = wb.active

    assert [c.value for c in ws[1]] == EXPORT_HEADERS
    assert ws["A1"].font.bold
    assert ws["A1"].fill.start_color.rgb == "FFE6E6FA"
    assert ws["A2"].fill.start_color.rgb == "FFF8F8F8"
    assert ws["A3"].fill.fill_type is None
    assert ws.column_dimensions["O"].width == 40
    assert ws.max_row == 3


async def test_xlsx_round_trip(db):
    await _seed(db)
    content, _ = await export_work_orders(db, fmt="xlsx")

    engine, factory = await _make_db()
    try:
        async with factory() as fresh:
            report = await run_import(fresh, content, "export.xlsx", ADMIN, now=NOW)
            assert report.success_count == 2
            copy = await crud.get_work_order_by_number(fresh, "WO202501150001")
            assert copy.visit_date == datetime(2025, 1, 10)
            assert copy.hours == 2.5
            assert copy.customer_phone == "0501234567"
    finally:
        await engine.dispose()
