"""Work order export: CSV and styled XLSX in the import column layout."""

from __future__ import annotations

import csv
import io
from datetime import datetime, time
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.models import WorkOrder
from app.schemas.work_order import WorkOrderFilters
from app.services.columns import COLUMNS, EXPORT_HEADERS
from app.services.query_builder import build_order_by, build_work_order_query

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(start_color="FFE6E6FA", end_color="FFE6E6FA", fill_type="solid")
STRIPE_FILL = PatternFill(start_color="FFF8F8F8", end_color="FFF8F8F8", fill_type="solid")

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _csv_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == time.min else value.isoformat()
    return str(value)


def render_csv(records: Iterable[WorkOrder]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for wo in records:
        writer.writerow([_csv_value(getattr(wo, col.field)) for col in COLUMNS])
    return buf.getvalue()


def render_xlsx(records: Iterable[WorkOrder]) -> bytes:
    """Bold filled header, shaded alternate rows, widths from the column table."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Work Orders"

    ws.append(EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for index, wo in enumerate(records):
        ws.append([getattr(wo, col.field) for col in COLUMNS])
        row = ws.max_row
        for col_idx, col in enumerate(COLUMNS, start=1):
            cell = ws.cell(row=row, column=col_idx)
            if col.kind == "date" and cell.value is not None:
                cell.number_format = "yyyy-mm-dd"
            if index % 2 == 0:
                cell.fill = STRIPE_FILL

    for col_idx, col in enumerate(COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = col.width
    ws.freeze_panes = "A2"

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def template_csv() -> str:
    """Header-only CSV agents fill in for bulk import."""
    return render_csv([])


async def export_work_orders(
    db: AsyncSession,
    filters: WorkOrderFilters | None = None,
    fmt: str = "csv",
) -> tuple[bytes, str]:
    """Render the filtered, non-deleted set; returns (content, media type)."""
    stmt = build_work_order_query(filters).order_by(*build_order_by("visit_date", "desc"))
    records = await crud.fetch_work_orders(db, stmt)
    if fmt == "xlsx":
        return render_xlsx(records), XLSX_MEDIA_TYPE
    return render_csv(records).encode("utf-8"), CSV_MEDIA_TYPE
