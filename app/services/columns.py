"""Spreadsheet columns for work order import and export.

COLUMNS is the one table both directions read: export writes the primary
headers in this order, import accepts the primary headers plus the legacy
labels found in older spreadsheets.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Column:
    field: str
    header: str
    kind: str = "text"  # text | date | number
    width: int = 15
    aliases: tuple[str, ...] = ()


COLUMNS: tuple[Column, ...] = (
    Column("work_order_number", "WO Number", width=18, aliases=("Work Order #",)),
    Column("customer_name", "Customer Name", width=24),
    Column("customer_phone", "Phone", width=16, aliases=("Cust. Phone #", "Customer Phone")),
    Column("visit_date", "Visit Date", kind="date", width=12, aliases=("Visit & Inst.Date",)),
    Column("work_order_type", "WO Type", width=16, aliases=("Types of Work Order", "Type")),
    Column("area", "Area", width=20),
    Column("area_code", "Area Code", width=10),
    Column("agent_name", "Agent Name", width=16),
    Column("supervisor", "Supervisor", width=16),
    Column("technician", "Technician", width=16),
    Column("work_order_status", "WO Status", width=16, aliases=("Work Order Status", "Status")),
    Column("job_status", "Job Status", width=12),
    Column("hours", "Hours", kind="number", width=8),
    Column("distribution", "Distribution", width=18),
    Column("description", "Description", width=40),
    Column("reschedule_date", "Reschedule Date", kind="date", width=14,
           aliases=("Reschedule Reason & Remarks",)),
    Column("completion_date", "Completion Date", kind="date", width=14),
)

HEADER_TO_FIELD: dict[str, str] = {}
for _col in COLUMNS:
    HEADER_TO_FIELD[_col.header] = _col.field
    for _alias in _col.aliases:
        HEADER_TO_FIELD[_alias] = _col.field

FIELD_KINDS: dict[str, str] = {c.field: c.kind for c in COLUMNS}

EXPORT_HEADERS: list[str] = [c.header for c in COLUMNS]


def field_for_header(header: str) -> str | None:
    """Canonical field for a source header, tolerant of stray whitespace."""
    return HEADER_TO_FIELD.get(header.strip()) if header else None
