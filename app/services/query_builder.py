"""Translate flat user filters into SQLAlchemy conditions.

No identity-based restriction is applied: every authenticated caller
sees the full non-deleted record set.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta

from sqlalchemy import Select, func, or_, select

from app.models import WorkOrder
from app.schemas.work_order import WorkOrderFilters

SORTABLE_COLUMNS = {
    "visit_date": WorkOrder.visit_date,
    "created_at": WorkOrder.created_at,
    "updated_at": WorkOrder.updated_at,
    "work_order_number": WorkOrder.work_order_number,
    "customer_name": WorkOrder.customer_name,
    "work_order_status": WorkOrder.work_order_status,
    "area": WorkOrder.area,
    "technician": WorkOrder.technician,
    "supervisor": WorkOrder.supervisor,
}


def _contains(column, text: str):
    return func.lower(column).contains(text.lower(), autoescape=True)


def build_conditions(filters: WorkOrderFilters | None = None) -> list:
    """AND-combined conditions; always excludes soft-deleted rows."""
    f = filters or WorkOrderFilters()
    conditions = [WorkOrder.is_deleted == False]

    if f.status:
        conditions.append(WorkOrder.work_order_status == f.status)
    if f.work_order_type:
        conditions.append(WorkOrder.work_order_type == f.work_order_type)
    if f.distribution:
        conditions.append(WorkOrder.distribution == f.distribution)
    if f.supervisor:
        conditions.append(WorkOrder.supervisor == f.supervisor)
    if f.technician:
        conditions.append(WorkOrder.technician == f.technician)
    if f.area:
        conditions.append(_contains(WorkOrder.area, f.area))
    if f.area_code:
        conditions.append(WorkOrder.area_code == f.area_code.upper())

    # Inclusive on both ends: the end date covers its whole day.
    if f.start_date:
        conditions.append(WorkOrder.visit_date >= datetime.combine(f.start_date, time.min))
    if f.end_date:
        conditions.append(
            WorkOrder.visit_date < datetime.combine(f.end_date + timedelta(days=1), time.min)
        )

    if f.search:
        conditions.append(or_(
            _contains(WorkOrder.customer_name, f.search),
            _contains(WorkOrder.description, f.search),
            _contains(WorkOrder.work_order_number, f.search),
        ))

    return conditions


def build_work_order_query(filters: WorkOrderFilters | None = None) -> Select:
    return select(WorkOrder).where(*build_conditions(filters))


def build_order_by(sort_by: str = "visit_date", sort_order: str = "desc") -> list:
    column = SORTABLE_COLUMNS.get(sort_by, WorkOrder.visit_date)
    primary = column.asc() if sort_order == "asc" else column.desc()
    # Stable paging for equal sort keys.
    return [primary, WorkOrder.id.asc()]
