"""Work order statistics over a filtered, non-deleted record set."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.models import WorkOrder
from app.models.work_order import TERMINAL_STATUSES
from app.schemas.work_order import (
    StatusCount, TypeCount, WorkOrderFilters, WorkOrderStatistics,
)
from app.services.query_builder import build_conditions


async def aggregate_statistics(
    db: AsyncSession,
    filters: WorkOrderFilters | None = None,
    now: datetime | None = None,
) -> WorkOrderStatistics:
    now = now or datetime.now()
    conditions = build_conditions(filters)

    total = await crud.count_work_orders(db, conditions)
    by_status = await crud.group_count(db, WorkOrder.work_order_status, conditions)
    by_type = await crud.group_count(db, WorkOrder.work_order_type, conditions)

    overdue = await crud.count_work_orders(db, conditions + [
        WorkOrder.visit_date < now,
        WorkOrder.work_order_status.not_in(TERMINAL_STATUSES),
    ])

    completed_conditions = conditions + [WorkOrder.work_order_status == "Completed"]
    completed = await crud.count_work_orders(db, completed_conditions)
    completion_rate = round(completed / total * 100, 2) if total else 0.0

    timed = await crud.find_work_orders(db, completed_conditions + [
        WorkOrder.completion_date.is_not(None),
        WorkOrder.visit_date.is_not(None),
    ])
    avg_hours = 0.0
    if timed:
        total_hours = sum(
            (wo.completion_date - wo.visit_date).total_seconds() / 3600 for wo in timed
        )
        avg_hours = round(total_hours / len(timed), 2)

    return WorkOrderStatistics(
        total_count=total,
        by_status=[StatusCount(status=s, count=c) for s, c in by_status],
        by_type=[TypeCount(type=t, count=c) for t, c in by_type],
        overdue_count=overdue,
        completion_rate=completion_rate,
        avg_completion_hours=avg_hours,
        completed_count=completed,
    )
