"""Work order API: CRUD, status changes, listing, stats, export, bulk update."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import get_db
from app.dependencies import require_auth, require_role
from app.schemas import (
    BulkUpdateResult, WorkOrderFilters, WorkOrderPage, WorkOrderRead, WorkOrderStatistics,
)
from app.services import work_orders
from app.services.auth import AuthContext
from app.services.export import export_work_orders
from app.services.statistics import aggregate_statistics

router = APIRouter(prefix="/api/work-orders", tags=["work_orders"])


def work_order_filters(
    status: str | None = None,
    work_order_type: str | None = None,
    distribution: str | None = None,
    supervisor: str | None = None,
    technician: str | None = None,
    area: str | None = None,
    area_code: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
) -> WorkOrderFilters:
    return WorkOrderFilters(
        status=status,
        work_order_type=work_order_type,
        distribution=distribution,
        supervisor=supervisor,
        technician=technician,
        area=area,
        area_code=area_code,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )


@router.get("", response_model=WorkOrderPage)
async def list_work_orders(
    filters: WorkOrderFilters = Depends(work_order_filters),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    sort_by: str = "visit_date",
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.list_work_orders(db, filters, page, limit, sort_by, sort_order)


@router.post("", response_model=WorkOrderRead, status_code=201)
async def create_work_order(
    body: dict,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.create_work_order(db, body, auth)


@router.get("/stats/overview", response_model=WorkOrderStatistics)
async def work_order_stats(
    filters: WorkOrderFilters = Depends(work_order_filters),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await aggregate_statistics(db, filters)


@router.get("/export")
async def export(
    filters: WorkOrderFilters = Depends(work_order_filters),
    format: str = Query(default="csv", pattern="^(csv|xlsx)$"),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    content, media_type = await export_work_orders(db, filters, format)
    filename = f"work-orders-{datetime.now():%Y-%m-%d}.{format}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/overdue", response_model=list[WorkOrderRead])
async def list_overdue(
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.list_overdue(db)


@router.post("/bulk-update", response_model=BulkUpdateResult)
async def bulk_update(
    body: dict,
    auth: AuthContext = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.bulk_update(db, body, auth)


@router.post("/check-duplicate")
async def check_duplicate(
    body: dict,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    existing = await work_orders.check_duplicate(db, body)
    return {
        "is_duplicate": existing is not None,
        "existing": WorkOrderRead.model_validate(existing) if existing else None,
    }


@router.get("/technician/{name}", response_model=WorkOrderPage)
async def by_technician(
    name: str,
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.list_by_assignee(db, "technician", name, status, page, limit)


@router.get("/supervisor/{name}", response_model=WorkOrderPage)
async def by_supervisor(
    name: str,
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.list_by_assignee(db, "supervisor", name, status, page, limit)


@router.get("/{wo_id}", response_model=WorkOrderRead)
async def get_work_order(
    wo_id: str,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Look up by id or by work order number."""
    return await work_orders.get_work_order(db, wo_id)


@router.put("/{wo_id}", response_model=WorkOrderRead)
async def update_work_order(
    wo_id: str,
    body: dict,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.update_work_order(db, wo_id, body, auth)


@router.patch("/{wo_id}/status", response_model=WorkOrderRead)
async def update_status(
    wo_id: str,
    body: dict,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.update_status(db, wo_id, body, auth)


@router.delete("/{wo_id}")
async def delete_work_order(
    wo_id: str,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    wo = await work_orders.soft_delete(db, wo_id, auth)
    return {"deleted": wo.id, "work_order_number": wo.work_order_number}


@router.post("/{wo_id}/attachments", response_model=WorkOrderRead)
async def add_attachment(
    wo_id: str,
    body: dict,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await work_orders.add_attachment(db, wo_id, body, auth)
