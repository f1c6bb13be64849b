"""Work order lifecycle: create, update, status changes, soft delete, bulk update.

Single creates and bulk-import rows both go through ``create_work_order`` so
they share one validation path.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, time, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.db import crud
from app.exceptions import FieldError, NotFoundError, ValidationFailed, WorkOrderError
from app.models import WorkOrder
from app.schemas.work_order import (
    AttachmentCreate, BulkUpdateFailure, BulkUpdateRequest, BulkUpdateResult,
    DuplicateCheck, Pagination, StatusUpdate, WorkOrderCreate, WorkOrderFilters,
    WorkOrderPage, WorkOrderRead, WorkOrderUpdate,
)
from app.services.auth import AuthContext
from app.services.numbering import generate_work_order_number, local_now
from app.services.query_builder import build_conditions, build_order_by
from app.services.status_machine import ensure_transition, is_fsm_managed

logger = logging.getLogger(__name__)

_settings = get_settings()

# Columns that may not be nulled by an update.
_NON_NULLABLE = ("work_order_status", "job_status", "hours", "distribution")


def calculate_distribution(supervisor: str | None, technician: str | None, status: str | None) -> str:
    """Distribution label derived from assignment and status."""
    if (supervisor or "").strip() and (technician or "").strip():
        return "Pending Distribution" if status == "Pending" else "Distributed"
    return "Not Distributed"


def _parse(schema: type[BaseModel], data: dict) -> Any:
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed.from_pydantic(exc)


def _wall_clock(now: datetime | None) -> datetime:
    return local_now(now).replace(tzinfo=None)


def check_date_rules(
    visit_date: datetime | None,
    completion_date: datetime | None,
    now: datetime,
    check_visit_age: bool = True,
) -> list[FieldError]:
    errors = []
    max_age = _settings.work_orders.max_visit_age_days
    if check_visit_age and visit_date and max_age > 0:
        if visit_date < now - timedelta(days=max_age):
            errors.append(FieldError(
                "visit_date", f"Visit date cannot be more than {max_age} days in the past",
            ))
    if visit_date and completion_date and completion_date < visit_date:
        errors.append(FieldError("completion_date", "Completion date cannot be before visit date"))
    return errors


def _stamp_completion(wo: WorkOrder, now: datetime) -> None:
    if wo.work_order_status == "Completed" and wo.completion_date is None:
        wo.completion_date = now


# ── Create / read ─────────────────────────────────────────

async def create_work_order(
    db: AsyncSession,
    data: dict,
    actor: AuthContext,
    now: datetime | None = None,
) -> WorkOrder:
    payload: WorkOrderCreate = _parse(WorkOrderCreate, data)
    fields = payload.model_dump(exclude_none=True)
    wall = _wall_clock(now)

    errors = check_date_rules(fields.get("visit_date"), fields.get("completion_date"), wall)
    if errors:
        raise ValidationFailed("Validation failed", errors)

    number = fields.pop("work_order_number", None)
    if not number:
        number = await generate_work_order_number(db, now)

    fields.setdefault("work_order_status", "Pending")
    fields.setdefault("job_status", "Not Attend")
    if "distribution" not in fields:
        fields["distribution"] = calculate_distribution(
            fields.get("supervisor"), fields.get("technician"), fields["work_order_status"],
        )
    if fields["work_order_status"] == "Completed" and "completion_date" not in fields:
        fields["completion_date"] = wall

    created_at = local_now(now).astimezone(timezone.utc)
    wo = await crud.create_work_order(
        db,
        work_order_number=number,
        created_by=actor.user_id,
        updated_by=actor.user_id,
        created_at=created_at,
        updated_at=created_at,
        **fields,
    )
    logger.info("Created work order %s (%s)", wo.work_order_number, wo.id)
    return wo


async def get_work_order(db: AsyncSession, id_or_number: str) -> WorkOrder:
    """Fetch by id, falling back to the work order number."""
    wo = await crud.get_work_order(db, id_or_number)
    if wo is None:
        wo = await crud.get_work_order_by_number(db, id_or_number)
    if wo is None:
        raise NotFoundError("Work order not found")
    return wo


async def _get_by_id(db: AsyncSession, wo_id: str) -> WorkOrder:
    wo = await crud.get_work_order(db, wo_id)
    if wo is None:
        raise NotFoundError("Work order not found")
    return wo


def _paginate(total: int, page: int, limit: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        items_per_page=limit,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def _page_window(page: int, limit: int | None) -> tuple[int, int]:
    cfg = _settings.work_orders
    limit = min(max(limit or cfg.default_page_size, 1), cfg.max_page_size)
    page = max(page, 1)
    return page, limit


async def list_work_orders(
    db: AsyncSession,
    filters: WorkOrderFilters | None = None,
    page: int = 1,
    limit: int | None = None,
    sort_by: str = "visit_date",
    sort_order: str = "desc",
) -> WorkOrderPage:
    page, limit = _page_window(page, limit)
    conditions = build_conditions(filters)
    items = await crud.find_work_orders(
        db, conditions, build_order_by(sort_by, sort_order), skip=(page - 1) * limit, limit=limit,
    )
    total = await crud.count_work_orders(db, conditions)
    return WorkOrderPage(
        items=[WorkOrderRead.model_validate(wo) for wo in items],
        pagination=_paginate(total, page, limit),
    )


async def list_by_assignee(
    db: AsyncSession,
    role: str,
    name: str,
    status: str | None = None,
    page: int = 1,
    limit: int | None = None,
) -> WorkOrderPage:
    """Work orders whose supervisor/technician name matches exactly."""
    if role == "technician":
        filters = WorkOrderFilters(technician=name, status=status)
    else:
        filters = WorkOrderFilters(supervisor=name, status=status)
    return await list_work_orders(db, filters, page, limit)


async def list_overdue(db: AsyncSession, now: datetime | None = None) -> list[WorkOrder]:
    now = _wall_clock(now)
    return await crud.find_work_orders(
        db,
        build_conditions() + [
            WorkOrder.visit_date < now,
            WorkOrder.work_order_status.not_in(("Completed", "Cancelled")),
        ],
        order_by=[WorkOrder.visit_date.asc()],
    )


async def find_duplicate(db: AsyncSession, check: DuplicateCheck) -> WorkOrder | None:
    """An open work order for the same customer and phone on the same visit day."""
    day = datetime.combine(check.visit_date.date(), time.min)
    conditions = build_conditions() + [
        WorkOrder.customer_name == check.customer_name,
        WorkOrder.customer_phone == check.customer_phone,
        WorkOrder.visit_date >= day,
        WorkOrder.visit_date < day + timedelta(days=1),
        WorkOrder.work_order_status.not_in(("Cancelled", "Completed")),
    ]
    if check.exclude_id:
        conditions.append(WorkOrder.id != check.exclude_id)
    return await crud.find_work_order(db, *conditions)


async def check_duplicate(db: AsyncSession, data: dict) -> WorkOrder | None:
    return await find_duplicate(db, _parse(DuplicateCheck, data))


# ── Mutations ─────────────────────────────────────────────

def _apply_updates(wo: WorkOrder, updates: dict, actor: AuthContext, now: datetime) -> None:
    """Validate then apply ``updates``; nothing is mutated if validation fails."""
    updates = {
        k: v for k, v in updates.items()
        if not (v is None and k in _NON_NULLABLE)
    }

    requested = updates.get("work_order_status")
    if requested and is_fsm_managed(wo.work_order_status, requested):
        ensure_transition(wo.work_order_status, requested)

    errors = check_date_rules(
        updates.get("visit_date", wo.visit_date),
        updates.get("completion_date", wo.completion_date),
        now,
        check_visit_age="visit_date" in updates,
    )
    if errors:
        raise ValidationFailed("Validation failed", errors)

    for key, value in updates.items():
        setattr(wo, key, value)

    if "distribution" not in updates and updates.keys() & {"supervisor", "technician", "work_order_status"}:
        wo.distribution = calculate_distribution(wo.supervisor, wo.technician, wo.work_order_status)

    _stamp_completion(wo, now)
    wo.updated_by = actor.user_id


async def update_work_order(
    db: AsyncSession,
    wo_id: str,
    data: dict,
    actor: AuthContext,
    now: datetime | None = None,
) -> WorkOrder:
    if data.get("work_order_number"):
        raise ValidationFailed("Validation failed", [
            FieldError("work_order_number", "Work order number cannot be changed"),
        ])
    payload: WorkOrderUpdate = _parse(WorkOrderUpdate, data)
    wo = await _get_by_id(db, wo_id)

    _apply_updates(wo, payload.model_dump(exclude_unset=True), actor, _wall_clock(now))
    return await crud.save_work_order(db, wo)


async def update_status(
    db: AsyncSession,
    wo_id: str,
    data: dict,
    actor: AuthContext,
    now: datetime | None = None,
) -> WorkOrder:
    payload: StatusUpdate = _parse(StatusUpdate, data)
    wo = await _get_by_id(db, wo_id)

    if payload.work_order_status and payload.work_order_status != wo.work_order_status:
        ensure_transition(wo.work_order_status, payload.work_order_status)

    if payload.work_order_status:
        wo.work_order_status = payload.work_order_status
    if payload.job_status:
        wo.job_status = payload.job_status
    if payload.remarks:
        wo.remarks = payload.remarks
    if payload.completion_date:
        wo.completion_date = payload.completion_date

    _stamp_completion(wo, _wall_clock(now))
    wo.updated_by = actor.user_id
    return await crud.save_work_order(db, wo)


async def soft_delete(db: AsyncSession, wo_id: str, actor: AuthContext) -> WorkOrder:
    wo = await _get_by_id(db, wo_id)
    wo.is_deleted = True
    wo.deleted_at = datetime.now(timezone.utc)
    wo.deleted_by = actor.user_id
    wo.updated_by = actor.user_id
    wo = await crud.save_work_order(db, wo)
    logger.info("Soft-deleted work order %s", wo.work_order_number)
    return wo


async def add_attachment(
    db: AsyncSession, wo_id: str, data: dict, actor: AuthContext,
) -> WorkOrder:
    attachment: AttachmentCreate = _parse(AttachmentCreate, data)
    wo = await _get_by_id(db, wo_id)
    wo.attachments = [*(wo.attachments or []), {
        "url": attachment.url,
        "filename": attachment.filename,
        "uploaded_at": datetime.now(timezone.utc).isoformat(),
        "uploaded_by": actor.user_id,
    }]
    wo.updated_by = actor.user_id
    return await crud.save_work_order(db, wo)


async def bulk_update(
    db: AsyncSession,
    data: dict,
    actor: AuthContext,
    now: datetime | None = None,
) -> BulkUpdateResult:
    """Apply the same updates to many work orders; each record succeeds or fails alone."""
    request: BulkUpdateRequest = _parse(BulkUpdateRequest, data)
    updates = _parse(WorkOrderUpdate, request.updates).model_dump(exclude_unset=True)
    wall = _wall_clock(now)

    result = BulkUpdateResult()
    for wo_id in request.work_order_ids:
        try:
            wo = await _get_by_id(db, wo_id)
            _apply_updates(wo, dict(updates), actor, wall)
            await crud.save_work_order(db, wo)
        except WorkOrderError as exc:
            # Discard any half-applied state before the next record.
            await db.rollback()
            result.failed_count += 1
            result.failed.append(BulkUpdateFailure(id=wo_id, reason=exc.message))
            continue
        result.success_count += 1
        result.success_ids.append(wo_id)

    logger.info(
        "Bulk update by %s: %d succeeded, %d failed",
        actor.user_id, result.success_count, result.failed_count,
    )
    return result
