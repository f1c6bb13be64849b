"""CRUD operations: the work order record store and identity lookups."""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, StoreUnavailable
from app.models import User, WorkOrder


# ── WorkOrder: store contract ─────────────────────────────

async def find_work_order(db: AsyncSession, *conditions) -> WorkOrder | None:
    result = await db.execute(select(WorkOrder).where(*conditions).limit(1))
    return result.scalars().first()


async def find_work_orders(
    db: AsyncSession,
    conditions: Sequence,
    order_by: Sequence = (),
    skip: int = 0,
    limit: int | None = None,
) -> list[WorkOrder]:
    stmt = select(WorkOrder).where(*conditions).order_by(*order_by).offset(skip)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def fetch_work_orders(db: AsyncSession, stmt: Select) -> list[WorkOrder]:
    """Run a select built by query_builder.build_work_order_query."""
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_work_orders(db: AsyncSession, conditions: Sequence) -> int:
    result = await db.execute(
        select(func.count()).select_from(WorkOrder).where(*conditions)
    )
    return result.scalar_one()


async def group_count(db: AsyncSession, column, conditions: Sequence) -> list[tuple[Any, int]]:
    """Grouped counts of ``column`` over the matching rows."""
    result = await db.execute(
        select(column, func.count())
        .where(*conditions)
        .group_by(column)
        .order_by(func.count().desc())
    )
    return [(value, count) for value, count in result.all()]


async def create_work_order(db: AsyncSession, **fields) -> WorkOrder:
    wo = WorkOrder(**fields)
    db.add(wo)
    return await _commit(db, wo)


async def save_work_order(db: AsyncSession, wo: WorkOrder) -> WorkOrder:
    """Persist the mutated record (full replace of its mutable fields)."""
    return await _commit(db, wo)


async def _commit(db: AsyncSession, wo: WorkOrder) -> WorkOrder:
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if "work_order_number" in str(exc.orig):
            raise ConflictError(
                f"Work order number {wo.work_order_number} already exists"
            ) from exc
        raise ConflictError("Work order violates a uniqueness constraint") from exc
    except OperationalError as exc:
        await db.rollback()
        raise StoreUnavailable(f"Store unavailable: {exc.orig}") from exc
    await db.refresh(wo)
    return wo


async def get_work_order(db: AsyncSession, wo_id: str) -> WorkOrder | None:
    return await find_work_order(db, WorkOrder.id == wo_id, WorkOrder.is_deleted == False)


async def get_work_order_by_number(db: AsyncSession, number: str) -> WorkOrder | None:
    return await find_work_order(
        db, WorkOrder.work_order_number == number.upper(), WorkOrder.is_deleted == False
    )


async def work_order_number_exists(db: AsyncSession, number: str) -> bool:
    # Soft-deleted rows still hold their number.
    return await find_work_order(db, WorkOrder.work_order_number == number) is not None


# ── Users ─────────────────────────────────────────────────

async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalars().first()


async def create_user(
    db: AsyncSession, email: str, password_hash: str,
    display_name: str = "", role: str = "agent",
) -> User:
    user = User(
        email=email.lower(), password_hash=password_hash,
        display_name=display_name, role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user
