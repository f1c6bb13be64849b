"""Work order numbering: WO<YYYYMMDD><4-digit sequence> per local calendar day."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.models import WorkOrder

logger = logging.getLogger(__name__)


def local_now(now: datetime | None = None) -> datetime:
    """Return an aware local datetime; naive input is taken as local time."""
    if now is None:
        return datetime.now().astimezone()
    return now.astimezone()


def local_day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """UTC bounds of the local calendar day containing ``now``."""
    start = local_now(now).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


async def generate_work_order_number(db: AsyncSession, now: datetime | None = None) -> str:
    """Generate the next number for the local day of ``now``.

    The count-then-insert is not isolated from concurrent creates, so the
    candidate is checked once; on collision a hyphenated variant with the next
    sequence is returned. If that collides too the store's unique constraint
    rejects the insert.
    """
    now = local_now(now)
    day_start, day_end = local_day_bounds(now)
    count = await crud.count_work_orders(
        db, [WorkOrder.created_at >= day_start, WorkOrder.created_at < day_end]
    )

    date_str = now.strftime("%Y%m%d")
    candidate = f"WO{date_str}{count + 1:04d}"
    if not await crud.work_order_number_exists(db, candidate):
        return candidate

    retry = f"WO-{date_str}-{count + 2:04d}"
    logger.warning("Work order number %s already taken, falling back to %s", candidate, retry)
    return retry
