"""Work order model: a scheduled site visit tracked through its lifecycle.

Supervisor and technician are free-text names, not references to users.
Domain dates (visit, completion, reschedule) are naive wall-clock values as
entered; audit timestamps are UTC.
"""

from __future__ import annotations

import math
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, ULIDMixin

TERMINAL_STATUSES = ("Completed", "Cancelled")


class WorkOrder(Base, ULIDMixin, TimestampMixin):
    __tablename__ = "work_orders"

    work_order_number: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    visit_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    work_order_type: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    area: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    area_code: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)

    supervisor: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    technician: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    agent_name: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    hours: Mapped[float] = mapped_column(Float, default=0)

    work_order_status: Mapped[str] = mapped_column(String(30), default="Pending", index=True)
    job_status: Mapped[str] = mapped_column(String(20), default="Not Attend", index=True)
    distribution: Mapped[str] = mapped_column(String(50), default="", index=True)
    completion_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reschedule_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    attachments: Mapped[list] = mapped_column(JSON, default=list)

    created_by: Mapped[str | None] = mapped_column(String(26), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(26), nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(26), nullable=True)

    __table_args__ = (
        Index("ix_work_orders_status_visit", "work_order_status", "visit_date"),
        Index("ix_work_orders_supervisor_visit", "supervisor", "visit_date"),
        Index("ix_work_orders_technician_visit", "technician", "visit_date"),
        Index("ix_work_orders_area_area_code", "area", "area_code"),
        Index("ix_work_orders_deleted_created", "is_deleted", "created_at"),
    )

    @property
    def is_overdue(self) -> bool:
        if self.work_order_status in TERMINAL_STATUSES or self.visit_date is None:
            return False
        return self.visit_date < datetime.now()

    @property
    def days_until_due(self) -> int | None:
        if self.work_order_status in TERMINAL_STATUSES or self.visit_date is None:
            return None
        diff = self.visit_date - datetime.now()
        return math.ceil(diff.total_seconds() / 86400)
