from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from app.services.status_machine import (
    ALL_STATUSES,
    FSM_STATUSES,
    JOB_STATUSES,
    REMARKS_REQUIRED,
)

RESTRICTED_BULK_FIELDS = ("work_order_number", "created_by", "created_at")


def coerce_datetime(value: Any) -> datetime | None:
    """Accept datetimes, dates and ISO strings; return a naive datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return datetime.combine(date.fromisoformat(text), time.min)
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid date format: {value!r}")
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed
    raise ValueError(f"Invalid date format: {value!r}")


class WorkOrderFields(BaseModel):
    """Mutable work order fields shared by create, update and import rows."""

    visit_date: datetime | None = None
    work_order_type: str | None = Field(default=None, max_length=100)
    customer_name: str | None = Field(default=None, min_length=2, max_length=200)
    customer_phone: str | None = Field(default=None, max_length=50)
    area: str | None = Field(default=None, max_length=100)
    area_code: str | None = Field(default=None, max_length=20)
    supervisor: str | None = Field(default=None, min_length=2, max_length=100)
    technician: str | None = Field(default=None, min_length=2, max_length=100)
    agent_name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    hours: float | None = Field(default=None, ge=0, le=100)
    work_order_status: str | None = None
    job_status: str | None = None
    distribution: str | None = Field(default=None, max_length=50)
    completion_date: datetime | None = None
    reschedule_date: datetime | None = None
    remarks: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "ignore"}

    @field_validator("*", mode="before")
    @classmethod
    def _strip_strings(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("visit_date", "completion_date", "reschedule_date", mode="before")
    @classmethod
    def _parse_dates(cls, v):
        return coerce_datetime(v)

    @field_validator("area_code")
    @classmethod
    def _upper_area_code(cls, v):
        return v.upper() if v else v

    @field_validator("work_order_status")
    @classmethod
    def _known_status(cls, v):
        if v is not None and v not in ALL_STATUSES:
            raise ValueError(f"Work order status must be one of: {', '.join(ALL_STATUSES)}")
        return v

    @field_validator("job_status")
    @classmethod
    def _known_job_status(cls, v):
        if v is not None and v not in JOB_STATUSES:
            raise ValueError(f"Job status must be one of: {', '.join(JOB_STATUSES)}")
        return v


class WorkOrderCreate(WorkOrderFields):
    work_order_number: str | None = Field(default=None, min_length=3, max_length=40)

    @field_validator("work_order_number")
    @classmethod
    def _upper_number(cls, v):
        return v.upper() if v else v


class WorkOrderUpdate(WorkOrderFields):
    pass


class StatusUpdate(BaseModel):
    work_order_status: str | None = None
    job_status: str | None = None
    remarks: str | None = Field(default=None, max_length=2000)
    completion_date: datetime | None = None

    @field_validator("completion_date", mode="before")
    @classmethod
    def _parse_completion(cls, v):
        return coerce_datetime(v)

    @field_validator("work_order_status")
    @classmethod
    def _fsm_status(cls, v):
        if v is not None and v not in FSM_STATUSES:
            raise ValueError(f"Work order status must be one of: {', '.join(FSM_STATUSES)}")
        return v

    @field_validator("job_status")
    @classmethod
    def _known_job_status(cls, v):
        if v is not None and v not in JOB_STATUSES:
            raise ValueError(f"Job status must be one of: {', '.join(JOB_STATUSES)}")
        return v

    @model_validator(mode="after")
    def _check_requirements(self):
        if not self.work_order_status and not self.job_status:
            raise ValueError("Either work_order_status or job_status must be provided")
        if self.work_order_status in REMARKS_REQUIRED and not (self.remarks or "").strip():
            raise ValueError(
                "Remarks are required for Rescheduled or On Hold status"
            )
        return self


class BulkUpdateRequest(BaseModel):
    work_order_ids: list[str] = Field(min_length=1)
    updates: dict[str, Any] = Field(min_length=1)

    @field_validator("updates")
    @classmethod
    def _no_restricted_fields(cls, v):
        blocked = [f for f in RESTRICTED_BULK_FIELDS if f in v]
        if blocked:
            raise ValueError(f"Fields cannot be bulk updated: {', '.join(blocked)}")
        return v


class AttachmentCreate(BaseModel):
    url: str = Field(min_length=1)
    filename: str = Field(min_length=1)


class DuplicateCheck(BaseModel):
    customer_name: str
    customer_phone: str | None = None
    visit_date: datetime
    exclude_id: str | None = None

    @field_validator("visit_date", mode="before")
    @classmethod
    def _parse_visit(cls, v):
        return coerce_datetime(v)


class WorkOrderFilters(BaseModel):
    status: str | None = None
    work_order_type: str | None = None
    distribution: str | None = None
    supervisor: str | None = None
    technician: str | None = None
    area: str | None = None
    area_code: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class WorkOrderRead(BaseModel):
    id: str
    work_order_number: str
    visit_date: datetime | None = None
    work_order_type: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    area: str | None = None
    area_code: str | None = None
    supervisor: str | None = None
    technician: str | None = None
    agent_name: str | None = None
    description: str | None = None
    hours: float = 0
    work_order_status: str
    job_status: str
    distribution: str = ""
    completion_date: datetime | None = None
    reschedule_date: datetime | None = None
    remarks: str | None = None
    attachments: list[dict] = []
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime
    is_overdue: bool = False
    days_until_due: int | None = None

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


class WorkOrderPage(BaseModel):
    items: list[WorkOrderRead]
    pagination: Pagination


class StatusCount(BaseModel):
    status: str | None
    count: int


class TypeCount(BaseModel):
    type: str | None
    count: int


class WorkOrderStatistics(BaseModel):
    total_count: int
    by_status: list[StatusCount]
    by_type: list[TypeCount]
    overdue_count: int
    completion_rate: float
    avg_completion_hours: float
    completed_count: int


class BulkUpdateFailure(BaseModel):
    id: str
    reason: str


class BulkUpdateResult(BaseModel):
    success_count: int = 0
    failed_count: int = 0
    success_ids: list[str] = []
    failed: list[BulkUpdateFailure] = []
