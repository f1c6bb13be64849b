"""Pydantic request/response schemas."""

from app.schemas.work_order import (
    WorkOrderCreate, WorkOrderUpdate, WorkOrderRead, WorkOrderFilters, WorkOrderPage,
    StatusUpdate, BulkUpdateRequest, BulkUpdateResult, AttachmentCreate, DuplicateCheck,
    WorkOrderStatistics, Pagination,
)
from app.schemas.import_report import ImportReport, ImportRowIssue, ImportSkip
from app.schemas.ws_messages import WSMessage

__all__ = [
    "WorkOrderCreate", "WorkOrderUpdate", "WorkOrderRead", "WorkOrderFilters", "WorkOrderPage",
    "StatusUpdate", "BulkUpdateRequest", "BulkUpdateResult", "AttachmentCreate", "DuplicateCheck",
    "WorkOrderStatistics", "Pagination",
    "ImportReport", "ImportRowIssue", "ImportSkip",
    "WSMessage",
]
