from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel


class ImportRowIssue(BaseModel):
    row: int | None  # None for file-level problems
    message: str


class ImportSkip(BaseModel):
    row: int
    reason: str


class ImportReport(BaseModel):
    import_id: str
    filename: str = ""
    status: str = "pending"  # pending | running | completed | cancelled | failed
    cancelled: bool = False
    total: int = 0
    processed: int = 0
    success_count: int = 0
    errors: list[ImportRowIssue] = []
    warnings: list[ImportRowIssue] = []
    skipped: list[ImportSkip] = []
    started_at: datetime | None = None
    finished_at: datetime | None = None
