"""Bulk work order import: parse → map → normalize → batched create → report.

Rows are created one at a time through ``work_orders.create_work_order`` in
sequential batches. A row failure is recorded on the report and never stops
the import. Cancellation is cooperative and observed between batches.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from ulid import ULID

from app.config import get_settings
from app.exceptions import ImportFileError, WorkOrderError
from app.schemas.import_report import ImportReport, ImportRowIssue, ImportSkip
from app.services import work_orders
from app.services.auth import AuthContext
from app.services.import_normalizer import NormalizedRow, normalize_rows
from app.services.import_parser import ParsedSheet, parse_import_file
from app.services.numbering import local_now

logger = logging.getLogger(__name__)

_settings = get_settings()

ProgressCallback = Callable[[ImportReport], Awaitable[None]]

FINISHED = ("completed", "cancelled", "failed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _describe(exc: WorkOrderError) -> str:
    if not exc.errors:
        return exc.message
    return "; ".join(f"{e.field}: {e.reason}" for e in exc.errors)


def failed_report(filename: str, message: str, import_id: str | None = None) -> ImportReport:
    """Report for an import that never got past parsing."""
    now = _utcnow()
    return ImportReport(
        import_id=import_id or str(ULID()),
        filename=filename,
        status="failed",
        errors=[ImportRowIssue(row=None, message=message)],
        started_at=now,
        finished_at=now,
    )


class ImportJob:
    """One import run over an already-parsed sheet."""

    def __init__(
        self,
        sheet: ParsedSheet,
        actor: AuthContext,
        filename: str = "",
        *,
        batch_size: int | None = None,
        row_timeout: float | None = None,
        min_populated_fields: int | None = None,
        now: datetime | None = None,
    ):
        cfg = _settings.importer
        self.id = str(ULID())
        self.sheet = sheet
        self.actor = actor
        self.batch_size = max(batch_size or cfg.batch_size, 1)
        self.row_timeout = row_timeout or cfg.row_timeout_seconds
        self.min_populated_fields = (
            cfg.min_populated_fields if min_populated_fields is None else min_populated_fields
        )
        self.now = now
        self._cancel = asyncio.Event()
        self.report = ImportReport(import_id=self.id, filename=filename, total=len(sheet.rows))

    @property
    def finished(self) -> bool:
        return self.report.status in FINISHED

    def cancel(self) -> None:
        if not self.finished:
            logger.info("Cancellation requested for import %s", self.id)
        self._cancel.set()

    def progress(self) -> ImportReport:
        return self.report.model_copy(deep=True)

    def fail(self, message: str) -> None:
        self.report.status = "failed"
        self.report.errors.append(ImportRowIssue(row=None, message=message))
        self.report.finished_at = _utcnow()

    def _today(self) -> date:
        return local_now(self.now).date()

    def prepare(self) -> list[NormalizedRow]:
        """Normalize every row, record warnings and skips, return the rows to create."""
        rows = normalize_rows(
            self.sheet.rows,
            self.sheet.headers,
            today=self._today(),
            agent_name=self.actor.display_name or None,
            min_populated_fields=self.min_populated_fields,
        )
        ready = []
        for row in rows:
            if row.warning:
                self.report.warnings.append(ImportRowIssue(row=row.row, message=row.warning))
            if row.skip_reason:
                self.report.skipped.append(ImportSkip(row=row.row, reason=row.skip_reason))
                self.report.warnings.append(
                    ImportRowIssue(row=row.row, message=f"Skipped: {row.skip_reason}")
                )
                continue
            ready.append(row)
        return ready

    async def _create(self, db: AsyncSession, row: NormalizedRow) -> None:
        try:
            await asyncio.wait_for(
                work_orders.create_work_order(db, row.data, self.actor, now=self.now),
                timeout=self.row_timeout,
            )
        except WorkOrderError as exc:
            self._row_error(row.row, _describe(exc))
        except asyncio.TimeoutError:
            await db.rollback()
            self._row_error(row.row, f"Timed out after {self.row_timeout:g}s")
        except SQLAlchemyError as exc:
            await db.rollback()
            self._row_error(row.row, f"Store error: {exc}")
        else:
            self.report.success_count += 1

    def _row_error(self, row: int, message: str) -> None:
        logger.warning("Import %s row %d failed: %s", self.id, row, message)
        self.report.errors.append(ImportRowIssue(row=row, message=message))

    async def _emit(self, on_progress: ProgressCallback | None) -> None:
        if on_progress is not None:
            await on_progress(self.progress())

    async def run(self, db: AsyncSession, on_progress: ProgressCallback | None = None) -> ImportReport:
        report = self.report
        report.status = "running"
        report.started_at = _utcnow()

        ready = self.prepare()
        batches = [ready[i:i + self.batch_size] for i in range(0, len(ready), self.batch_size)]
        logger.info(
            "Import %s: %d rows, %d to create in %d batches, %d skipped",
            self.id, report.total, len(ready), len(batches), len(report.skipped),
        )
        await self._emit(on_progress)

        stopped = False
        for index, batch in enumerate(batches, start=1):
            if self._cancel.is_set():
                stopped = True
                logger.info("Import %s cancelled before batch %d/%d", self.id, index, len(batches))
                break
            for row in batch:
                await self._create(db, row)
            report.processed += len(batch)
            logger.debug("Import %s batch %d/%d done (%d/%d)",
                         self.id, index, len(batches), report.processed, report.total)
            await self._emit(on_progress)

        # Skipped rows only count as processed once the whole sheet was walked.
        if not stopped:
            report.processed += len(report.skipped)
        report.cancelled = stopped
        report.status = "cancelled" if stopped else "completed"
        report.finished_at = _utcnow()
        logger.info(
            "Import %s %s: %d created, %d errors, %d skipped, %d/%d processed",
            self.id, report.status, report.success_count, len(report.errors),
            len(report.skipped), report.processed, report.total,
        )
        await self._emit(on_progress)
        return report


def load_job(
    content: bytes,
    filename: str,
    actor: AuthContext,
    **options,
) -> ImportJob:
    """Parse an upload into a job. Raises ImportFileError if the file is unusable."""
    sheet = parse_import_file(content, filename, max_bytes=_settings.importer.max_upload_bytes)
    return ImportJob(sheet, actor, filename, **options)


async def run_import(
    db: AsyncSession,
    content: bytes,
    filename: str,
    actor: AuthContext,
    on_progress: ProgressCallback | None = None,
    **options,
) -> ImportReport:
    """Parse and import in one call; a parse failure yields a failed report."""
    try:
        job = load_job(content, filename, actor, **options)
    except ImportFileError as exc:
        logger.warning("Import of %s rejected: %s", filename, exc.message)
        return failed_report(filename, exc.message)
    return await job.run(db, on_progress)


# ── Job registry ──────────────────────────────────────────

class ImportJobRegistry:
    """In-process registry of import jobs, bounded by LRU eviction of finished jobs."""

    def __init__(self, max_size: int = 50):
        self._jobs: OrderedDict[str, ImportJob] = OrderedDict()
        self._reports: OrderedDict[str, ImportReport] = OrderedDict()
        self._tasks: dict[str, asyncio.Task] = {}
        self._max_size = max_size

    def __len__(self) -> int:
        return len(self._jobs) + len(self._reports)

    def add(self, job: ImportJob) -> ImportJob:
        self._jobs[job.id] = job
        self._evict()
        return job

    def add_report(self, report: ImportReport) -> None:
        """Keep a report that has no job behind it (rejected uploads)."""
        self._reports[report.import_id] = report
        self._evict()

    def get(self, import_id: str) -> ImportJob | None:
        job = self._jobs.get(import_id)
        if job is not None:
            self._jobs.move_to_end(import_id)
        return job

    def report(self, import_id: str) -> ImportReport | None:
        job = self.get(import_id)
        if job is not None:
            return job.progress()
        return self._reports.get(import_id)

    def start(
        self,
        job: ImportJob,
        session_factory: async_sessionmaker,
        on_progress: ProgressCallback | None = None,
    ) -> asyncio.Task:
        """Run ``job`` in the background on its own session."""
        self.add(job)

        async def _run():
            try:
                async with session_factory() as db:
                    await job.run(db, on_progress)
            except Exception as exc:
                logger.exception("Import %s crashed", job.id)
                job.fail(f"Import aborted: {exc}")
                if on_progress is not None:
                    await on_progress(job.progress())
            finally:
                self._tasks.pop(job.id, None)
                self._evict()

        task = asyncio.create_task(_run())
        self._tasks[job.id] = task
        return task

    def _evict(self) -> None:
        while len(self._reports) and len(self) > self._max_size:
            self._reports.popitem(last=False)
        for import_id in list(self._jobs):
            if len(self) <= self._max_size:
                break
            if self._jobs[import_id].finished:
                del self._jobs[import_id]


import_registry = ImportJobRegistry(max_size=_settings.importer.max_retained_jobs)
