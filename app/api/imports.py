"""Bulk import API: template download, upload, progress, cancellation."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.engine import get_db, get_session_factory
from app.dependencies import require_auth
from app.exceptions import ImportFileError
from app.schemas import ImportReport
from app.services.auth import AuthContext
from app.services.export import CSV_MEDIA_TYPE, template_csv
from app.services.importer import failed_report, import_registry, load_job
from app.services.ws_manager import publish_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/work-orders/import", tags=["imports"])


@router.get("/template")
async def download_template(auth: AuthContext = Depends(require_auth)):
    return Response(
        content=template_csv(),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="work-orders-template.csv"'},
    )


@router.post("", response_model=ImportReport, status_code=202)
async def upload_import(
    file: UploadFile = File(...),
    wait: bool = Query(default=False),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Start an import. With ``wait=true`` the import runs inline and the final report is returned."""
    content = await file.read()
    filename = file.filename or ""
    try:
        job = load_job(content, filename, auth)
    except ImportFileError as exc:
        logger.warning("Rejected import upload %s: %s", filename, exc.message)
        report = failed_report(filename, exc.message)
        import_registry.add_report(report)
        return JSONResponse(status_code=exc.status_code, content=report.model_dump(mode="json"))

    logger.info("Import %s of %s started by %s (%d rows)", job.id, filename, auth.email, job.report.total)
    if wait:
        import_registry.add(job)
        report = await job.run(db, publish_progress)
        return JSONResponse(status_code=200, content=report.model_dump(mode="json"))

    import_registry.start(job, session_factory, publish_progress)
    return job.progress()


@router.get("/{import_id}", response_model=ImportReport)
async def import_progress(import_id: str, auth: AuthContext = Depends(require_auth)):
    report = import_registry.report(import_id)
    if report is None:
        raise HTTPException(404, "Import not found")
    return report


@router.post("/{import_id}/cancel", response_model=ImportReport)
async def cancel_import(import_id: str, auth: AuthContext = Depends(require_auth)):
    job = import_registry.get(import_id)
    if job is None:
        raise HTTPException(404, "Import not found")
    job.cancel()
    return job.progress()
