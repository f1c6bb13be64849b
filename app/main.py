"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.router import api_router
from app.db.engine import create_tables, engine
from app.exceptions import register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Work order service started")
    yield
    await engine.dispose()


app = FastAPI(
    title="Field Service Work Orders",
    description="Work order lifecycle tracking with spreadsheet bulk import and export.",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
