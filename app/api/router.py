"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from app.api.imports import router as imports_router
from app.api.work_orders import router as work_orders_router
from app.api.websocket import router as websocket_router

api_router = APIRouter()
# Before work orders, so /import is not captured by /{wo_id}.
api_router.include_router(imports_router)
api_router.include_router(work_orders_router)
api_router.include_router(websocket_router)
