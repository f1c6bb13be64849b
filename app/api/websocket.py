from __future__ import annotations

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.db.engine import async_session_factory
from app.services.auth import SESSION_COOKIE_NAME, validate_session
from app.services.importer import import_registry
from app.services.ws_manager import ws_manager

router = APIRouter(tags=["websocket"])


@router.websocket("/api/ws/imports/{import_id}")
async def import_progress_socket(
    websocket: WebSocket,
    import_id: str,
    token: str = Query(default=""),
):
    token = token or websocket.cookies.get(SESSION_COOKIE_NAME, "")
    async with async_session_factory() as db:
        user = await validate_session(token, db) if token else None
    if not user:
        await websocket.close(code=4001, reason="Unauthorized")
        return
    if import_registry.get(import_id) is None:
        await websocket.close(code=4004, reason="Import not found")
        return

    await ws_manager.connect(import_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_manager.disconnect(import_id, websocket)
