"""WebSocket connection manager for live import progress."""

from __future__ import annotations

import json
import logging

from fastapi import WebSocket

from app.schemas.import_report import ImportReport
from app.schemas.ws_messages import WSMessage

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self._connections: dict[str, list[WebSocket]] = {}

    async def connect(self, import_id: str, websocket: WebSocket):
        await websocket.accept()
        self._connections.setdefault(import_id, []).append(websocket)

    def disconnect(self, import_id: str, websocket: WebSocket):
        conns = self._connections.get(import_id, [])
        if websocket in conns:
            conns.remove(websocket)
        if not conns:
            self._connections.pop(import_id, None)

    async def broadcast(self, import_id: str, message: WSMessage):
        """Send a message to every client watching an import."""
        conns = self._connections.get(import_id, [])
        payload = json.dumps(message.model_dump(mode="json"))
        dead = []
        for ws in conns:
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            logger.debug("Dropping dead websocket for import %s", import_id)
            self.disconnect(import_id, ws)


ws_manager = ConnectionManager()


async def publish_progress(report: ImportReport) -> None:
    """Progress callback for import jobs."""
    event = "import_finished" if report.status in ("completed", "cancelled", "failed") else "import_progress"
    await ws_manager.broadcast(
        report.import_id,
        WSMessage(event=event, import_id=report.import_id, data=report.model_dump(mode="json")),
    )
