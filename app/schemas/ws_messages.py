from __future__ import annotations
from typing import Any
from pydantic import BaseModel


class WSMessage(BaseModel):
    event: str  # import_progress | import_finished | error
    import_id: str = ""
    data: dict[str, Any] = {}
