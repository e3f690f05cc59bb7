from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from app.schemas.ws import WsEvent

logger = logging.getLogger(__name__)


class ConnectionManager:
    """按项目 ID 分组的 WebSocket 连接，推送实体/阶段变化"""

    def __init__(self) -> None:
        self._conns: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, project_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._conns[project_id].add(websocket)

    async def disconnect(self, project_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            if project_id in self._conns:
                self._conns[project_id].discard(websocket)
                if not self._conns[project_id]:
                    self._conns.pop(project_id, None)

    async def send_event(self, project_id: str, event: dict[str, Any] | WsEvent) -> None:
        if isinstance(event, dict):
            try:
                event = WsEvent.model_validate(event)
            except ValidationError:
                # 推送失败不能影响正在执行的流水线
                logger.error("Dropping invalid event %r for project %s", event.get("type"), project_id, exc_info=True)
                return
        payload = event.model_dump()
        conns = list(self._conns.get(project_id, set()))
        for ws in conns:
            if ws.client_state != WebSocketState.CONNECTED:
                continue
            try:
                await ws.send_json(payload)
            except Exception:
                logger.debug("Dropping dead websocket for project %s", project_id, exc_info=True)
                await self.disconnect(project_id, ws)


ws_manager = ConnectionManager()
