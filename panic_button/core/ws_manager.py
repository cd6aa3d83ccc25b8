"""WebSocket connection manager for button phase events."""

import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks WebSocket connections watching the panic button."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        logger.info("WS connected (total=%s)", self.total_connections)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)
        logger.info("WS disconnected (total=%s)", self.total_connections)

    async def send(self, websocket: WebSocket, event: str, data: Any) -> None:
        await websocket.send_text(json.dumps({"event": event, "data": data}, default=str))

    async def broadcast(self, event: str, data: Any) -> None:
        """Send event to every connection, dropping the ones that fail."""
        payload = json.dumps({"event": event, "data": data}, default=str)
        dead: list[WebSocket] = []
        for ws in list(self._connections):
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self._connections.discard(ws)

    @property
    def total_connections(self) -> int:
        return len(self._connections)


# Singleton instance used across the app
ws_manager = ConnectionManager()
