# migrant-health-be/realtime.py
import logging
from typing import Any, List, Optional

from fastapi import WebSocket

logger = logging.getLogger("uvicorn.error")

HEALTH_DATA_UPDATE = "health_data_update"


class ConnectionManager:
    """Keeps the open dashboard sockets and fans events out to them.

    Frames are ``{"event": <name>, "data": <payload>}``. A socket that fails a
    send is dropped; it catches up on its next refetch.
    """

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info("Node connected (%d open)", len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info("Node disconnected (%d open)", len(self.active_connections))

    async def send(self, websocket: WebSocket, event: str, data: Any = None):
        await websocket.send_json({"event": event, "data": data})

    async def broadcast(self, event: str, data: Any = None):
        for websocket in list(self.active_connections):
            try:
                await self.send(websocket, event, data)
            except Exception:
                logger.warning("Dropping socket after failed send of %s", event)
                self.disconnect(websocket)


manager = ConnectionManager()


async def notify_data_changed(event: Optional[str] = None, data: Any = None):
    # specific event first, then the generic refetch signal every dashboard listens for
    if event:
        await manager.broadcast(event, data)
    await manager.broadcast(HEALTH_DATA_UPDATE)
