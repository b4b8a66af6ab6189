import json
import logging
from typing import Any, Dict, List, Union
from fastapi import WebSocket
from pydantic import BaseModel

logger = logging.getLogger(__name__)


def _encode(message_type: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return json.dumps({"type": message_type, "data": data}, default=str)


class ConnectionManager:
    """Manages WebSocket clients of the drive view and pushes state to them"""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        """Accept and store a new WebSocket connection"""
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.debug(f"WebSocket client connected ({len(self.active_connections)} active)")

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection"""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def send(self, websocket: WebSocket, message_type: str, data: Union[BaseModel, Dict[str, Any]]):
        """Send a message to one client, e.g. the current state on connect"""
        await websocket.send_text(_encode(message_type, data))

    async def broadcast(self, message_type: str, data: Union[BaseModel, Dict[str, Any]]):
        """Broadcast a message to all connected clients"""
        message_json = _encode(message_type, data)

        disconnected = []
        for connection in self.active_connections:
            try:
                await connection.send_text(message_json)
            except Exception as e:
                logger.debug(f"Dropping WebSocket client after failed send: {e}")
                disconnected.append(connection)

        for connection in disconnected:
            self.active_connections.remove(connection)


# Global connection manager instance
manager = ConnectionManager()
