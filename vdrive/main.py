import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from vdrive.config import settings, setup_logging
from vdrive.errors import DriveError
from vdrive.routers.drive import router as drive_router
from vdrive.services.session import drive_session
from vdrive.websocket import manager

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """List the home location on startup, release the remote client on shutdown."""
    logger.info(f"Starting vdrive at {drive_session.home}")
    try:
        await drive_session.navigation.refresh()
    except DriveError as e:
        logger.error(f"Initial listing of {drive_session.home} failed: {e.code}: {e.message}")

    yield

    logger.info("Shutting down vdrive")
    await drive_session.close()


app = FastAPI(title="vdrive", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(drive_router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Push navigation state and failed operations to the drive view"""
    await manager.connect(websocket)
    await manager.send(websocket, "navigation", drive_session.navigation.snapshot())
    try:
        while True:
            # Clients only listen; incoming text keeps the connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
