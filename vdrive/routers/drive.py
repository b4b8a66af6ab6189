import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from vdrive.errors import (
    AlreadyExists,
    DriveError,
    InvalidPath,
    InvalidSegment,
    MalformedAddress,
    NameCollision,
    NotFound,
    RemoteUnavailable,
)
from vdrive.schemas.events import (
    NameRequest,
    NavigateRequest,
    OperationFailed,
    OperationResult,
    RenameRequest,
)
from vdrive.schemas.filesystem import Entry, FileEntry, FolderEntry, NavigationState, TaggedEntry
from vdrive.services.session import drive_session
from vdrive.websocket import manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive", tags=["drive"])

# HTTP status for each domain error surfaced to the presentation layer
ERROR_STATUS = {
    MalformedAddress: 400,
    InvalidSegment: 400,
    InvalidPath: 404,
    NotFound: 404,
    AlreadyExists: 409,
    NameCollision: 409,
    RemoteUnavailable: 503,
}


async def broadcast_state():
    await manager.broadcast("navigation", drive_session.navigation.snapshot())


async def _failure(operation: str, error: DriveError, entry_id: Optional[str] = None) -> HTTPException:
    """Report a failed trigger to WebSocket clients and build the HTTP error"""
    status_code = ERROR_STATUS.get(type(error), 500)
    logger.info(f"{operation} failed with {error.code} ({status_code}): {error.message}")

    failed = OperationFailed(
        operation=operation,
        error=error.code,
        message=error.message,
        location=drive_session.navigation.location.render(),
        entry_id=entry_id,
    )
    await manager.broadcast("operation_failed", failed)
    # Rename conflicts and failed fetches change navigation state too
    await broadcast_state()
    return HTTPException(status_code=status_code, detail=error.to_dict())


def _listed_entry(entry_id: str) -> Entry:
    listing = drive_session.navigation.snapshot().listing
    entry = listing.find(entry_id) if listing is not None else None
    if entry is None:
        raise NotFound(f"Entry {entry_id} is not in the current listing")
    return entry


@router.get("", response_model=NavigationState)
async def get_state():
    """
    Current location and its listing
    """
    return drive_session.navigation.snapshot()


@router.get("/breadcrumbs", response_model=list[str])
async def get_breadcrumbs():
    """
    Ancestors of the current location, root first
    """
    return [address.render() for address in drive_session.navigation.breadcrumbs()]


@router.post("/navigate", response_model=NavigationState)
async def navigate(request: NavigateRequest):
    """
    Move to an address and list it
    """
    try:
        await drive_session.navigation.navigate_to(request.address)
    except DriveError as e:
        raise await _failure("navigate", e)
    await broadcast_state()
    return drive_session.navigation.snapshot()


@router.post("/refresh", response_model=NavigationState)
async def refresh():
    """
    Re-list the current location
    """
    try:
        await drive_session.navigation.refresh()
    except DriveError as e:
        raise await _failure("refresh", e)
    await broadcast_state()
    return drive_session.navigation.snapshot()


@router.post("/files", response_model=FileEntry)
async def create_file(request: NameRequest):
    """
    Create or update a file in the current folder
    """
    try:
        entry = await drive_session.synchronizer.create_file(request.name)
    except DriveError as e:
        raise await _failure("create_file", e)
    await broadcast_state()
    return entry


@router.post("/folders", response_model=FolderEntry)
async def create_folder(request: NameRequest):
    """
    Create a folder in the current folder
    """
    try:
        entry = await drive_session.synchronizer.create_folder(request.name)
    except DriveError as e:
        raise await _failure("create_folder", e)
    await broadcast_state()
    return entry


@router.patch("/entries/{entry_id}", response_model=TaggedEntry)
async def rename_entry(entry_id: str, request: RenameRequest):
    """
    Rename a file or folder of the current listing
    """
    try:
        entry = await drive_session.synchronizer.rename(_listed_entry(entry_id), request.new_name)
    except DriveError as e:
        raise await _failure("rename", e, entry_id)
    await broadcast_state()
    return entry


@router.delete("/entries/{entry_id}", response_model=OperationResult)
async def delete_entry(entry_id: str):
    """
    Delete a file or folder of the current listing
    """
    try:
        await drive_session.synchronizer.delete(_listed_entry(entry_id))
    except DriveError as e:
        raise await _failure("delete", e, entry_id)
    await broadcast_state()
    return OperationResult()
