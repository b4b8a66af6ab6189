from typing import Literal, Optional
from pydantic import BaseModel


class NavigateRequest(BaseModel):
    """Address typed or clicked by the user"""
    address: str


class NameRequest(BaseModel):
    """Name of a file or folder to create in the current folder"""
    name: str


class RenameRequest(BaseModel):
    """New name for an entry of the current listing"""
    new_name: str


class OperationFailed(BaseModel):
    """Failed trigger for WebSocket broadcast"""
    type: Literal["operation_failed"] = "operation_failed"
    operation: str
    error: str
    message: str
    location: str
    entry_id: Optional[str] = None


class OperationResult(BaseModel):
    """Response from trigger endpoints without a richer payload"""
    status: str = "ok"
