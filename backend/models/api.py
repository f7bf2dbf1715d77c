"""API request and response models."""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class MessageRequest(BaseModel):
    """Incoming chat message."""
    user_id: str = Field(..., description="Identifier of the chatting user")
    message: str = Field(..., description="Message text")


class MessageResponse(BaseModel):
    """Reply shown to the user."""
    reply: str
    user_id: str


class ClearResponse(BaseModel):
    status: str
    user_id: Optional[str] = None


class ExportResponse(BaseModel):
    """Rendered conversation export."""
    success: bool = True
    format: str
    content: str
    mime_type: str
    filename: str


class SessionCreateRequest(BaseModel):
    user_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionImportRequest(BaseModel):
    data: str = Field(..., description="JSON produced by the session export endpoint")


class SessionResponse(BaseModel):
    id: str
    user_id: str
    start_time: str
    last_activity: str
    message_count: int
    token_count: int
    metadata: Dict[str, Any]
    status: str
    import_date: Optional[str] = None


class CleanupResponse(BaseModel):
    expired: int


class HealthResponse(BaseModel):
    status: str
    checks: Dict[str, Any]


class LogCleanupResponse(BaseModel):
    deleted: int
    kept: int
