"""Data models for the Gemini chatbot backend."""
from .conversation import Turn, LogRecord, Conversation, ConversationStore
from .session import Session
from .api import (
    MessageRequest,
    MessageResponse,
    ClearResponse,
    ExportResponse,
    SessionCreateRequest,
    SessionImportRequest,
    SessionResponse,
    CleanupResponse,
    HealthResponse,
    LogCleanupResponse,
)

__all__ = [
    "Turn",
    "LogRecord",
    "Conversation",
    "ConversationStore",
    "Session",
    "MessageRequest",
    "MessageResponse",
    "ClearResponse",
    "ExportResponse",
    "SessionCreateRequest",
    "SessionImportRequest",
    "SessionResponse",
    "CleanupResponse",
    "HealthResponse",
    "LogCleanupResponse",
]
