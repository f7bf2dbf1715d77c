"""Main entry point for the Gemini chatbot API."""
import logging
from typing import List, Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, SESSION_TIMEOUT_SECONDS
from logger import setup_logging
from models.api import (
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
from models.session import Session
from services.chatbot import (
    ChatContext,
    build_context,
    process_message,
    clear_conversation_history,
    export_conversation,
    clean_old_logs,
    health_check,
)
from services.errors import ConfigError, InvalidInputError
from services import sessions

# Initialize logging
if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Gemini Chatbot",
    description="Conversational chatbot with cached history on top of the Gemini API",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialized on startup
chat_context: ChatContext = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global chat_context

    logger.info("Initializing chatbot services...")
    try:
        chat_context = build_context()
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Write any chat log records still buffered."""
    if chat_context is not None:
        chat_context.chat_log.flush()


def _session_response(session: Session) -> SessionResponse:
    return SessionResponse(**session.to_dict())


@app.get("/")
async def root():
    """Liveness endpoint."""
    return {"status": "ok", "message": "Gemini Chatbot API"}


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """Detailed health check of every collaborator."""
    return HealthResponse(**health_check(chat_context))


@app.get("/metrics")
def metrics():
    """Performance counters since process start."""
    return chat_context.metrics.to_dict()


@app.post("/message", response_model=MessageResponse)
def message_endpoint(request: MessageRequest) -> MessageResponse:
    """
    Answer a chat message.

    Upstream AI failures come back as a normal reply carrying a friendly
    message; only invalid input (400) and missing configuration (500)
    are reported as HTTP errors.
    """
    try:
        reply = process_message(chat_context, request.user_id, request.message)
        return MessageResponse(reply=reply, user_id=request.user_id)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/history", response_model=ClearResponse)
def clear_history_endpoint(user_id: Optional[str] = None) -> ClearResponse:
    """Clear one user's conversation history, or everyone's."""
    clear_conversation_history(chat_context, user_id)
    return ClearResponse(status="cleared", user_id=user_id)


@app.get("/export/{user_id}", response_model=ExportResponse)
def export_endpoint(user_id: str, format: str = "json") -> ExportResponse:
    """Export a user's conversation as json, csv or text."""
    try:
        result = export_conversation(chat_context, user_id, format)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ExportResponse(**result.to_dict())


@app.post("/logs/cleanup", response_model=LogCleanupResponse)
def cleanup_logs_endpoint(days: int) -> LogCleanupResponse:
    """Delete chat log records older than `days` days."""
    try:
        counts = clean_old_logs(chat_context, days)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return LogCleanupResponse(**counts)


@app.post("/sessions", response_model=SessionResponse)
def create_session_endpoint(request: SessionCreateRequest) -> SessionResponse:
    try:
        session = sessions.create_session(
            chat_context.session_storage,
            request.user_id,
            metadata=request.metadata,
            now=chat_context.now()
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _session_response(session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session_endpoint(session_id: str) -> SessionResponse:
    session = sessions.get_session(chat_context.session_storage, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return _session_response(session)


@app.get("/users/{user_id}/sessions", response_model=List[SessionResponse])
def user_sessions_endpoint(user_id: str) -> List[SessionResponse]:
    return [
        _session_response(s)
        for s in sessions.user_sessions(chat_context.session_storage, user_id)
    ]


@app.get("/sessions/{session_id}/export")
def export_session_endpoint(session_id: str):
    exported = sessions.export_session(
        chat_context.session_storage,
        chat_context.history_store,
        session_id,
        now=chat_context.now()
    )
    if exported is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"data": exported}


@app.post("/sessions/import", response_model=SessionResponse)
def import_session_endpoint(request: SessionImportRequest) -> SessionResponse:
    try:
        session = sessions.import_session(
            chat_context.session_storage,
            chat_context.history_store,
            request.data,
            now=chat_context.now()
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _session_response(session)


@app.post("/sessions/cleanup", response_model=CleanupResponse)
def cleanup_sessions_endpoint() -> CleanupResponse:
    expired = sessions.expire_timed_out_sessions(
        chat_context.session_storage,
        SESSION_TIMEOUT_SECONDS,
        now=chat_context.now()
    )
    return CleanupResponse(expired=expired)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Gemini Chatbot API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
