"""Message orchestration and the chatbot's entry points."""
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo

from models.conversation import (
    Turn,
    LogRecord,
    ROLE_USER,
    ROLE_MODEL,
    ROLE_SYSTEM,
)
from services.cache import CacheService, InMemoryCache
from services.chat_log import ChatLog, JsonlChatLog, SupabaseChatLog
from services.errors import (
    ApiError,
    ConfigError,
    InvalidInputError,
    USER_MESSAGES,
    classify_error,
)
from services.exporter import ExportResult, SUPPORTED_FORMATS, build_export_data, render_export
from services.gemini_client import GeminiClient
from services.history_store import HistoryStore, trim_conversation
from services.metrics import PerformanceMetrics
from services.prompt_source import PromptSource
from services.property_store import JsonFilePropertyStore
from services.retry import RetryPolicy
from services.sessions import SessionStorage
from services.token_estimator import estimate_tokens
import config

logger = logging.getLogger(__name__)


@dataclass
class ChatContext:
    """
    Everything one process needs to answer messages.

    Built once by the caller (see `build_context`) and passed to every
    entry point; nothing here lives in module globals.
    """
    history_store: HistoryStore
    chat_log: ChatLog
    prompt_source: PromptSource
    ai_client: Optional[GeminiClient]
    session_storage: SessionStorage
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    clock: Callable[[], float] = time.time
    timezone: str = config.TIMEZONE
    max_history_length: int = config.MAX_HISTORY_LENGTH

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), ZoneInfo(self.timezone))

    def require_ai_client(self) -> GeminiClient:
        if self.ai_client is None:
            raise ConfigError("GEMINI_API_KEY must be provided or set in environment")
        return self.ai_client


def build_context(
    cache: Optional[CacheService] = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep
) -> ChatContext:
    """Wire up services from configuration."""
    metrics = PerformanceMetrics()
    cache = cache or InMemoryCache(clock=clock)

    if config.CHAT_LOG_BACKEND == "supabase":
        chat_log: ChatLog = SupabaseChatLog(
            table_name=config.SUPABASE_LOG_TABLE,
            batch_size=config.CHAT_LOG_BATCH_SIZE
        )
    else:
        chat_log = JsonlChatLog(config.CHAT_LOG_PATH, batch_size=config.CHAT_LOG_BATCH_SIZE)

    try:
        ai_client = GeminiClient(
            retry_policy=RetryPolicy(
                max_attempts=config.MAX_RETRIES,
                base_delay=config.RETRY_BASE_DELAY,
                sleep=sleep
            ),
            metrics=metrics,
            clock=clock
        )
    except ConfigError as e:
        # Health checks still work; messages fail with ConfigError
        logger.warning(f"Gemini client not configured: {e}")
        ai_client = None

    return ChatContext(
        history_store=HistoryStore(
            cache,
            chat_log,
            cache_key=config.CACHE_KEY,
            ttl_seconds=config.CACHE_TTL_SECONDS,
            max_history_length=config.MAX_HISTORY_LENGTH,
            metrics=metrics
        ),
        chat_log=chat_log,
        prompt_source=PromptSource(
            config.SYSTEM_PROMPT_PATH,
            cache_seconds=config.PROMPT_CACHE_SECONDS,
            clock=clock,
            metrics=metrics
        ),
        ai_client=ai_client,
        session_storage=SessionStorage(
            cache=cache,
            properties=JsonFilePropertyStore(config.SESSION_STORE_PATH),
            ttl_seconds=config.CACHE_TTL_SECONDS
        ),
        metrics=metrics,
        clock=clock,
    )


def log_chat(ctx: ChatContext, user_id: str, role: str, text: str) -> LogRecord:
    """Queue one chat log record stamped with the context's local time."""
    record = LogRecord(
        timestamp=ctx.now().isoformat(),
        user_id=user_id,
        role=role,
        text=text,
        token_count=estimate_tokens(text)
    )
    ctx.chat_log.append(record)
    return record


def _validate(user_id: Any, message: Any) -> None:
    if not user_id or not isinstance(user_id, str):
        raise InvalidInputError("Invalid user id")
    if not message or not isinstance(message, str):
        raise InvalidInputError("Invalid message")


def process_message(ctx: ChatContext, user_id: str, message: str) -> str:
    """
    Answer one user message.

    Failures of the AI call never propagate: they are logged in full and
    turned into a fixed user-facing message. Invalid input and missing
    configuration do propagate.

    Args:
        ctx: Chat context
        user_id: Identifier of the chatting user
        message: Message text

    Returns:
        The model's reply, or a user-facing error message

    Raises:
        InvalidInputError: If user_id or message is empty or not a string
        ConfigError: If the system prompt or API key is missing
    """
    _validate(user_id, message)
    system_prompt = ctx.prompt_source.get()
    ai_client = ctx.require_ai_client()

    try:
        store = ctx.history_store.load(user_id)
        turns = store.setdefault(user_id, [])

        turns.append(Turn(role=ROLE_USER, text=message))
        log_chat(ctx, user_id, ROLE_USER, message)
        trim_conversation(turns, ctx.max_history_length)

        reply = ai_client.complete(system_prompt, turns)

        turns.append(Turn(role=ROLE_MODEL, text=reply))
        log_chat(ctx, user_id, ROLE_MODEL, reply)
        trim_conversation(turns, ctx.max_history_length)
        ctx.history_store.save(store)

        logger.info(f"Answered message for {user_id} ({len(turns)} turns cached)")
        return reply

    except (InvalidInputError, ConfigError):
        raise
    except Exception as e:
        kind = classify_error(e)
        code = e.code if isinstance(e, ApiError) else type(e).__name__
        logger.error(
            f"Message processing failed for {user_id}: kind={kind.value}, error={e}",
            exc_info=True,
            extra={"error_code": code, "user_id": user_id}
        )
        log_chat(ctx, user_id, ROLE_SYSTEM, f"[error] {code}: {e}")
        return USER_MESSAGES[kind]

    finally:
        ctx.chat_log.flush()


def clear_conversation_history(ctx: ChatContext, user_id: Optional[str] = None) -> None:
    """Forget one user's history, or everyone's when `user_id` is omitted."""
    ctx.history_store.clear(user_id)


def export_conversation(ctx: ChatContext, user_id: str, export_format: str = "json") -> ExportResult:
    """
    Export a user's current conversation.

    Raises:
        InvalidInputError: If user_id is invalid or the format unsupported
    """
    if not user_id or not isinstance(user_id, str):
        raise InvalidInputError("Invalid user id")
    if (export_format or "").lower() not in SUPPORTED_FORMATS:
        raise InvalidInputError(f"Unsupported export format: {export_format}")

    now = ctx.now()
    turns = ctx.history_store.load(user_id).get(user_id, [])
    data = build_export_data(user_id, turns, ctx.chat_log.read_all(), now)
    result = render_export(data, export_format, now)
    logger.info(f"Exported {len(turns)} turns for {user_id} as {result.format}")
    return result


def clean_old_logs(ctx: ChatContext, days: int) -> Dict[str, int]:
    """
    Delete chat log records older than `days` days.

    Returns:
        Counts of deleted and remaining records

    Raises:
        InvalidInputError: If days is not a positive integer
    """
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise InvalidInputError("days must be a positive integer")

    cutoff = ctx.now() - timedelta(days=days)
    deleted = ctx.chat_log.delete_older_than(cutoff)
    kept = len(ctx.chat_log.read_all())
    return {"deleted": deleted, "kept": kept}


def health_check(ctx: ChatContext) -> Dict[str, Any]:
    """Report whether each collaborator is usable."""
    checks: Dict[str, Any] = {"api_key": ctx.ai_client is not None}

    try:
        checks["system_prompt"] = {"ok": True, "length": len(ctx.prompt_source.get())}
    except ConfigError as e:
        checks["system_prompt"] = {"ok": False, "error": str(e)}

    try:
        cached = ctx.history_store.load()
        checks["cache"] = {"ok": True, "users": len(cached)}
    except Exception as e:
        logger.error(f"Health check cache read failed: {e}", exc_info=True)
        checks["cache"] = {"ok": False, "error": str(e)}

    try:
        checks["chat_log"] = {"ok": True, "records": len(ctx.chat_log.read_all())}
    except Exception as e:
        logger.error(f"Health check chat log read failed: {e}", exc_info=True)
        checks["chat_log"] = {"ok": False, "error": str(e)}

    healthy = checks["api_key"] and all(
        check["ok"] for name, check in checks.items() if name != "api_key"
    )
    return {"status": "healthy" if healthy else "degraded", "checks": checks}
