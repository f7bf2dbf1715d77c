"""Chat session bookkeeping.

Sessions are cached for fast access and mirrored to the property store
so they outlive cache expiry.
"""
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.conversation import Turn
from models.session import Session, STATUS_ACTIVE, STATUS_EXPIRED
from services.cache import CacheService
from services.errors import InvalidInputError
from services.history_store import HistoryStore, trim_conversation
from services.property_store import PropertyStore
from config import CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session_"
EXPORT_VERSION = "1.0"


@dataclass
class SessionStorage:
    cache: CacheService
    properties: PropertyStore
    ttl_seconds: int = CACHE_TTL_SECONDS
    persist: bool = True


def _key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_session(
    storage: SessionStorage,
    user_id: str,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None
) -> Session:
    """Start and store a new active session for `user_id`."""
    if not user_id or not isinstance(user_id, str):
        raise InvalidInputError("Invalid user id")

    timestamp = (now or _utcnow()).isoformat()
    session = Session(
        id=uuid.uuid4().hex,
        user_id=user_id,
        start_time=timestamp,
        last_activity=timestamp,
        metadata=dict(metadata or {}),
    )
    save_session(storage, session)
    logger.info(f"Created session {session.id} for {user_id}")
    return session


def get_session(storage: SessionStorage, session_id: str) -> Optional[Session]:
    """Look a session up in the cache, then in the property store."""
    if not session_id:
        return None

    cached = storage.cache.get(_key(session_id))
    if cached:
        return Session.from_dict(json.loads(cached))

    if storage.persist:
        stored = storage.properties.get_property(_key(session_id))
        if stored:
            storage.cache.put(_key(session_id), stored, storage.ttl_seconds)
            return Session.from_dict(json.loads(stored))

    return None


def save_session(storage: SessionStorage, session: Session) -> None:
    session_json = json.dumps(session.to_dict(), ensure_ascii=False)
    storage.cache.put(_key(session.id), session_json, storage.ttl_seconds)
    if storage.persist:
        storage.properties.set_property(_key(session.id), session_json)


def update_session(
    storage: SessionStorage,
    session_id: str,
    now: Optional[datetime] = None,
    **updates: Any
) -> Optional[Session]:
    """Apply field updates and bump `last_activity`; None if the session is unknown."""
    session = get_session(storage, session_id)
    if session is None:
        return None

    for name, value in updates.items():
        if not hasattr(session, name) or name in ("id", "user_id"):
            raise InvalidInputError(f"Unknown session field: {name}")
        setattr(session, name, value)
    session.last_activity = (now or _utcnow()).isoformat()
    save_session(storage, session)
    return session


def _parse_time(value: Any) -> datetime:
    """Parse an ISO 8601 time that carries a UTC offset."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp has no timezone: {value}")
    return parsed


def _stored_sessions(storage: SessionStorage) -> List[Session]:
    sessions = []
    for key in storage.properties.keys():
        if not key.startswith(SESSION_KEY_PREFIX):
            continue
        try:
            sessions.append(Session.from_dict(json.loads(storage.properties.get_property(key))))
        except (TypeError, ValueError, KeyError) as e:
            logger.error(f"Unreadable session property {key}: {e}")
    return sessions


def user_sessions(storage: SessionStorage, user_id: str) -> List[Session]:
    """All stored sessions of a user, most recently active first."""
    dated = []
    for session in _stored_sessions(storage):
        if session.user_id != user_id:
            continue
        try:
            dated.append((_parse_time(session.last_activity), session))
        except (TypeError, ValueError) as e:
            logger.error(f"Skipping session {session.id} with unreadable last_activity: {e}")
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [session for _, session in dated]


def export_session(
    storage: SessionStorage,
    history_store: HistoryStore,
    session_id: str,
    now: Optional[datetime] = None
) -> Optional[str]:
    """Serialize a session together with its user's conversation history."""
    session = get_session(storage, session_id)
    if session is None:
        return None

    history = history_store.load(session.user_id).get(session.user_id, [])
    return json.dumps({
        "session": session.to_dict(),
        "history": [turn.to_content() for turn in history],
        "export_date": (now or _utcnow()).isoformat(),
        "version": EXPORT_VERSION
    }, ensure_ascii=False, indent=2)


def import_session(
    storage: SessionStorage,
    history_store: HistoryStore,
    json_data: str,
    now: Optional[datetime] = None
) -> Session:
    """
    Restore a session produced by `export_session` under a new id.

    The exported history replaces the user's cached history.

    Raises:
        InvalidInputError: If the payload is not a valid export
    """
    try:
        data = json.loads(json_data)
        session = Session.from_dict(data["session"])
        history = [Turn.from_content(content) for content in data.get("history") or []]
        _parse_time(session.start_time)
        _parse_time(session.last_activity)
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        logger.error(f"Session import failed: {e}")
        raise InvalidInputError("Failed to import session") from e

    session.id = uuid.uuid4().hex
    session.import_date = (now or _utcnow()).isoformat()
    save_session(storage, session)

    if history:
        trim_conversation(history, history_store.max_history_length)
        store = history_store.load()
        store[session.user_id] = history
        history_store.save(store)

    logger.info(f"Imported session {session.id} for {session.user_id} with {len(history)} turns")
    return session


def expire_timed_out_sessions(
    storage: SessionStorage,
    timeout_seconds: int,
    now: Optional[datetime] = None
) -> int:
    """Mark active sessions idle for longer than `timeout_seconds` as expired."""
    now = now or _utcnow()
    expired = 0
    for session in _stored_sessions(storage):
        if session.status != STATUS_ACTIVE:
            continue
        try:
            idle = (now - _parse_time(session.last_activity)).total_seconds()
        except (TypeError, ValueError) as e:
            logger.error(f"Skipping session {session.id} with unreadable last_activity: {e}")
            continue
        if idle > timeout_seconds:
            session.status = STATUS_EXPIRED
            save_session(storage, session)
            expired += 1

    logger.info(f"Expired {expired} timed-out sessions")
    return expired
