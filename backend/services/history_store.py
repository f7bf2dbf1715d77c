"""Conversation history storage backed by the cache, with chat-log fallback."""
import json
import logging
from typing import List, Optional

from models.conversation import (
    Turn,
    Conversation,
    ConversationStore,
    TURN_ROLES,
)
from services.cache import CacheService
from services.chat_log import ChatLog
from services.metrics import PerformanceMetrics
from config import CACHE_KEY, CACHE_TTL_SECONDS, MAX_HISTORY_LENGTH

logger = logging.getLogger(__name__)


def trim_conversation(turns: Conversation, max_length: int = MAX_HISTORY_LENGTH) -> Conversation:
    """
    Drop the oldest turns so at most `max_length` remain.

    The list is modified in place and returned for convenience.
    """
    if len(turns) > max_length:
        del turns[:len(turns) - max_length]
    return turns


def serialize_store(store: ConversationStore) -> str:
    return json.dumps(
        {user_id: [turn.to_content() for turn in turns] for user_id, turns in store.items()},
        ensure_ascii=False
    )


def deserialize_store(raw: str) -> ConversationStore:
    data = json.loads(raw)
    return {
        user_id: [Turn.from_content(content) for content in contents]
        for user_id, contents in data.items()
    }


class HistoryStore:
    """Keeps every user's recent turns in a single cache entry."""

    def __init__(
        self,
        cache: CacheService,
        chat_log: ChatLog,
        cache_key: str = CACHE_KEY,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        max_history_length: int = MAX_HISTORY_LENGTH,
        metrics: Optional[PerformanceMetrics] = None
    ):
        self.cache = cache
        self.chat_log = chat_log
        self.cache_key = cache_key
        self.ttl_seconds = ttl_seconds
        self.max_history_length = max_history_length
        self.metrics = metrics

    def load(self, user_id: Optional[str] = None) -> ConversationStore:
        """
        Read the conversation store from the cache.

        When the cache entry is gone and `user_id` is given, that user's
        recent turns are rebuilt from the chat log and written back to
        the cache.

        Args:
            user_id: User whose history should be reconstructed on a miss

        Returns:
            Mapping of user id to turns (empty if nothing is available)
        """
        try:
            cached = self.cache.get(self.cache_key)
            if cached:
                self._record_cache(hit=True)
                return deserialize_store(cached)
        except Exception as e:
            logger.error(f"Error reading conversation cache: {e}", exc_info=True)

        self._record_cache(hit=False)
        if not user_id:
            return {}

        logger.info(f"Conversation cache miss, restoring history for {user_id} from chat log")
        turns = self.reconstruct(user_id, self.max_history_length)
        if not turns:
            return {}

        store = {user_id: turns}
        try:
            self.save(store)
        except Exception as e:
            logger.error(f"Error caching restored history for {user_id}: {e}", exc_info=True)
        logger.info(f"Restored {len(turns)} turns for {user_id}")
        return store

    def save(self, store: ConversationStore) -> None:
        """Overwrite the cached conversation store."""
        self.cache.put(self.cache_key, serialize_store(store), self.ttl_seconds)
        logger.debug(f"Saved conversation store with {len(store)} users")

    def clear(self, user_id: Optional[str] = None) -> None:
        """
        Clear conversation history.

        Args:
            user_id: Only clear this user's turns; clears everyone when omitted
        """
        if user_id:
            store = self.load(user_id)
            if user_id in store:
                del store[user_id]
                self.save(store)
                logger.info(f"Cleared conversation history for {user_id}")
        else:
            self.cache.remove(self.cache_key)
            logger.info("Cleared all conversation history")

    def reconstruct(self, user_id: str, limit: int = MAX_HISTORY_LENGTH) -> List[Turn]:
        """
        Rebuild a user's most recent turns from the chat log.

        Diagnostic records and empty texts are skipped.

        Args:
            user_id: User to rebuild
            limit: Maximum number of turns to return

        Returns:
            Turns oldest first (empty on any log failure)
        """
        try:
            records = self.chat_log.read_all()
        except Exception as e:
            logger.error(f"Error reading chat log for {user_id}: {e}", exc_info=True)
            return []

        turns: List[Turn] = []
        for record in reversed(records):
            if len(turns) >= limit:
                break
            if record.user_id != user_id or not record.text:
                continue
            if record.role not in TURN_ROLES:
                continue
            turns.append(Turn(role=record.role, text=record.text))

        turns.reverse()
        return turns

    def _record_cache(self, hit: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_cache(hit)
