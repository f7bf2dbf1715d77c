"""Services for the Gemini chatbot backend."""
from .token_estimator import estimate_tokens
from .cache import CacheService, InMemoryCache
from .chat_log import ChatLog, InMemoryChatLog, JsonlChatLog, SupabaseChatLog
from .errors import (
    ChatbotError,
    InvalidInputError,
    ConfigError,
    ApiError,
    NoResponseError,
    RetriesExhaustedError,
    ErrorKind,
    classify_error,
)
from .history_store import HistoryStore, trim_conversation
from .retry import RetryPolicy
from .gemini_client import GeminiClient
from .metrics import PerformanceMetrics
from .prompt_source import PromptSource
from .property_store import PropertyStore, InMemoryPropertyStore, JsonFilePropertyStore
from .chatbot import (
    ChatContext,
    build_context,
    process_message,
    clear_conversation_history,
    export_conversation,
    clean_old_logs,
    health_check,
)

__all__ = ['estimate_tokens', 'CacheService', 'InMemoryCache', 'ChatLog', 'InMemoryChatLog', 'JsonlChatLog', 'SupabaseChatLog', 'ChatbotError', 'InvalidInputError', 'ConfigError', 'ApiError', 'NoResponseError', 'RetriesExhaustedError', 'ErrorKind', 'classify_error', 'HistoryStore', 'trim_conversation', 'RetryPolicy', 'GeminiClient', 'PerformanceMetrics', 'PromptSource', 'PropertyStore', 'InMemoryPropertyStore', 'JsonFilePropertyStore', 'ChatContext', 'build_context', 'process_message', 'clear_conversation_history', 'export_conversation', 'clean_old_logs', 'health_check']
