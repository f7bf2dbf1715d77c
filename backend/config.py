"""Configuration management for the Gemini chatbot backend."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Gemini API Configuration
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta/models"
)
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))  # seconds
GENERATION_CONFIG = {
    "temperature": 0.3,
    "top_p": 0.9,
    "top_k": 40,
    "max_output_tokens": 8192,
}

# Retry Configuration
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))  # attempts in total
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "1.0"))  # seconds

# Conversation Cache Configuration
CACHE_KEY = "conversationHistory"
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "21600"))  # 6 hours
MAX_HISTORY_LENGTH = int(os.getenv("MAX_HISTORY_LENGTH", "10"))

# Prompt Configuration
SYSTEM_PROMPT_PATH = os.getenv("SYSTEM_PROMPT_PATH", "prompts/system_prompt.txt")
PROMPT_CACHE_SECONDS = int(os.getenv("PROMPT_CACHE_SECONDS", "3600"))

# Chat Log Configuration
CHAT_LOG_BACKEND = os.getenv("CHAT_LOG_BACKEND", "jsonl")  # "jsonl" or "supabase"
CHAT_LOG_PATH = os.getenv("CHAT_LOG_PATH", "logs/chat_log.jsonl")
CHAT_LOG_BATCH_SIZE = int(os.getenv("CHAT_LOG_BATCH_SIZE", "10"))
SUPABASE_LOG_TABLE = os.getenv("SUPABASE_LOG_TABLE", "chat_logs")

# Session Configuration
SESSION_STORE_PATH = os.getenv("SESSION_STORE_PATH", "data/sessions.json")
SESSION_TIMEOUT_SECONDS = int(os.getenv("SESSION_TIMEOUT_SECONDS", "3600"))

TIMEZONE = os.getenv("TIMEZONE", "Asia/Tokyo")

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
