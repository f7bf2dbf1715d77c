"""Conversation data models."""
from dataclasses import dataclass
from typing import Any, Dict, List

ROLE_USER = "user"
ROLE_MODEL = "model"
# Diagnostic rows in the chat log; never replayed to the model
ROLE_SYSTEM = "system"
ROLE_ERROR = "error"

TURN_ROLES = (ROLE_USER, ROLE_MODEL)
LOG_ROLES = (ROLE_USER, ROLE_MODEL, ROLE_SYSTEM, ROLE_ERROR)


@dataclass(frozen=True)
class Turn:
    """Represents a single message exchanged in a conversation."""
    role: str  # "user" or "model"
    text: str

    def to_content(self) -> Dict[str, Any]:
        """Serialize to the Gemini content shape."""
        return {"role": self.role, "parts": [{"text": self.text}]}

    @classmethod
    def from_content(cls, content: Dict[str, Any]) -> "Turn":
        """Build a turn from the Gemini content shape."""
        parts = content.get("parts") or [{}]
        return cls(role=content["role"], text=parts[0].get("text", ""))


# Ordered turn history for one user, oldest first
Conversation = List[Turn]

# user_id -> Conversation
ConversationStore = Dict[str, Conversation]


@dataclass
class LogRecord:
    """One row of the append-only chat log."""
    timestamp: str
    user_id: str
    role: str  # "user", "model", "system" or "error"
    text: str
    token_count: int = 0

    def to_row(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "role": self.role,
            "text": self.text,
            "token_count": self.token_count,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LogRecord":
        """
        Build a record from a stored row.

        Raises:
            ValueError: If the row is not a mapping or has an unknown role
        """
        if not isinstance(row, dict):
            raise ValueError(f"Chat log row must be an object, got {type(row).__name__}")
        if row.get("role") not in LOG_ROLES:
            raise ValueError(f"Unknown chat log role: {row.get('role')!r}")
        return cls(
            timestamp=str(row.get("timestamp", "")),
            user_id=str(row.get("user_id", "")),
            role=row["role"],
            text=row.get("text") or "",
            token_count=int(row.get("token_count") or 0),
        )
