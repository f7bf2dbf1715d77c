"""Session data models."""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"


@dataclass
class Session:
    """Represents a chat session for one user."""
    id: str
    user_id: str
    start_time: str  # ISO 8601
    last_activity: str  # ISO 8601
    message_count: int = 0
    token_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    status: str = STATUS_ACTIVE
    import_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            start_time=data["start_time"],
            last_activity=data["last_activity"],
            message_count=data.get("message_count", 0),
            token_count=data.get("token_count", 0),
            metadata=dict(data.get("metadata") or {}),
            status=data.get("status", STATUS_ACTIVE),
            import_date=data.get("import_date"),
        )
