"""Conversation export in JSON, CSV and plain text."""
import csv
import io
import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.conversation import Turn, LogRecord, ROLE_USER, TURN_ROLES
from services.errors import InvalidInputError
from services.token_estimator import estimate_tokens

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("json", "csv", "text")


@dataclass
class ExportResult:
    format: str
    content: str
    mime_type: str
    filename: str
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_export_data(
    user_id: str,
    turns: List[Turn],
    records: List[LogRecord],
    now: datetime
) -> Dict[str, Any]:
    """
    Combine cached turns with their chat log rows.

    Turns and the user's log rows are walked newest first; log rows with
    no matching turn (an unanswered message, say) are skipped. A turn
    without a matching row keeps its place in the walk and gets the
    export time and an estimated token count.
    """
    rows = [r for r in records if r.user_id == user_id and r.role in TURN_ROLES and r.text]

    matched: List[Optional[LogRecord]] = [None] * len(turns)
    row_index = len(rows) - 1
    for turn_index in range(len(turns) - 1, -1, -1):
        turn = turns[turn_index]
        candidate = row_index
        while candidate >= 0 and not (rows[candidate].role == turn.role and rows[candidate].text == turn.text):
            candidate -= 1
        if candidate >= 0:
            matched[turn_index] = rows[candidate]
            row_index = candidate - 1

    messages = []
    for turn, row in zip(turns, matched):
        if row is not None:
            timestamp, token_count = row.timestamp, row.token_count
        else:
            timestamp, token_count = now.isoformat(), estimate_tokens(turn.text)
        messages.append({
            "role": turn.role,
            "content": turn.text,
            "timestamp": timestamp,
            "token_count": token_count,
        })

    return {
        "user_id": user_id,
        "export_date": now.isoformat(),
        "messages": messages,
    }


def render_export(data: Dict[str, Any], export_format: str, now: datetime) -> ExportResult:
    """
    Render export data in the requested format.

    Raises:
        InvalidInputError: If the format is not supported
    """
    fmt = (export_format or "").lower()
    stamp = int(now.timestamp() * 1000)
    base_name = f"chat_export_{data['user_id']}_{stamp}"

    if fmt == "json":
        return ExportResult(
            format="json",
            content=json.dumps(data, ensure_ascii=False, indent=2),
            mime_type="application/json",
            filename=f"{base_name}.json",
        )
    if fmt == "csv":
        return ExportResult(
            format="csv",
            content=_as_csv(data),
            mime_type="text/csv",
            filename=f"{base_name}.csv",
        )
    if fmt == "text":
        return ExportResult(
            format="text",
            content=_as_text(data),
            mime_type="text/plain",
            filename=f"{base_name}.txt",
        )

    raise InvalidInputError(f"Unsupported export format: {export_format}")


def _speaker(role: str) -> str:
    return "User" if role == ROLE_USER else "AI"


def _as_csv(data: Dict[str, Any]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["timestamp", "role", "message", "token_count"])
    for msg in data["messages"]:
        writer.writerow([msg["timestamp"], _speaker(msg["role"]), msg["content"], msg["token_count"]])
    return buffer.getvalue()


def _as_text(data: Dict[str, Any]) -> str:
    lines = [
        "Chat history export",
        f"User ID: {data['user_id']}",
        f"Exported at: {data['export_date']}",
        "=" * 50,
        "",
    ]
    for msg in data["messages"]:
        lines.append(f"{_speaker(msg['role'])} ({msg['timestamp']})")
        lines.append(msg["content"])
        lines.append(f"Tokens: {msg['token_count']}")
        lines.append("-" * 30)
        lines.append("")
    return "\n".join(lines)
