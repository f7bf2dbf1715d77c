"""Append-only chat log with batched writes.

Every user message, model reply and diagnostic record is appended here.
The log doubles as the fallback source for rebuilding conversation
history once the cache entry has expired.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from datetime import datetime
from typing import List, Optional
from supabase import create_client, Client

from models.conversation import LogRecord
from config import SUPABASE_URL, SUPABASE_KEY

logger = logging.getLogger(__name__)


class ChatLog(ABC):
    """
    Base class for chat log backends.

    Appends are buffered and written in batches of `batch_size`; callers
    flush explicitly at the end of each request. Reads include records
    still sitting in the buffer.
    """

    def __init__(self, batch_size: int = 1):
        self.batch_size = max(1, batch_size)
        self._buffer: List[LogRecord] = []

    def append(self, record: LogRecord) -> None:
        """Queue a record, writing the batch once it is full."""
        self._buffer.append(record)
        if len(self._buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> int:
        """
        Write buffered records to the backend.

        A failed write is logged and the batch is dropped; chat logging
        never fails a user request.

        Returns:
            Number of records written
        """
        if not self._buffer:
            return 0

        batch, self._buffer = self._buffer, []
        try:
            self._write(batch)
            logger.debug(f"Flushed {len(batch)} chat log records")
            return len(batch)
        except Exception as e:
            logger.error(
                f"Failed to write {len(batch)} chat log records: {e}",
                exc_info=True,
                extra={"dropped_records": len(batch)}
            )
            return 0

    def read_all(self) -> List[LogRecord]:
        """Return every record in write order, buffered ones last."""
        return self._read() + list(self._buffer)

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete records stamped before `cutoff`.

        Buffered records are flushed first. Records whose timestamp cannot
        be parsed are kept.

        Args:
            cutoff: Timezone-aware point in time

        Returns:
            Number of records deleted
        """
        if cutoff.tzinfo is None:
            raise ValueError("cutoff must be timezone-aware")
        self.flush()
        deleted = self._delete_older_than(cutoff)
        logger.info(f"Deleted {deleted} chat log records older than {cutoff.isoformat()}")
        return deleted

    @abstractmethod
    def _write(self, records: List[LogRecord]) -> None:
        """Persist a batch of records in order."""

    @abstractmethod
    def _read(self) -> List[LogRecord]:
        """Load all persisted records in write order."""

    @abstractmethod
    def _delete_older_than(self, cutoff: datetime) -> int:
        """Remove persisted records older than `cutoff` and return how many."""


def _record_time(record: LogRecord) -> Optional[datetime]:
    """Parse a record's timestamp; None when it is not an aware ISO 8601 time."""
    try:
        stamp = datetime.fromisoformat(record.timestamp)
    except (TypeError, ValueError):
        return None
    return stamp if stamp.tzinfo is not None else None


def _is_expired(record: LogRecord, cutoff: datetime) -> bool:
    stamp = _record_time(record)
    return stamp is not None and stamp < cutoff


class InMemoryChatLog(ChatLog):
    """Non-durable log, useful for tests and local experiments."""

    def __init__(self, batch_size: int = 1):
        super().__init__(batch_size)
        self.records: List[LogRecord] = []

    def _write(self, records: List[LogRecord]) -> None:
        self.records.extend(records)

    def _read(self) -> List[LogRecord]:
        return list(self.records)

    def _delete_older_than(self, cutoff: datetime) -> int:
        kept = [r for r in self.records if not _is_expired(r, cutoff)]
        deleted = len(self.records) - len(kept)
        self.records = kept
        return deleted


class JsonlChatLog(ChatLog):
    """Chat log stored as one JSON object per line."""

    def __init__(self, log_file_path: str, batch_size: int = 1):
        super().__init__(batch_size)
        self.log_file_path = Path(log_file_path)
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"JsonlChatLog writing to {self.log_file_path}")

    def _write(self, records: List[LogRecord]) -> None:
        with open(self.log_file_path, "a", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record.to_row(), ensure_ascii=False) + "\n")

    def _read(self) -> List[LogRecord]:
        if not self.log_file_path.exists():
            return []

        records = []
        with open(self.log_file_path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(LogRecord.from_row(json.loads(line)))
                except (ValueError, TypeError) as e:
                    logger.warning(f"Skipping malformed chat log line {line_number}: {e}")
        return records

    def _delete_older_than(self, cutoff: datetime) -> int:
        records = self._read()
        kept = [r for r in records if not _is_expired(r, cutoff)]
        if len(kept) == len(records):
            return 0

        # Malformed lines were skipped by _read and do not survive the rewrite
        tmp_path = self.log_file_path.with_suffix(self.log_file_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            for record in kept:
                f.write(json.dumps(record.to_row(), ensure_ascii=False) + "\n")
        tmp_path.replace(self.log_file_path)
        return len(records) - len(kept)


class SupabaseChatLog(ChatLog):
    """Chat log stored in a Supabase PostgreSQL table."""

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = "chat_logs",
        batch_size: int = 1,
        client: Client = None
    ):
        """
        Initialize the chat log with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Table with columns timestamp, user_id, role, text, token_count
            batch_size: Records buffered before a write
            client: Pre-built Supabase client (skips credential checks)

        Raises:
            ValueError: If Supabase credentials are missing
        """
        super().__init__(batch_size)
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client = client
        self.table_name = table_name
        logger.info(f"Initialized SupabaseChatLog with table: {table_name}")

    def _write(self, records: List[LogRecord]) -> None:
        self.client.table(self.table_name).insert([r.to_row() for r in records]).execute()

    def _read(self) -> List[LogRecord]:
        result = self.client.table(self.table_name).select("*").order("id", desc=False).execute()
        records = []
        for row in result.data or []:
            try:
                records.append(LogRecord.from_row(row))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed chat log row: {e}")
        return records

    def _delete_older_than(self, cutoff: datetime) -> int:
        result = (
            self.client.table(self.table_name)
            .delete()
            .lt("timestamp", cutoff.isoformat())
            .execute()
        )
        return len(result.data or [])
