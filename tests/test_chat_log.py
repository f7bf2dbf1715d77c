"""Unit tests for the chat log backends."""
import json
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import Mock, MagicMock

from models.conversation import LogRecord
from services.chat_log import InMemoryChatLog, JsonlChatLog, SupabaseChatLog


def make_record(index, role="user", user_id="u1"):
    return LogRecord(
        timestamp=f"2026-01-01T00:00:{index:02d}+09:00",
        user_id=user_id,
        role=role,
        text=f"message {index}",
        token_count=3
    )


class TestBatching:

    def test_records_are_buffered_until_batch_is_full(self):
        log = InMemoryChatLog(batch_size=3)

        log.append(make_record(1))
        log.append(make_record(2))
        assert log.records == []
        assert log.pending == 2

        log.append(make_record(3))
        assert len(log.records) == 3
        assert log.pending == 0

    def test_read_all_includes_buffered_records(self):
        log = InMemoryChatLog(batch_size=10)
        log.append(make_record(1))

        assert log.read_all() == [make_record(1)]

    def test_flush_returns_count(self):
        log = InMemoryChatLog(batch_size=10)
        log.append(make_record(1))
        log.append(make_record(2))

        assert log.flush() == 2
        assert log.flush() == 0

    def test_failed_flush_drops_batch_without_raising(self):
        log = InMemoryChatLog(batch_size=10)
        log._write = Mock(side_effect=OSError("disk full"))
        log.append(make_record(1))

        assert log.flush() == 0
        assert log.pending == 0

    def test_zero_batch_size_writes_immediately(self):
        log = InMemoryChatLog(batch_size=0)
        log.append(make_record(1))
        assert len(log.records) == 1


class TestJsonlChatLog:

    @pytest.fixture
    def log_path(self, tmp_path):
        return tmp_path / "logs" / "chat_log.jsonl"

    def test_creates_parent_directory(self, log_path):
        JsonlChatLog(str(log_path))
        assert log_path.parent.is_dir()

    def test_writes_one_json_object_per_line(self, log_path):
        log = JsonlChatLog(str(log_path))
        log.append(make_record(1))
        log.append(make_record(2, role="model"))

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1]) == {
            "timestamp": "2026-01-01T00:00:02+09:00",
            "user_id": "u1",
            "role": "model",
            "text": "message 2",
            "token_count": 3,
        }

    def test_records_survive_a_new_instance(self, log_path):
        JsonlChatLog(str(log_path)).append(make_record(1))

        reopened = JsonlChatLog(str(log_path))

        assert reopened.read_all() == [make_record(1)]

    def test_non_ascii_text(self, log_path):
        log = JsonlChatLog(str(log_path))
        record = LogRecord("2026-01-01T00:00:00+09:00", "u1", "user", "こんにちは", 10)
        log.append(record)

        assert "こんにちは" in log_path.read_text(encoding="utf-8")
        assert log.read_all() == [record]

    def test_malformed_lines_are_skipped(self, log_path):
        log = JsonlChatLog(str(log_path))
        log.append(make_record(1))
        with open(log_path, "a", encoding="utf-8") as f:
            f.write("{truncated\n\n")
            f.write("[1, 2]\n")
            f.write('"just a string"\n')
            f.write('{"timestamp": "t", "user_id": "u1", "role": "assistant", "text": "x"}\n')
            f.write('{"timestamp": "t", "user_id": "u1", "role": "user", "text": "x", "token_count": [1]}\n')
        log.append(make_record(2))

        assert [r.text for r in log.read_all()] == ["message 1", "message 2"]

    def test_missing_file_reads_empty(self, log_path):
        assert JsonlChatLog(str(log_path)).read_all() == []


class TestSupabaseChatLog:

    def test_requires_credentials(self):
        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY"):
            SupabaseChatLog(supabase_url=None, supabase_key=None)

    def test_batch_insert(self):
        client = MagicMock()
        log = SupabaseChatLog(client=client, table_name="chat_logs", batch_size=2)

        log.append(make_record(1))
        client.table.assert_not_called()
        log.append(make_record(2))

        client.table.assert_called_with("chat_logs")
        rows = client.table.return_value.insert.call_args[0][0]
        assert [row["text"] for row in rows] == ["message 1", "message 2"]

    def test_read_all_maps_rows(self):
        client = MagicMock()
        query = client.table.return_value.select.return_value.order.return_value
        query.execute.return_value = Mock(data=[
            {"id": 1, **make_record(1).to_row()},
            {"id": 2, **make_record(2, role="model").to_row()},
        ])
        log = SupabaseChatLog(client=client)

        records = log.read_all()

        assert records == [make_record(1), make_record(2, role="model")]
        client.table.return_value.select.return_value.order.assert_called_with("id", desc=False)


class TestLogRecordFromRow:

    @pytest.mark.parametrize("row", [[1, 2], "text", None])
    def test_non_object_rows_are_rejected(self, row):
        with pytest.raises(ValueError, match="must be an object"):
            LogRecord.from_row(row)

    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown chat log role"):
            LogRecord.from_row({"timestamp": "t", "user_id": "u1", "role": "assistant", "text": "x"})

    @pytest.mark.parametrize("role", ["user", "model", "system", "error"])
    def test_known_roles(self, role):
        assert LogRecord.from_row({"role": role, "text": "x"}).role == role


def dated_record(days_ago, text, now):
    stamp = (now - timedelta(days=days_ago)).isoformat()
    return LogRecord(timestamp=stamp, user_id="u1", role="user", text=text, token_count=1)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=9)))


class TestDeleteOlderThan:

    def test_in_memory_log(self):
        log = InMemoryChatLog(batch_size=10)
        log.append(dated_record(40, "old", NOW))
        log.append(dated_record(5, "recent", NOW))

        deleted = log.delete_older_than(NOW - timedelta(days=30))

        assert deleted == 1
        assert [r.text for r in log.read_all()] == ["recent"]

    def test_buffered_records_are_included(self):
        log = InMemoryChatLog(batch_size=10)
        log.append(dated_record(40, "old", NOW))

        assert log.delete_older_than(NOW - timedelta(days=30)) == 1
        assert log.pending == 0
        assert log.read_all() == []

    def test_unparseable_timestamps_are_kept(self):
        log = InMemoryChatLog()
        log.append(LogRecord("not a time", "u1", "user", "odd", 1))
        log.append(LogRecord("2020-01-01T00:00:00", "u1", "user", "naive", 1))

        assert log.delete_older_than(NOW) == 0
        assert len(log.read_all()) == 2

    def test_naive_cutoff_is_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            InMemoryChatLog().delete_older_than(datetime(2026, 1, 1))

    def test_jsonl_file_is_rewritten(self, tmp_path):
        path = tmp_path / "chat_log.jsonl"
        log = JsonlChatLog(str(path))
        log.append(dated_record(40, "old", NOW))
        log.append(dated_record(31, "also old", NOW))
        log.append(dated_record(1, "recent", NOW))

        deleted = log.delete_older_than(NOW - timedelta(days=30))

        assert deleted == 2
        assert [r.text for r in JsonlChatLog(str(path)).read_all()] == ["recent"]
        assert len(path.read_text(encoding="utf-8").splitlines()) == 1

    def test_jsonl_nothing_to_delete_leaves_file_alone(self, tmp_path):
        path = tmp_path / "chat_log.jsonl"
        log = JsonlChatLog(str(path))
        log.append(dated_record(1, "recent", NOW))
        before = path.read_text(encoding="utf-8")

        assert log.delete_older_than(NOW - timedelta(days=30)) == 0
        assert path.read_text(encoding="utf-8") == before

    def test_supabase_deletes_by_timestamp(self):
        client = MagicMock()
        delete_query = client.table.return_value.delete.return_value.lt.return_value
        delete_query.execute.return_value = Mock(data=[{"id": 1}, {"id": 2}])
        log = SupabaseChatLog(client=client)
        cutoff = NOW - timedelta(days=30)

        assert log.delete_older_than(cutoff) == 2
        client.table.return_value.delete.return_value.lt.assert_called_with("timestamp", cutoff.isoformat())

    def test_supabase_skips_malformed_rows(self):
        client = MagicMock()
        query = client.table.return_value.select.return_value.order.return_value
        query.execute.return_value = Mock(data=[
            {"id": 1, "role": "assistant", "text": "x"},
            {"id": 2, **make_record(2).to_row()},
        ])

        assert SupabaseChatLog(client=client).read_all() == [make_record(2)]
