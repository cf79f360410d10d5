"""Tests for the shared rate limit record and its stores."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from hippo.adapters.rate_limit.base import (
    RateLimitState,
    WindowCounter,
    parse_state,
    serialize_state,
)
from hippo.adapters.rate_limit.file_store import METADATA_FILENAME, FileRateLimitStore
from hippo.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from hippo.core.errors import MalformedStateError, StorageAppError

NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


def _state(hourly_count: int = 3, five_minute_count: int = 1) -> RateLimitState:
    return RateLimitState(
        hourly=WindowCounter(anchor=NOW - timedelta(minutes=20), count=hourly_count),
        five_minute=WindowCounter(anchor=NOW - timedelta(minutes=2), count=five_minute_count),
    )


class TestRecordFormat:
    def test_serializes_two_lines(self) -> None:
        text = serialize_state(_state())

        assert text == (
            "1 hour 2024-05-01T09:40:00+00:00 3\n"
            "5 minute 2024-05-01T09:58:00+00:00 1"
        )

    def test_parses_written_record(self) -> None:
        assert parse_state(serialize_state(_state(7, 2))) == _state(7, 2)

    def test_accepts_trailing_whitespace(self) -> None:
        raw = serialize_state(_state()) + "\n"

        assert parse_state(raw) == _state()

    def test_naive_timestamps_read_as_utc(self) -> None:
        state = parse_state("1 hour 2024-05-01T09:40:00 3\n5 minute 2024-05-01T09:58:00 1")

        assert state == _state()

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "1 hour 2024-05-01T09:40:00+00:00 3",
            "1 hour 2024-05-01T09:40:00+00:00 3\n5 minutes 2024-05-01T09:58:00+00:00 1",
            "1 hour 2024-05-01T09:40:00+00:00 three\n5 minute 2024-05-01T09:58:00+00:00 1",
            "1 hour 2024-05-01T09:40:00+00:00 -3\n5 minute 2024-05-01T09:58:00+00:00 1",
            "1 hour yesterday 3\n5 minute 2024-05-01T09:58:00+00:00 1",
            "garbage",
        ],
    )
    def test_rejects_malformed_records(self, raw: str) -> None:
        with pytest.raises(MalformedStateError):
            parse_state(raw)


class TestFileRateLimitStore:
    def test_missing_record_defaults_to_now(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path / "cache")

        assert store.load_or_default(NOW) == RateLimitState.fresh(NOW)
        assert store.path == tmp_path / "cache" / METADATA_FILENAME

    def test_corrupt_record_defaults_to_now(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path)
        store.path.write_text("1 hour nonsense\n")

        assert store.load_or_default(NOW) == RateLimitState.fresh(NOW)

    def test_undecodable_record_defaults_to_now(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path)
        store.path.write_bytes(b"\xff\xfe\x00garbage")

        assert store.load_or_default(NOW) == RateLimitState.fresh(NOW)

    def test_persist_then_load_round_trips(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path)
        state = RateLimitState(
            hourly=WindowCounter(anchor=NOW.replace(microsecond=123456), count=9),
            five_minute=WindowCounter(anchor=NOW, count=4),
        )

        store.persist(state)

        assert store.load_or_default(NOW + timedelta(hours=5)) == state

    def test_repeated_loads_are_equal(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path)
        store.persist(_state())

        assert store.load_or_default() == store.load_or_default()

    def test_persist_replaces_longer_record(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path)
        store.persist(_state(12345, 6789))
        store.persist(_state(1, 1))

        assert store.path.read_text() == serialize_state(_state(1, 1))

    def test_unopenable_record_raises_storage_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        store = FileRateLimitStore(blocker)

        with pytest.raises(StorageAppError) as exc_info:
            store.persist(_state())

        assert exc_info.value.code == "rate_limit_open_failed"

    def test_lock_failure_raises_storage_error(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path)

        with patch("hippo.adapters.rate_limit.file_store.fcntl.flock", side_effect=OSError("nolock")):
            with pytest.raises(StorageAppError) as exc_info:
                store.load_or_default(NOW)

        assert exc_info.value.code == "rate_limit_lock_failed"

    def test_write_failure_raises_storage_error(self, tmp_path: Path) -> None:
        store = FileRateLimitStore(tmp_path)

        with patch("hippo.adapters.rate_limit.file_store.os.fsync", side_effect=OSError("disk full")):
            with pytest.raises(StorageAppError) as exc_info:
                store.persist(_state())

        assert exc_info.value.code == "rate_limit_persist_failed"


class TestInMemoryRateLimitStore:
    def test_missing_and_corrupt_records_default(self) -> None:
        assert InMemoryRateLimitStore().load_or_default(NOW) == RateLimitState.fresh(NOW)
        assert InMemoryRateLimitStore("oops").load_or_default(NOW) == RateLimitState.fresh(NOW)

    def test_round_trip_and_counters(self) -> None:
        store = InMemoryRateLimitStore()

        store.persist(_state())

        assert store.load_or_default(NOW) == _state()
        assert store.writes == 1
        assert store.acquisitions == 2
