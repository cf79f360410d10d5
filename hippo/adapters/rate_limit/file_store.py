"""Shared-file rate limit store.

Notes:
- Cross-process: every caller opens its own descriptor on the record and
  takes an exclusive ``flock`` on it, so separate workers serialize their
  load-evaluate-persist sequences.
- POSIX only (``fcntl``).
"""

from __future__ import annotations

import fcntl
import logging
import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import IO, Iterator

from hippo.adapters.rate_limit.base import (
    AbstractRateLimitStore,
    LockedRecord,
    RateLimitState,
    parse_state,
    serialize_state,
)
from hippo.core.errors import MalformedStateError, StorageAppError

logger = logging.getLogger(__name__)

METADATA_FILENAME = "hippo-metadata.txt"


class _LockedFile(LockedRecord):
    def __init__(self, fh: IO[str], path: Path) -> None:
        self._fh = fh
        self._path = path

    def load_or_default(self, now: datetime) -> RateLimitState:
        try:
            self._fh.seek(0)
            raw = self._fh.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "rate_limit_store.read_failed",
                extra={"path": str(self._path), "error_msg": str(exc)},
            )
            return RateLimitState.fresh(now)

        if not raw:
            return RateLimitState.fresh(now)

        try:
            return parse_state(raw)
        except MalformedStateError as exc:
            logger.warning(
                "rate_limit_store.malformed_record",
                extra={"path": str(self._path), "error_code": exc.code},
            )
            return RateLimitState.fresh(now)

    def persist(self, state: RateLimitState) -> None:
        try:
            self._fh.seek(0)
            self._fh.truncate()
            self._fh.write(serialize_state(state))
            self._fh.flush()
            os.fsync(self._fh.fileno())
        except OSError as exc:
            raise StorageAppError(
                code="rate_limit_persist_failed",
                message=f"Cannot write rate limit record: {exc}",
                details={"path": str(self._path)},
            ) from exc


class FileRateLimitStore(AbstractRateLimitStore):
    """Rate limit record kept in ``<cache_dir>/hippo-metadata.txt``."""

    def __init__(self, cache_dir: Path | str) -> None:
        self._path = Path(cache_dir) / METADATA_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def _open(self) -> IO[str]:
        """Open the record read-write, creating it when absent."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
            return os.fdopen(fd, "r+", encoding="utf-8", newline="")
        except OSError as exc:
            raise StorageAppError(
                code="rate_limit_open_failed",
                message=f"Cannot open rate limit record: {exc}",
                details={"path": str(self._path)},
            ) from exc

    @contextmanager
    def locked(self) -> Iterator[LockedRecord]:
        fh = self._open()
        try:
            try:
                # Blocks until every other holder releases the lock
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            except OSError as exc:
                raise StorageAppError(
                    code="rate_limit_lock_failed",
                    message=f"Cannot lock rate limit record: {exc}",
                    details={"path": str(self._path)},
                ) from exc
            try:
                yield _LockedFile(fh, self._path)
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()
