"""In-memory rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around the record.
- Holds the serialized text rather than the state object, so malformed
  records can be simulated exactly as with the shared file.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from hippo.adapters.rate_limit.base import (
    AbstractRateLimitStore,
    LockedRecord,
    RateLimitState,
    parse_state,
    serialize_state,
)
from hippo.core.errors import MalformedStateError


class _LockedText(LockedRecord):
    def __init__(self, store: InMemoryRateLimitStore) -> None:
        self._store = store

    def load_or_default(self, now: datetime) -> RateLimitState:
        if not self._store.raw:
            return RateLimitState.fresh(now)
        try:
            return parse_state(self._store.raw)
        except MalformedStateError:
            return RateLimitState.fresh(now)

    def persist(self, state: RateLimitState) -> None:
        self._store.raw = serialize_state(state)
        self._store.writes += 1


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Rate limit record kept in process memory.

    Attributes:
        raw: Current record text ("" when never written).
        acquisitions: Number of times the lock was taken.
        writes: Number of persisted records.
    """

    def __init__(self, raw: str = "") -> None:
        self.raw = raw
        self.acquisitions = 0
        self.writes = 0
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator[LockedRecord]:
        with self._lock:
            self.acquisitions += 1
            yield _LockedText(self)
