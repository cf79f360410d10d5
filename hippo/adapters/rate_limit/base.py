"""Sliding window counters and the rate limit store interface.

The notification gate depends on this abstraction (not the concrete storage)
so the shared file can be replaced by another single-writer backend without
touching the admission logic.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Iterator

from hippo.core.errors import MalformedStateError

HOUR = timedelta(hours=1)
FIVE_MINUTES = timedelta(minutes=5)

_RECORD_RE = re.compile(r"^1 hour (\S+) (\d+)\n5 minute (\S+) (\d+)\s*$")


@dataclass(frozen=True)
class WindowCounter:
    """Notifications admitted since ``anchor``.

    Attributes:
        anchor: When the current window began (timezone-aware).
        count: Admitted notifications in the window, never negative.
    """

    anchor: datetime
    count: int = 0

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("count must be >= 0")

    def is_expired(self, now: datetime, duration: timedelta) -> bool:
        return now - self.anchor >= duration

    def incremented(self) -> WindowCounter:
        return replace(self, count=self.count + 1)


def evaluate_window(
    counter: WindowCounter,
    now: datetime,
    duration: timedelta,
    limit: int,
) -> tuple[WindowCounter, bool]:
    """Decide whether one window admits another notification.

    An expired window is reset to ``(now, 0)`` and admits, whatever its old
    count was. A live window at or above ``limit`` denies and is returned
    unchanged. Admission never increments; the caller does that once every
    window has admitted.

    Args:
        counter: Current state of the window.
        now: Evaluation time.
        duration: Window length.
        limit: Maximum admitted notifications per window.

    Returns:
        Tuple of (evaluated counter, admitted).
    """
    if counter.is_expired(now, duration):
        return WindowCounter(anchor=now, count=0), True
    if counter.count >= limit:
        return counter, False
    return counter, True


@dataclass(frozen=True)
class RateLimitState:
    """The shared record: one hourly and one five-minute window."""

    hourly: WindowCounter
    five_minute: WindowCounter

    @classmethod
    def fresh(cls, now: datetime) -> RateLimitState:
        return cls(
            hourly=WindowCounter(anchor=now, count=0),
            five_minute=WindowCounter(anchor=now, count=0),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def serialize_state(state: RateLimitState) -> str:
    """Render the two-line record format.

    Example:
        1 hour 2024-05-01T10:00:00+00:00 3
        5 minute 2024-05-01T10:55:00+00:00 1
    """
    return "1 hour {} {}\n5 minute {} {}".format(
        state.hourly.anchor.isoformat(),
        state.hourly.count,
        state.five_minute.anchor.isoformat(),
        state.five_minute.count,
    )


def parse_state(raw: str) -> RateLimitState:
    """Parse the two-line record format.

    Raises:
        MalformedStateError: If the text deviates from the record shape.
    """
    match = _RECORD_RE.match(raw)
    if not match:
        raise MalformedStateError(
            code="rate_limit_record_malformed",
            message="Rate limit record does not match the expected format",
            details={"context": {"length": len(raw)}},
        )

    try:
        hourly_anchor = _parse_timestamp(match.group(1))
        five_minute_anchor = _parse_timestamp(match.group(3))
    except ValueError as exc:
        raise MalformedStateError(
            code="rate_limit_record_bad_timestamp",
            message=f"Rate limit record has an invalid timestamp: {exc}",
        ) from exc

    return RateLimitState(
        hourly=WindowCounter(anchor=hourly_anchor, count=int(match.group(2))),
        five_minute=WindowCounter(anchor=five_minute_anchor, count=int(match.group(4))),
    )


class LockedRecord(ABC):
    """Access to the shared record while its exclusive lock is held."""

    @abstractmethod
    def load_or_default(self, now: datetime) -> RateLimitState:
        """Read the record, falling back to a fresh state anchored at ``now``.

        Never raises for missing or malformed content.
        """
        raise NotImplementedError

    @abstractmethod
    def persist(self, state: RateLimitState) -> None:
        """Replace the record with ``state``.

        Raises:
            StorageAppError: If the backing medium cannot be written.
        """
        raise NotImplementedError


class AbstractRateLimitStore(ABC):
    """Interface for the durable, shared rate limit record."""

    @abstractmethod
    @contextmanager
    def locked(self) -> Iterator[LockedRecord]:
        """Hold the exclusive lock for the duration of the ``with`` block.

        Raises:
            StorageAppError: If the lock cannot be acquired.
        """
        raise NotImplementedError

    def load_or_default(self, now: datetime | None = None) -> RateLimitState:
        with self.locked() as record:
            return record.load_or_default(now or utcnow())

    def persist(self, state: RateLimitState) -> None:
        with self.locked() as record:
            record.persist(state)
