"""Admission control for outbound Slack notifications.

Two windows guard the webhook: an hourly window limited to ``hourly_limit``
and a five-minute window limited to ``ceil(hourly_limit / 2)``. The decision
is taken under the store's exclusive lock so every worker process sees and
updates the same counters:

1. Lock the shared record and load it (missing or malformed: fresh windows).
2. Evaluate the hourly window, then the five-minute window. Expired windows
   reset; a live window at its limit denies.
3. On admission increment both counts. Window resets are persisted even when
   the overall answer is a denial.
4. Unlock.
"""

from __future__ import annotations

import enum
import logging
import math
from datetime import datetime
from typing import Callable

from hippo.adapters.rate_limit.base import (
    FIVE_MINUTES,
    HOUR,
    AbstractRateLimitStore,
    RateLimitState,
    evaluate_window,
    utcnow,
)

logger = logging.getLogger(__name__)


class AdmitResult(enum.Enum):
    ADMITTED = "admitted"
    RATE_LIMITED = "rate_limited"
    DISABLED = "disabled"


def five_minute_limit(hourly_limit: int) -> int:
    return math.ceil(hourly_limit / 2)


class NotificationGate:
    """Decides whether a notification may be sent right now."""

    def __init__(
        self,
        store: AbstractRateLimitStore | None,
        *,
        hourly_limit: int | None,
        enabled: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the gate.

        Args:
            store: Shared record store (may be None when disabled).
            hourly_limit: Notifications per hour, or None to disable.
            enabled: False when no webhook target is configured.
            clock: Time source returning timezone-aware datetimes.

        Raises:
            ValueError: If hourly_limit is set but lower than 1.
        """
        if hourly_limit is not None and hourly_limit < 1:
            raise ValueError("hourly_limit must be >= 1")

        self._store = store
        self._hourly_limit = hourly_limit
        self._enabled = enabled and hourly_limit is not None and store is not None
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._enabled

    def try_admit(self) -> AdmitResult:
        """Run one admission decision.

        Returns:
            AdmitResult.DISABLED without touching storage when disabled,
            otherwise ADMITTED or RATE_LIMITED.

        Raises:
            StorageAppError: If the record cannot be locked or written.
        """
        store = self._store
        hourly_limit = self._hourly_limit
        if not self._enabled or store is None or hourly_limit is None:
            return AdmitResult.DISABLED

        with store.locked() as record:
            now = self._clock()
            loaded = record.load_or_default(now)

            hourly, hourly_ok = evaluate_window(loaded.hourly, now, HOUR, hourly_limit)
            if not hourly_ok:
                self._log_denied("hourly", loaded, hourly_limit)
                return AdmitResult.RATE_LIMITED

            five_minute, five_minute_ok = evaluate_window(
                loaded.five_minute, now, FIVE_MINUTES, five_minute_limit(hourly_limit)
            )
            if not five_minute_ok:
                evaluated = RateLimitState(hourly=hourly, five_minute=five_minute)
                if evaluated != loaded:
                    record.persist(evaluated)
                self._log_denied("five_minute", loaded, hourly_limit)
                return AdmitResult.RATE_LIMITED

            admitted = RateLimitState(
                hourly=hourly.incremented(),
                five_minute=five_minute.incremented(),
            )
            record.persist(admitted)

        logger.debug(
            "notification.admitted",
            extra={
                "hourly_count": admitted.hourly.count,
                "five_minute_count": admitted.five_minute.count,
                "hourly_limit": hourly_limit,
            },
        )
        return AdmitResult.ADMITTED

    def _log_denied(self, window: str, state: RateLimitState, hourly_limit: int) -> None:
        logger.info(
            "notification.rate_limited",
            extra={
                "window": window,
                "hourly_count": state.hourly.count,
                "five_minute_count": state.five_minute.count,
                "hourly_limit": hourly_limit,
            },
        )
