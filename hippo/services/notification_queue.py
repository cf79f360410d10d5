"""Per-request notification staging.

Messages produced while a request is handled are queued on that request's
context and dispatched once, after the response has been sent. Nothing is
shared between requests: a request that never reaches its terminal hook
simply loses its queued messages.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field

from hippo.adapters.notify.base import AbstractDispatcher
from hippo.core.errors import DeliveryAppError, StorageAppError
from hippo.schemas.slack import SlackMessage
from hippo.services.notification_gate import AdmitResult, NotificationGate

logger = logging.getLogger(__name__)


class DispatchOutcome(enum.Enum):
    SENT = "sent"
    RATE_LIMITED = "rate_limited"
    DISABLED = "disabled"
    DROPPED = "dropped"


class NotificationQueue:
    """Insertion-ordered queue of formatted messages for one request."""

    def __init__(self) -> None:
        self._messages: list[SlackMessage] = []
        self._drained = False

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> tuple[SlackMessage, ...]:
        return tuple(self._messages)

    @property
    def drained(self) -> bool:
        return self._drained

    def enqueue(self, message: SlackMessage) -> None:
        self._messages.append(message)

    def drain_and_dispatch(
        self,
        gate: NotificationGate,
        dispatcher: AbstractDispatcher | None,
    ) -> list[DispatchOutcome]:
        """Admit and send every queued message, in insertion order.

        Only the first call dispatches; later calls return an empty list.
        Any failure while admitting or sending drops the affected message;
        the remaining messages are still dispatched.

        Args:
            gate: Admission control shared by all requests.
            dispatcher: Delivery adapter (None when no webhook is configured).

        Returns:
            One outcome per queued message.
        """
        if self._drained:
            return []
        self._drained = True

        outcomes = [self._dispatch_one(message, gate, dispatcher) for message in self._messages]
        self._messages.clear()
        return outcomes

    def _dispatch_one(
        self,
        message: SlackMessage,
        gate: NotificationGate,
        dispatcher: AbstractDispatcher | None,
    ) -> DispatchOutcome:
        if dispatcher is None:
            return DispatchOutcome.DISABLED

        try:
            result = gate.try_admit()
        except StorageAppError as exc:
            logger.error(
                "notification.dropped",
                extra={"error_code": exc.code, "error_msg": exc.message, "text": message.text},
            )
            return DispatchOutcome.DROPPED
        except Exception:  # noqa: BLE001
            logger.exception("notification.admit_crashed", extra={"text": message.text})
            return DispatchOutcome.DROPPED

        if result is AdmitResult.DISABLED:
            return DispatchOutcome.DISABLED
        if result is AdmitResult.RATE_LIMITED:
            return DispatchOutcome.RATE_LIMITED

        try:
            dispatcher.send(message)
        except DeliveryAppError as exc:
            logger.error(
                "notification.delivery_failed",
                extra={
                    "error_code": exc.code,
                    "error_msg": exc.message,
                    "details": exc.details,
                    "text": message.text,
                },
            )
            return DispatchOutcome.DROPPED
        except Exception:  # noqa: BLE001
            logger.exception("notification.dispatch_crashed", extra={"text": message.text})
            return DispatchOutcome.DROPPED
        return DispatchOutcome.SENT


@dataclass
class RequestContext:
    """Transient data attached to one request.

    Attributes:
        start_time: ``time.perf_counter()`` value taken when the request began.
        queue: Messages waiting for the terminal hook.
        exception: Unhandled exception captured during handling, if any.
    """

    start_time: float = field(default_factory=time.perf_counter)
    queue: NotificationQueue = field(default_factory=NotificationQueue)
    exception: BaseException | None = None
