"""Request lifecycle hooks: performance logging and Slack notifications.

The monitor observes four moments of every request:
- start: a RequestContext is attached to the request
- unhandled exception: users holding an error role trigger an error message
- response: timing and peak memory are logged, hungry requests are reported
- terminate (after the response was sent): old logs are pruned and the
  request's queued messages are admitted and delivered

Every hook is an error boundary. Failures in this side channel are logged and
discarded so they can never affect the response itself.
"""

from __future__ import annotations

import logging
import math
import resource
import sys
import time
from pathlib import Path
from typing import Callable

from fastapi import Request
from starlette.exceptions import HTTPException

from hippo.adapters.notify.base import AbstractDispatcher
from hippo.adapters.notify.slack_webhook import SlackWebhookDispatcher
from hippo.adapters.rate_limit.file_store import FileRateLimitStore
from hippo.core.config import HippoSettings, settings as global_settings
from hippo.core.errors import AppError, StorageAppError
from hippo.core.identity import IdentityResolver, state_identity_resolver
from hippo.schemas.performance import PerformanceEntry
from hippo.services.messages import format_error_message, format_hungry_message
from hippo.services.notification_gate import NotificationGate
from hippo.services.notification_queue import DispatchOutcome, RequestContext
from hippo.services.performance_log import PerformanceLog

logger = logging.getLogger(__name__)

CONTEXT_STATE_ATTR = "hippo"

BYTES_PER_MB = 1048576


def peak_memory_bytes() -> int:
    """Peak resident memory of this process over its whole lifetime.

    This is a high-water mark, not the usage of the current request: it never
    decreases, so in a long-lived worker every request after a heavy one
    reports that heavy request's peak. ru_maxrss is KiB on Linux, bytes on macOS.
    """
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return peak if sys.platform == "darwin" else peak * 1024


def get_context(request: Request) -> RequestContext | None:
    return getattr(request.state, CONTEXT_STATE_ATTR, None)


def _route_path(request: Request) -> str | None:
    route = request.scope.get("route")
    return getattr(route, "path", None)


class HippoMonitor:
    """Per-application monitor shared by all requests of a worker."""

    def __init__(
        self,
        *,
        gate: NotificationGate,
        dispatcher: AbstractDispatcher | None,
        performance_log: PerformanceLog,
        error_roles: set[str],
        project_dir: Path | str,
        performance_logging_threshold: float | None = None,
        identity_resolver: IdentityResolver = state_identity_resolver,
        memory_probe: Callable[[], int] = peak_memory_bytes,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.gate = gate
        self.dispatcher = dispatcher
        self.performance_log = performance_log
        self.error_roles = set(error_roles)
        self.project_dir = project_dir
        self.performance_logging_threshold = performance_logging_threshold
        self._resolve_identity = identity_resolver
        self._memory_probe = memory_probe
        self._timer = timer

    def on_request(self, request: Request) -> RequestContext:
        context = RequestContext(start_time=self._timer())
        setattr(request.state, CONTEXT_STATE_ATTR, context)
        return context

    def on_exception(self, request: Request, error: BaseException) -> None:
        """Queue an error message when the current user holds an error role.

        Handled HTTP and application errors are not reported, and an exception
        already captured on the request is reported only once.
        """
        if isinstance(error, (HTTPException, AppError)):
            return

        try:
            context = get_context(request)
            if context is None or context.exception is error:
                return
            context.exception = error

            identity = self._resolve_identity(request)
            if identity is None:
                return

            if identity.has_any_role(self.error_roles):
                context.queue.enqueue(
                    format_error_message(
                        error,
                        username=identity.username,
                        method=request.method,
                        url=str(request.url),
                        project_dir=self.project_dir,
                    )
                )
        except Exception:  # noqa: BLE001
            # Already handling a failure; never raise a second one from here.
            logger.debug("hippo.exception_hook_failed", exc_info=True)

    def measure(self, request: Request) -> PerformanceEntry | None:
        context = get_context(request)
        if context is None:
            return None

        seconds = round(self._timer() - context.start_time, 2)
        megabytes = math.ceil(self._memory_probe() / BYTES_PER_MB)
        return PerformanceEntry(
            method=request.method,
            url=str(request.url),
            route=_route_path(request),
            seconds=seconds,
            megabytes=megabytes,
        )

    def is_hungry(self, entry: PerformanceEntry) -> bool:
        threshold = self.performance_logging_threshold
        return threshold is None or entry.hungriness >= threshold

    def on_response(self, request: Request) -> PerformanceEntry | None:
        """Log and report the request when it crossed the hungriness threshold."""
        try:
            entry = self.measure(request)
            if entry is None or not self.is_hungry(entry):
                return entry

            try:
                self.performance_log.append(entry)
            except StorageAppError as exc:
                logger.error(
                    "performance_log.write_failed",
                    extra={"error_code": exc.code, "error_msg": exc.message},
                )

            context = get_context(request)
            if context is not None:
                context.queue.enqueue(format_hungry_message(entry))
            return entry
        except Exception:  # noqa: BLE001
            logger.exception("hippo.response_hook_failed")
            return None

    def on_terminate(self, request: Request) -> list[DispatchOutcome]:
        """Prune expired logs and flush the request's queued messages.

        Runs after the response has been sent.
        """
        try:
            self.performance_log.cleanup()
        except Exception:  # noqa: BLE001
            logger.exception("hippo.cleanup_failed")

        context = get_context(request)
        if context is None:
            return []

        try:
            outcomes = context.queue.drain_and_dispatch(self.gate, self.dispatcher)
        except Exception:  # noqa: BLE001
            logger.exception("hippo.dispatch_failed")
            return []

        if outcomes:
            logger.info(
                "hippo.queue_drained",
                extra={"outcomes": [outcome.value for outcome in outcomes]},
            )
        return outcomes


def build_monitor(
    hippo_settings: HippoSettings | None = None,
    *,
    identity_resolver: IdentityResolver = state_identity_resolver,
) -> HippoMonitor:
    """Wire the production monitor from settings.

    Args:
        hippo_settings: Optional settings; defaults to the global settings.
        identity_resolver: Maps a request to the signed-in user.

    Returns:
        HippoMonitor backed by the shared file store and the Slack webhook.
    """
    cfg = hippo_settings or global_settings.hippo

    dispatcher: AbstractDispatcher | None = None
    if cfg.slack_webhook_url:
        dispatcher = SlackWebhookDispatcher(
            webhook_url=cfg.slack_webhook_url,
            timeout_seconds=cfg.slack_timeout_seconds,
        )

    gate = NotificationGate(
        FileRateLimitStore(cfg.cache_dir),
        hourly_limit=cfg.slack_rate_limit,
        enabled=cfg.notifications_enabled,
    )

    try:
        Path(cfg.logs_dir).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning(
            "performance_log.dir_unavailable",
            extra={"path": str(cfg.logs_dir), "error_msg": str(exc)},
        )

    logger.info(
        "hippo.configured",
        extra={
            "notifications_enabled": gate.enabled,
            "slack_rate_limit": cfg.slack_rate_limit,
            "performance_logging_threshold": cfg.performance_logging_threshold,
            "error_roles": sorted(cfg.error_role_set),
        },
    )

    return HippoMonitor(
        gate=gate,
        dispatcher=dispatcher,
        performance_log=PerformanceLog(cfg.logs_dir),
        error_roles=cfg.error_role_set,
        project_dir=cfg.project_dir,
        performance_logging_threshold=cfg.performance_logging_threshold,
        identity_resolver=identity_resolver,
    )
