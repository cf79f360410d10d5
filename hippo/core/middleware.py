"""HTTP middleware for request correlation and hippo monitoring.

Usage:
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(hippo_middleware(monitor))
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.background import BackgroundTask, BackgroundTasks

from hippo.core.config import settings
from hippo.core.exception_handlers import general_exception_handler
from hippo.core.logging import clear_request_id, set_request_id
from hippo.core.monitor import HippoMonitor

CallNext = Callable[[Request], Awaitable[Response]]


async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used; otherwise a UUID is
    generated. The ID is stored in contextvars for log correlation and
    echoed in the response headers along with the request duration.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def _chain_background(response: Response, task: BackgroundTask) -> None:
    """Run ``task`` after any background work the route already scheduled."""

    existing = response.background
    if existing is None:
        response.background = task
    elif isinstance(existing, BackgroundTasks):
        existing.add_task(task.func, *task.args, **task.kwargs)
    else:
        response.background = BackgroundTasks(tasks=[existing, task])


def hippo_middleware(monitor: HippoMonitor) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build the monitoring middleware around ``monitor``.

    Unhandled exceptions are reported to the monitor and rendered with the
    generic 500 handler, so the response and terminal hooks run for failed
    requests too. The terminal hook is attached as a background task and
    therefore runs only once the response has been sent.
    """

    async def middleware(request: Request, call_next: CallNext) -> Response:
        monitor.on_request(request)
        try:
            response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            monitor.on_exception(request, exc)
            response = await general_exception_handler(request, exc)

        monitor.on_response(request)
        _chain_background(response, BackgroundTask(monitor.on_terminate, request))
        return response

    return middleware
