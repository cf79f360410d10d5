from __future__ import annotations

"""Application factory for FastAPI app.

``install_hippo`` is the integration point for host applications;
``create_app`` builds a small standalone host (health route only) with
correlation ids, exception handlers and hippo monitoring installed.
"""

from fastapi import FastAPI

from hippo.api.routes import health_router
from hippo.core.config import settings
from hippo.core.exception_handlers import setup_exception_handlers
from hippo.core.logging import configure_logging
from hippo.core.middleware import hippo_middleware, request_id_middleware
from hippo.core.monitor import HippoMonitor, build_monitor


def install_hippo(app: FastAPI, monitor: HippoMonitor | None = None) -> HippoMonitor:
    """Attach request monitoring to an existing application.

    Args:
        app: Host FastAPI application.
        monitor: Preconfigured monitor; built from global settings if omitted.

    Returns:
        The installed monitor (also available as ``app.state.hippo_monitor``).
    """
    monitor = monitor or build_monitor(settings.hippo)
    app.middleware("http")(hippo_middleware(monitor))
    app.state.hippo_monitor = monitor
    return monitor


def create_app(monitor: HippoMonitor | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Hippo",
        description=(
            "Request performance logging and rate-limited Slack notifications "
            "for production errors and hungry requests."
        ),
        version="0.1.0",
    )

    # Middleware: the last one added runs first, so request ids wrap monitoring
    install_hippo(app, monitor)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
