from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports whether Slack notifications are active in this worker alongside
    the usual liveness status.

    Returns:
        dict: ``status`` ("ok") and ``notifications`` ("enabled"/"disabled").
    """

    monitor = getattr(request.app.state, "hippo_monitor", None)
    enabled = bool(monitor and monitor.gate.enabled)
    return {"status": "ok", "notifications": "enabled" if enabled else "disabled"}
