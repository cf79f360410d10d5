"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any import that might build settings,
so the global settings never point at the real cache/log directories.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

_scratch = tempfile.mkdtemp(prefix="hippo-tests-")
os.environ.setdefault("HIPPO_CACHE_DIR", os.path.join(_scratch, "cache"))
os.environ.setdefault("HIPPO_LOGS_DIR", os.path.join(_scratch, "log"))
os.environ.pop("HIPPO_SLACK_WEBHOOK_URL", None)
os.environ.pop("HIPPO_SLACK_RATE_LIMIT", None)


class FakeClock:
    """Deterministic, timezone-aware clock used to test window expiry."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class StepTimer:
    """perf_counter stand-in that moves forward by ``step`` on every call."""

    def __init__(self, step: float = 1.5, start: float = 100.0) -> None:
        self.step = step
        self.current = start - step

    def __call__(self) -> float:
        self.current += self.step
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
