"""Tests for hippo settings and monitor wiring."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from hippo.adapters.notify.slack_webhook import SlackWebhookDispatcher
from hippo.core.config import HippoSettings, parse_roles
from hippo.core.monitor import build_monitor
from hippo.services.notification_gate import AdmitResult


def test_parse_roles() -> None:
    assert parse_roles("ROLE_DEV, ROLE_ADMIN ,,") == {"ROLE_DEV", "ROLE_ADMIN"}
    assert parse_roles("") == set()
    assert parse_roles(None) == set()


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HIPPO_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("HIPPO_ERROR_ROLES", "ROLE_DEV,ROLE_ADMIN")
    monkeypatch.setenv("HIPPO_PERFORMANCE_LOGGING_THRESHOLD", "250.5")
    monkeypatch.setenv("HIPPO_SLACK_WEBHOOK_URL", "https://hooks.slack.test/x")
    monkeypatch.setenv("HIPPO_SLACK_RATE_LIMIT", "10")

    cfg = HippoSettings()

    assert cfg.cache_dir == tmp_path / "cache"
    assert cfg.error_role_set == {"ROLE_DEV", "ROLE_ADMIN"}
    assert cfg.performance_logging_threshold == 250.5
    assert cfg.notifications_enabled is True


@pytest.mark.parametrize(
    "webhook,limit,enabled",
    [
        (None, 10, False),
        ("https://hooks.slack.test/x", None, False),
        ("https://hooks.slack.test/x", 10, True),
    ],
)
def test_notifications_need_webhook_and_limit(webhook, limit, enabled, tmp_path: Path) -> None:
    cfg = HippoSettings(slack_webhook_url=webhook, slack_rate_limit=limit, cache_dir=tmp_path)

    assert cfg.notifications_enabled is enabled


def test_rate_limit_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        HippoSettings(slack_rate_limit=0)


def test_build_monitor_without_webhook_is_disabled(tmp_path: Path) -> None:
    cfg = HippoSettings(cache_dir=tmp_path / "cache", logs_dir=tmp_path / "log", slack_rate_limit=10)

    monitor = build_monitor(cfg)

    assert monitor.dispatcher is None
    assert monitor.gate.try_admit() is AdmitResult.DISABLED
    assert not (tmp_path / "cache" / "hippo-metadata.txt").exists()
    assert (tmp_path / "log").is_dir()


def test_build_monitor_with_webhook(tmp_path: Path) -> None:
    cfg = HippoSettings(
        cache_dir=tmp_path / "cache",
        logs_dir=tmp_path / "log",
        slack_webhook_url="https://hooks.slack.test/x",
        slack_rate_limit=2,
        error_roles="ROLE_DEV",
    )

    monitor = build_monitor(cfg)

    assert isinstance(monitor.dispatcher, SlackWebhookDispatcher)
    assert monitor.error_roles == {"ROLE_DEV"}
    assert monitor.gate.try_admit() is AdmitResult.ADMITTED
    assert monitor.gate.try_admit() is AdmitResult.RATE_LIMITED
    assert (tmp_path / "cache" / "hippo-metadata.txt").read_text().startswith("1 hour ")
