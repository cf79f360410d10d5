"""Notification delivery adapters."""

from hippo.adapters.notify.base import AbstractDispatcher
from hippo.adapters.notify.slack_webhook import SlackWebhookDispatcher

__all__ = ["AbstractDispatcher", "SlackWebhookDispatcher"]
