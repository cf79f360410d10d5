"""Hippo: request performance logging and rate-limited Slack notifications."""

__version__ = "0.1.0"
