"""Slack message builders for production errors and hungry requests."""

from __future__ import annotations

import traceback
from pathlib import Path

from hippo.schemas.performance import PerformanceEntry
from hippo.schemas.slack import SlackMessage, SlackSection, SlackTextField

# Frames from these locations are library code, never the cause of an error
THIRD_PARTY_MARKERS = ("/site-packages/", "/dist-packages/", "/.venv/", "/lib/python")


def _label(text: str) -> SlackTextField:
    return SlackTextField(type="mrkdwn", text=text)


def _value(text: str) -> SlackTextField:
    return SlackTextField(type="plain_text", text=text)


def trim_project_dir(path: str, project_dir: Path | str) -> str:
    """Make ``path`` relative to ``project_dir`` when it lives under it.

    Examples:
        >>> trim_project_dir("/srv/app/hippo/core/monitor.py", "/srv/app")
        'hippo/core/monitor.py'
        >>> trim_project_dir("/usr/lib/x.py", "/srv/app")
        '/usr/lib/x.py'
    """
    prefix = str(project_dir)
    if prefix and path.startswith(prefix):
        return path[len(prefix):].lstrip("/")
    return path


def _is_third_party(filename: str) -> bool:
    return any(marker in filename for marker in THIRD_PARTY_MARKERS)


def _error_code(error: BaseException) -> str:
    code = getattr(error, "code", None)
    if code is None:
        code = getattr(error, "errno", None)
    return str(code if code is not None else 0)


def describe_error_origin(error: BaseException, project_dir: Path | str) -> tuple[str, str | None]:
    """Find where an exception was raised and which project frame led there.

    Returns:
        Tuple of (location, cause). Location is ``file:line`` of the raise
        point; cause is the innermost calling frame outside third-party code,
        or None.
    """
    frames = traceback.extract_tb(error.__traceback__) if error.__traceback__ else []
    if not frames:
        return "(unknown)", None

    raised_at = frames[-1]
    location = f"{trim_project_dir(raised_at.filename, project_dir)}:{raised_at.lineno}"

    cause = None
    for frame in reversed(frames[:-1]):
        if not _is_third_party(frame.filename):
            cause = f"{trim_project_dir(frame.filename, project_dir)}:{frame.lineno}"
            break
    return location, cause


def format_error_message(
    error: BaseException,
    *,
    username: str,
    method: str,
    url: str,
    project_dir: Path | str,
) -> SlackMessage:
    location, cause = describe_error_origin(error, project_dir)
    return SlackMessage(
        text="Production error detected",
        blocks=[
            SlackSection(
                fields=[
                    _label("*ERROR*"),
                    _label("*USER*"),
                    _value("500"),
                    _value(username),
                    _label("*METHOD*"),
                    _label("*URL*"),
                    _value(method),
                    _value(url),
                ]
            ),
            SlackSection(
                fields=[
                    _label("*ERROR*"),
                    _label("*LOCATION*"),
                    _value(str(error) or type(error).__name__),
                    _value(location),
                    _label("*CODE*"),
                    _label("*CAUSE*"),
                    _value(_error_code(error)),
                    _value(cause or "(no additional information)"),
                ]
            ),
        ],
    )


def format_hungry_message(entry: PerformanceEntry) -> SlackMessage:
    return SlackMessage(
        text="Hungry request detected",
        blocks=[
            SlackSection(
                fields=[
                    _label("*URL*"),
                    _label("*MEMORY*"),
                    _value(f"{entry.method} {entry.url}"),
                    _value(f"{entry.megabytes:,}MB"),
                    _label("*Route*"),
                    _label("*TIME*"),
                    _value(entry.route or "(none)"),
                    _value(f"{entry.seconds:,.0f}s"),
                ]
            ),
        ],
    )
