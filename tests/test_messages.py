"""Tests for Slack message formatting."""

from pathlib import Path

from hippo.core.errors import AppError
from hippo.schemas.performance import PerformanceEntry
from hippo.services.messages import (
    describe_error_origin,
    format_error_message,
    format_hungry_message,
    trim_project_dir,
)

PROJECT_DIR = Path(__file__).resolve().parents[1]


def _fail() -> None:
    raise RuntimeError("database went away")


def _caller() -> None:
    _fail()


def _raised(fn) -> BaseException:
    try:
        fn()
    except Exception as exc:  # noqa: BLE001
        return exc
    raise AssertionError("expected an exception")


def _texts(section) -> list[str]:
    return [field.text for field in section.fields]


def test_trim_project_dir() -> None:
    assert trim_project_dir("/srv/app/src/x.py", "/srv/app") == "src/x.py"
    assert trim_project_dir("/srv/other/x.py", "/srv/app") == "/srv/other/x.py"


def test_error_origin_points_at_raise_and_caller() -> None:
    error = _raised(_caller)

    location, cause = describe_error_origin(error, PROJECT_DIR)

    assert location.startswith("tests/test_messages.py:")
    assert cause is not None
    assert cause.startswith("tests/test_messages.py:")
    assert cause != location


def test_error_origin_without_traceback() -> None:
    assert describe_error_origin(RuntimeError("x"), PROJECT_DIR) == ("(unknown)", None)


def test_error_message_layout() -> None:
    error = _raised(_caller)

    message = format_error_message(
        error,
        username="alice",
        method="POST",
        url="https://example.test/orders",
        project_dir=PROJECT_DIR,
    )

    assert message.text == "Production error detected"
    first, second = message.blocks
    assert _texts(first) == [
        "*ERROR*", "*USER*", "500", "alice",
        "*METHOD*", "*URL*", "POST", "https://example.test/orders",
    ]
    texts = _texts(second)
    assert texts[:3] == ["*ERROR*", "*LOCATION*", "database went away"]
    assert texts[4:7] == ["*CODE*", "*CAUSE*", "0"]
    assert [field.type for field in first.fields[:2]] == ["mrkdwn", "mrkdwn"]
    assert first.fields[2].type == "plain_text"


def _raise(exc: BaseException) -> None:
    raise exc


def test_error_code_comes_from_exception() -> None:
    error = _raised(lambda: _raise(AppError(code="bad_input", message="nope")))
    message = format_error_message(error, username="bob", method="GET", url="/", project_dir=PROJECT_DIR)
    assert _texts(message.blocks[1])[6] == "bad_input"

    os_error = _raised(lambda: open(PROJECT_DIR / "does-not-exist.txt"))
    message = format_error_message(os_error, username="bob", method="GET", url="/", project_dir=PROJECT_DIR)
    assert _texts(message.blocks[1])[6] == "2"


def test_error_without_traceback_or_message() -> None:
    message = format_error_message(
        RuntimeError(""), username="x", method="GET", url="/", project_dir=PROJECT_DIR
    )

    texts = _texts(message.blocks[1])
    assert texts[2] == "RuntimeError"
    assert texts[3] == "(unknown)"
    assert texts[7] == "(no additional information)"


def test_hungry_message_layout() -> None:
    entry = PerformanceEntry(
        method="GET",
        url="https://example.test/reports",
        route="/reports",
        seconds=12.4,
        megabytes=1536,
    )

    message = format_hungry_message(entry)

    assert message.text == "Hungry request detected"
    assert _texts(message.blocks[0]) == [
        "*URL*", "*MEMORY*", "GET https://example.test/reports", "1,536MB",
        "*Route*", "*TIME*", "/reports", "12s",
    ]
