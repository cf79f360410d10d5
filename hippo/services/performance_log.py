"""Daily performance log files.

One file per day, ``performance-YYYY-MM-DD.log``, each line an ISO-8601
timestamp in brackets followed by a JSON ``PerformanceEntry``. Files older
than a week are removed one at a time: each completed request deletes the
file dated exactly eight days ago.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable

from hippo.adapters.rate_limit.base import utcnow
from hippo.core.errors import StorageAppError
from hippo.schemas.performance import PerformanceEntry

logger = logging.getLogger(__name__)

RETENTION_DAYS = 8


def log_filename(day: date) -> str:
    return f"performance-{day.isoformat()}.log"


class PerformanceLog:
    """Append-only sink for request performance entries."""

    def __init__(self, logs_dir: Path | str, clock: Callable[[], datetime] = utcnow) -> None:
        self.logs_dir = Path(logs_dir)
        self._clock = clock

    def path_for(self, day: date) -> Path:
        return self.logs_dir / log_filename(day)

    def append(self, entry: PerformanceEntry) -> Path:
        """Append one entry to today's file.

        Returns:
            Path of the file written.

        Raises:
            StorageAppError: If the file cannot be opened or written.
        """
        now = self._clock()
        path = self.path_for(now.date())
        line = f"[{now.isoformat(timespec='seconds')}] {entry.model_dump_json()}\n"

        try:
            with path.open("a", encoding="utf-8") as fh:
                fh.write(line)
        except OSError as exc:
            raise StorageAppError(
                code="performance_log_write_failed",
                message=f"Cannot write to {path.name}",
                details={"path": str(path)},
            ) from exc
        return path

    def cleanup(self) -> bool:
        """Delete the file dated exactly ``RETENTION_DAYS`` days ago.

        Best-effort: a missing file or a failed deletion is not an error.

        Returns:
            True if a file was deleted.
        """
        expired = self.path_for(self._clock().date() - timedelta(days=RETENTION_DAYS))
        try:
            expired.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning(
                "performance_log.cleanup_failed",
                extra={"path": str(expired), "error_msg": str(exc)},
            )
            return False

        logger.info("performance_log.deleted", extra={"path": str(expired)})
        return True
