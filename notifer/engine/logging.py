"""
Notifer Audit Log — One JSON line per notification attempt or settings change.

Layout: {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl

    notifications/execution   sent / skipped / failed attempts
    config/security           global default changes

Writes are synchronous and append-only; a failed write is reported on the
module logger and never interrupts the notification itself.
Token values never reach these entries.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime, timedelta, timezone
from itertools import islice
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger("notifer.engine.logging")

OBJECT_TYPE_CATEGORIES = {
    "notifications": ("execution",),
    "config": ("security",),
}


class LogEntry:
    """A structured record bound for one object_type/category folder."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        if category not in OBJECT_TYPE_CATEGORIES.get(object_type, ()):
            raise ValueError(f"Unknown log destination: {object_type}/{category}")
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Appends LogEntry lines to daily JSONL files and reads them back.

    Usage:
        audit = FileLogger(".notifer/logs")
        audit.write(log_notification_skipped("ABORTED", "MyJob", 42))
        audit.query("notifications", "execution", filters={"event": "notification_failed"})
    """

    def __init__(self, log_dir: str = ".notifer/logs"):
        self._log_dir = Path(log_dir)
        self._lock = threading.Lock()

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def path_for(self, object_type: str, category: str, day: Optional[date] = None) -> Path:
        day = day or date.today()
        return self._log_dir / object_type / category / f"{day.isoformat()}.jsonl"

    def write(self, entry: LogEntry) -> bool:
        """Append one entry. Returns False (and logs) if the file could not be written."""
        path = self.path_for(entry.object_type, entry.category)
        line = entry.to_json() + "\n"
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)
        except OSError as e:
            logger.error(f"Could not write audit entry to {path}: {e}")
            return False
        return True

    def query(
        self,
        object_type: str,
        category: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        Entries for object_type/category, oldest day first, in write order.

        start_date defaults to 7 days before end_date (default today).
        filters keeps only entries whose top-level keys equal all given values.
        """
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=7)
        matches = (
            data for data in self._iter_range(object_type, category, start_date, end_date)
            if not filters or all(data.get(k) == v for k, v in filters.items())
        )
        return list(islice(matches, limit))

    def _iter_range(
        self, object_type: str, category: str, start_date: date, end_date: date,
    ) -> Iterator[Dict[str, Any]]:
        day = start_date
        while day <= end_date:
            path = self.path_for(object_type, category, day)
            if path.exists():
                yield from _read_lines(path)
            day += timedelta(days=1)


def _read_lines(path: Path) -> Iterator[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        logger.warning(f"Could not read audit file {path}: {e}")
        return
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed audit line in {path}")


# ---------------------------------------------------------------------------
# Entry builders
# ---------------------------------------------------------------------------

def _base_entry(event: str, level: str, **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    entry.update({k: v for k, v in extra.items() if v is not None})
    return entry


def log_notification_sent(
    topic: str,
    server_url: str,
    notification_id: str,
    outcome: Optional[str],
    priority: int,
    tags: List[str],
    duration_ms: float,
    job_name: Optional[str] = None,
    build_number: Optional[Any] = None,
) -> LogEntry:
    """Build a successful notification log entry."""
    data = _base_entry(
        event="notification_sent",
        level="INFO",
        topic=topic,
        server_url=server_url,
        notification_id=notification_id,
        outcome=outcome,
        priority=priority,
        tags=tags,
        duration_ms=round(duration_ms, 2),
        job_name=job_name,
        build_number=build_number,
    )
    return LogEntry("notifications", "execution", data)


def log_notification_skipped(
    outcome: Optional[str],
    job_name: Optional[str] = None,
    build_number: Optional[Any] = None,
) -> LogEntry:
    """Build a log entry for an outcome the preferences exclude."""
    data = _base_entry(
        event="notification_skipped",
        level="INFO",
        outcome=outcome,
        job_name=job_name,
        build_number=build_number,
    )
    return LogEntry("notifications", "execution", data)


def log_notification_failed(
    error: Dict[str, Any],
    outcome: Optional[str],
    fail_on_error: bool,
    job_name: Optional[str] = None,
    build_number: Optional[Any] = None,
) -> LogEntry:
    """Build a failed-attempt log entry from NotiferError.to_dict()."""
    data = _base_entry(
        event="notification_failed",
        level="ERROR" if fail_on_error else "WARNING",
        outcome=outcome,
        fail_on_error=fail_on_error,
        error_type=error.get("error_type"),
        error=error.get("message"),
        status_code=error.get("status_code"),
        topic=error.get("topic"),
        job_name=job_name,
        build_number=build_number,
    )
    return LogEntry("notifications", "execution", data)


def log_config_change(changed: Dict[str, Any], actor: Optional[str] = None) -> LogEntry:
    """Build a global-defaults change entry."""
    data = _base_entry(
        event="global_defaults_updated",
        level="INFO",
        changed=changed,
        actor=actor,
    )
    return LogEntry("config", "security", data)
