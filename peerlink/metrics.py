"""CSV journal for discovery sessions and connection-state changes."""
from __future__ import annotations

import csv
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


DEFAULT_FIELDS: Sequence[str] = (
    "timestamp",
    "event",
    "peer",
    "status",
    "value",
    "extra",
)


def _normalize_extra(extra: Mapping[str, Any]) -> str:
    if not extra:
        return ""
    try:
        return json.dumps(extra, separators=(",", ":"), ensure_ascii=True, sort_keys=True)
    except (TypeError, ValueError):
        return repr(extra)


@dataclass(slots=True)
class MetricRecord:
    """One journal row."""

    timestamp: str
    event: str
    peer: Optional[str] = None
    status: Optional[str] = None
    value: Optional[float] = None
    extra: str = ""

    def as_row(self, fields: Sequence[str]) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "event": self.event,
            "peer": self.peer or "",
            "status": self.status or "",
            "value": self.value if self.value is not None else "",
            "extra": self.extra,
        }
        return {key: row.get(key, "") for key in fields}


class MetricsLogger:
    """Append-only CSV journal.

    Rows are written and flushed one at a time so the file can be tailed
    while a session is running. ``static_extra`` is merged into the extra
    column of every row.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        static_extra: Mapping[str, Any] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.path = Path(path)
        self.fields: Sequence[str] = DEFAULT_FIELDS
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._static_extra: Dict[str, Any] = dict(static_extra or {})
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._ensure_header()

    def _ensure_header(self) -> None:
        if self.path.exists() and self.path.stat().st_size > 0:
            return
        with self._lock:
            with self.path.open("w", newline="", encoding="utf-8") as handle:
                csv.DictWriter(handle, fieldnames=self.fields, extrasaction="ignore").writeheader()

    def log(
        self,
        event: str,
        *,
        peer: Optional[str] = None,
        status: Optional[str] = None,
        value: Optional[float] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        payload: Dict[str, Any] = dict(self._static_extra)
        if extra:
            payload.update(extra)
        record = MetricRecord(
            timestamp=self._timestamp(),
            event=event,
            peer=peer,
            status=status,
            value=value,
            extra=_normalize_extra(payload),
        )
        row = record.as_row(self.fields)
        with self._lock:
            with self.path.open("a", newline="", encoding="utf-8") as handle:
                csv.DictWriter(handle, fieldnames=self.fields, extrasaction="ignore").writerow(row)
                handle.flush()

    def _timestamp(self) -> str:
        dt = self._clock()
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def safe_log(journal: Optional[MetricsLogger], event: str, **payload: Any) -> None:
    """Write to ``journal`` if one is set; journal I/O errors are only logged."""
    if journal is None:
        return
    try:
        journal.log(event, **payload)
    except Exception:  # pragma: no cover - I/O failure safeguard
        logger.debug("Journal write failed for %s", event, exc_info=True)


__all__ = [
    "DEFAULT_FIELDS",
    "MetricRecord",
    "MetricsLogger",
    "safe_log",
]
