"""
Bulk import of calendar events.

Records come from a CSV or JSON file and are posted one at a time, in order.
A failing row is counted and described ("Row 3: ...") and the import goes on;
rows that were already created stay created.
"""

from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from schooldash.api import ApiClient
from schooldash.errors import ApiError, HttpStatusError, ValidationError

log = logging.getLogger(__name__)

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "10:00"
DEFAULT_EVENT_TYPE = "LECTURE"
DEFAULT_PRIORITY = "NORMAL"

_TRUE = {"true", "1", "yes", "y"}
_FALSE = {"false", "0", "no", "n"}


@dataclass
class ImportResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.failed


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    return default if _blank(value) else str(value).strip()


def _flag(value: Any, default: bool) -> bool:
    if _blank(value):
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return default


def _capacity(value: Any) -> Optional[int]:
    if _blank(value):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _utc_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_import_payload(record: dict[str, Any]) -> dict[str, Any]:
    """
    Turn one import record into a POST /api/events body.

    Missing start/end times default to 09:00 and 10:00 on `date`.
    """
    day = _text(record.get("date"), "")
    start_time = _text(record.get("startTime"), DEFAULT_START_TIME)
    end_time = _text(record.get("endTime"), DEFAULT_END_TIME)
    try:
        start = datetime.fromisoformat(f"{day}T{start_time}")
        end = datetime.fromisoformat(f"{day}T{end_time}")
    except ValueError as e:
        raise ValidationError("Invalid date or time") from e

    return {
        "title": _text(record.get("title"), ""),
        "description": _text(record.get("description"), ""),
        "eventType": _text(record.get("eventType"), DEFAULT_EVENT_TYPE),
        "eventDate": _utc_iso(start),
        "endDate": _utc_iso(end),
        "location": _text(record.get("location")),
        "priority": _text(record.get("priority"), DEFAULT_PRIORITY),
        "isPublic": _flag(record.get("isPublic"), True),
        "requiresRegistration": _flag(record.get("requiresRegistration"), False),
        "capacity": _capacity(record.get("capacity")),
        "imageUrl": _text(record.get("imageUrl")),
        "contactEmail": _text(record.get("contactEmail")),
        "contactPhone": _text(record.get("contactPhone")),
    }


def import_events(client: ApiClient, records: Iterable[dict[str, Any]]) -> ImportResult:
    result = ImportResult()
    for i, record in enumerate(records, start=1):
        try:
            client.create_event(build_import_payload(record))
        except ValidationError as e:
            result.failed += 1
            result.errors.append(f"Row {i}: {e}")
        except HttpStatusError as e:
            result.failed += 1
            result.errors.append(f"Row {i}: {e.detail or e.message}")
        except ApiError as e:
            result.failed += 1
            result.errors.append(f"Row {i}: {e.message}")
        else:
            result.success += 1

    log.info("Import finished: %d created, %d failed", result.success, result.failed)
    return result


def load_import_file(path: str | Path) -> list[dict[str, Any]]:
    """
    Read import records from a .json file (a list, or {"events": [...]}) or
    a .csv file with a header row.
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ValidationError(f"Cannot read import file: {e}") from e

    if p.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {p.name}: {e}") from e
        if isinstance(data, dict):
            data = data.get("events", [])
        if not isinstance(data, list):
            raise ValidationError("Import file must contain a list of events")
        return [r for r in data if isinstance(r, dict)]

    reader = csv.DictReader(text.splitlines())
    return [{(k or "").strip(): v for k, v in row.items()} for row in reader]
