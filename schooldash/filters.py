"""
Filtering, sorting and pagination of in-memory lists.

All functions here are pure and rescan the full list on every call; pages
call them whenever a filter, the search text or the sort order changes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Sequence, TypeVar

from schooldash.model import CATEGORY_LABELS, PRIORITY_LABELS, AcademicEvent, Semester, StudentAttendance

T = TypeVar("T")

DATE_RANGES = ("all", "today", "week", "month", "semester")
DATE_RANGE_LABELS = {
    "today": "Today",
    "week": "This Week",
    "month": "This Month",
    "semester": "This Semester",
}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class EventFilters:
    search: str = ""
    category: str = "all"
    priority: str = "all"
    status: str = "all"
    date_range: str = "all"

    def is_default(self) -> bool:
        return self == EventFilters()


def _in_date_range(start: datetime, date_range: str, today: date, semester: Optional[Semester]) -> bool:
    day = start.date()
    if date_range == "today":
        return day == today
    if date_range == "week":
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        return week_start <= day <= week_start + timedelta(days=6)
    if date_range == "month":
        return day.year == today.year and day.month == today.month
    if date_range == "semester":
        return semester is None or semester.contains(start)
    return True


def matches_event(
    event: AcademicEvent,
    filters: EventFilters,
    today: Optional[date] = None,
    semester: Optional[Semester] = None,
) -> bool:
    query = filters.search.strip().lower()
    if query and query not in event.title.lower() and query not in (event.description or "").lower():
        return False
    if filters.category != "all" and event.category != filters.category:
        return False
    if filters.priority != "all" and event.priority != filters.priority:
        return False
    if filters.status != "all" and event.status != filters.status:
        return False
    if filters.date_range != "all":
        return _in_date_range(event.start, filters.date_range, today or date.today(), semester)
    return True


def filter_events(
    events: Sequence[AcademicEvent],
    filters: EventFilters,
    today: Optional[date] = None,
    semester: Optional[Semester] = None,
) -> list[AcademicEvent]:
    today = today or date.today()
    return [ev for ev in events if matches_event(ev, filters, today, semester)]


def filter_chips(filters: EventFilters) -> dict[str, str]:
    """Human readable labels for the active (non-default) filters."""
    chips: dict[str, str] = {}
    if filters.search.strip():
        chips["search"] = f'"{filters.search.strip()}"'
    if filters.category != "all":
        chips["category"] = CATEGORY_LABELS.get(filters.category, filters.category)
    if filters.priority != "all":
        chips["priority"] = PRIORITY_LABELS.get(filters.priority, filters.priority)
    if filters.status != "all":
        chips["status"] = filters.status.capitalize()
    if filters.date_range != "all":
        chips["dateRange"] = DATE_RANGE_LABELS.get(filters.date_range, filters.date_range)
    return chips


def upcoming_events(events: Sequence[AcademicEvent], now: Optional[datetime] = None, limit: int = 5) -> list[AcademicEvent]:
    """Events starting within the next 7 days, earliest first (ignores filters)."""
    now = now or datetime.now()
    horizon = now + timedelta(days=7)
    soon = [ev for ev in events if now <= ev.start <= horizon]
    soon.sort(key=lambda ev: ev.start)
    return soon[:limit]


def event_stats(events: Sequence[AcademicEvent]) -> dict[str, int]:
    return {
        "total": len(events),
        "published": sum(1 for ev in events if ev.status == "published"),
        "pending": sum(1 for ev in events if ev.status == "draft"),
        "critical": sum(1 for ev in events if ev.priority == "critical"),
    }


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------


@dataclass
class StudentFilters:
    search: str = ""
    department: str = "all"
    course: str = "all"
    year_level: str = "all"
    section: str = "all"
    risk_level: str = "all"
    status: str = "all"

    def to_query(self) -> dict[str, Any]:
        """Query parameters understood by /api/attendance/students."""
        return {
            "q": self.search.strip() or None,
            "departmentId": self.department,
            "courseId": self.course,
            "yearLevel": self.year_level,
            "sectionId": self.section,
            "riskLevel": self.risk_level,
            "status": self.status,
        }

    def active_count(self) -> int:
        defaults = StudentFilters()
        return sum(1 for f in fields(self) if getattr(self, f.name) != getattr(defaults, f.name))


def matches_student(student: StudentAttendance, filters: StudentFilters) -> bool:
    query = filters.search.strip().lower()
    if query:
        hay = " ".join([student.name, student.student_number, student.department, student.course]).lower()
        if query not in hay:
            return False
    pairs = [
        (filters.department, student.department),
        (filters.course, student.course),
        (filters.year_level, student.year_level),
        (filters.section, student.section),
        (filters.risk_level, student.risk_level),
        (filters.status, student.status),
    ]
    for wanted, actual in pairs:
        if wanted != "all" and wanted.lower() != (actual or "").lower():
            return False
    return True


def filter_students(students: Sequence[StudentAttendance], filters: StudentFilters) -> list[StudentAttendance]:
    return [s for s in students if matches_student(s, filters)]


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def sort_records(items: Sequence[T], key: str, direction: str = "asc") -> list[T]:
    """
    Sort by attribute (or dict key) `key`.

    Strings compare case-insensitively, numbers and dates natively. Records
    whose value is missing always end up last, whatever the direction.
    """
    def get(item: T) -> Any:
        if isinstance(item, dict):
            return item.get(key)
        return getattr(item, key, None)

    present = [x for x in items if get(x) is not None]
    missing = [x for x in items if get(x) is None]

    def sort_key(item: T) -> Any:
        value = get(item)
        return value.lower() if isinstance(value, str) else value

    present.sort(key=sort_key, reverse=direction == "desc")
    return present + missing


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def paginate(items: Sequence[T], page: int, page_size: int) -> list[T]:
    page = max(1, page)
    start = (page - 1) * page_size
    return list(items[start : start + page_size])


def total_pages(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size)) if page_size > 0 else 1


@dataclass
class Pager:
    page: int = 1
    page_size: int = 10
    page_size_options: tuple[int, ...] = field(default=(10, 20, 50, 100))

    def set_page_size(self, size: int) -> None:
        if size < 1:
            raise ValueError("page size must be positive")
        self.page_size = size
        self.page = 1

    def reset(self) -> None:
        self.page = 1

    def go_to(self, page: int, count: int) -> None:
        self.page = min(max(1, page), total_pages(count, self.page_size))

    def next(self, count: int) -> None:
        self.go_to(self.page + 1, count)

    def previous(self, count: int) -> None:
        self.go_to(self.page - 1, count)

    def slice(self, items: Sequence[T]) -> list[T]:
        return paginate(items, self.page, self.page_size)


def distinct(items: Sequence[T], key: Callable[[T], Any]) -> list[Any]:
    """Unique non-empty values of key(item), in first-seen order."""
    seen: dict[Any, None] = {}
    for item in items:
        value = key(item)
        if value not in (None, ""):
            seen.setdefault(value, None)
    return list(seen)
