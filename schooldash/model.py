"""
Central data model definitions used across the project.

The API is trusted for nothing: every JSON object is converted into one of
the dataclasses below by a parse_* function, which raises ValidationError
when a record cannot be used (missing id, unparseable dates). List parsers
skip such records and log a warning, so a single broken row never breaks a
whole page.

This module also owns the mapping between the API's enum values
(eventType, priority, status) and the labels the dashboard works with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, Optional, TypeVar

from schooldash.errors import ValidationError

log = logging.getLogger(__name__)

T = TypeVar("T")


CATEGORIES = ("academic", "administrative", "holiday", "special", "deadline")
PRIORITIES = ("low", "medium", "high", "critical")
EVENT_STATUSES = ("draft", "published", "cancelled")
RISK_LEVELS = ("none", "low", "medium", "high")
ATTENDANCE_STATUSES = ("PRESENT", "LATE", "ABSENT", "EXCUSED")

CATEGORY_LABELS = {
    "academic": "Academic",
    "administrative": "Administrative",
    "holiday": "Holiday",
    "special": "Special Event",
    "deadline": "Deadline",
}
PRIORITY_LABELS = {"low": "Low", "medium": "Medium", "high": "High", "critical": "Critical"}

CATEGORY_COLORS = {
    "academic": "#3B82F6",
    "administrative": "#F97316",
    "holiday": "#EF4444",
    "special": "#8B5CF6",
    "deadline": "#EAB308",
}
DEFAULT_COLOR = "#6B7280"

_EVENT_TYPE_TO_CATEGORY = {
    "ACADEMIC": "academic",
    "WORKSHOP": "academic",
    "SEMINAR": "academic",
    "MEETING": "administrative",
    "SOCIAL": "holiday",
    "SPORTS": "holiday",
    "GRADUATION": "special",
    "ORIENTATION": "special",
    "OTHER": "deadline",
}
_CATEGORY_TO_EVENT_TYPE = {
    "academic": "ACADEMIC",
    "administrative": "MEETING",
    "holiday": "SOCIAL",
    "special": "GRADUATION",
    "deadline": "OTHER",
}
_API_PRIORITY = {"LOW": "low", "NORMAL": "medium", "HIGH": "high", "URGENT": "critical"}
_PRIORITY_TO_API = {v: k for k, v in _API_PRIORITY.items()}
_API_STATUS = {
    "DRAFT": "draft",
    "SCHEDULED": "published",
    "ONGOING": "published",
    "COMPLETED": "published",
    "CANCELLED": "cancelled",
    "POSTPONED": "cancelled",
}
# status written back to the API for the local bulk actions
ACTION_STATUS = {"publish": "SCHEDULED", "archive": "CANCELLED"}


def category_from_event_type(event_type: Any) -> str:
    return _EVENT_TYPE_TO_CATEGORY.get(str(event_type or "").upper(), "academic")


def event_type_from_category(category: str) -> str:
    return _CATEGORY_TO_EVENT_TYPE.get(category, "ACADEMIC")


def priority_from_api(priority: Any) -> str:
    return _API_PRIORITY.get(str(priority or "").upper(), "medium")


def priority_to_api(priority: str) -> str:
    return _PRIORITY_TO_API.get(priority, "NORMAL")


def status_from_api(status: Any) -> str:
    return _API_STATUS.get(str(status or "").upper(), "draft")


def color_for_category(category: str) -> str:
    return CATEGORY_COLORS.get(category, DEFAULT_COLOR)


def risk_level_for_rate(rate: float) -> str:
    """Bucket an attendance rate (0-100) into a risk level."""
    if rate >= 90:
        return "none"
    if rate >= 75:
        return "low"
    if rate >= 50:
        return "medium"
    return "high"


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _safe_str(x: Any) -> str:
    return "" if x is None else str(x)


def parse_datetime(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp or date into a naive local datetime.

    Accepts a trailing 'Z'. Aware values are converted to local time so that
    day bucketing matches what the user sees on their calendar.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime.combine(value, time.min)
    else:
        text = _safe_str(value).strip()
        if not text:
            raise ValueError("empty timestamp")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def _optional_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(x) for x in value if x is not None and str(x).strip()]
    return []


def parse_many(items: Any, parser: Callable[[dict[str, Any]], T], label: str) -> list[T]:
    """
    Parse a JSON list with `parser`, skipping invalid entries.

    Non-list input yields an empty list.
    """
    if not isinstance(items, list):
        return []
    out: list[T] = []
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            log.warning("Skipping %s #%d: not an object", label, i)
            continue
        try:
            out.append(parser(raw))
        except ValidationError as e:
            log.warning("Skipping %s #%d: %s", label, i, e)
    return out


# ---------------------------------------------------------------------------
# Academic calendar
# ---------------------------------------------------------------------------


@dataclass
class AcademicEvent:
    """
    One calendar entry as displayed by the Academic Calendar page.
    """

    id: int
    title: str
    start: datetime
    end: datetime
    description: str = ""
    all_day: bool = False
    category: str = "academic"
    priority: str = "medium"
    location: str = ""
    status: str = "draft"
    created_by: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    requires_approval: bool = False
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    color: str = ""
    tags: list[str] = field(default_factory=list)
    attendees: list[str] = field(default_factory=list)
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.color:
            self.color = color_for_category(self.category)


def parse_event(raw: dict[str, Any]) -> AcademicEvent:
    """
    Convert an event object from the API into an AcademicEvent.

    Two shapes exist. List responses carry `id`, `date` and optional
    `startTime`/`endTime`; create responses carry `eventId`, `eventDate` and
    `endDate` as full timestamps.
    """
    event_id = raw.get("id", raw.get("eventId"))
    if event_id is None:
        raise ValidationError("event has no id")

    try:
        if raw.get("date"):
            day = _safe_str(raw.get("date")).strip()[:10]
            start_time = _safe_str(raw.get("startTime")).strip()
            end_time = _safe_str(raw.get("endTime")).strip()
            start = parse_datetime(f"{day}T{start_time or '00:00:00'}")
            end = parse_datetime(f"{day}T{end_time}") if end_time else start
            all_day = not start_time or start_time.startswith("00:00")
        else:
            start = parse_datetime(raw.get("eventDate") or raw.get("startDate"))
            end_raw = raw.get("endDate")
            end = parse_datetime(end_raw) if end_raw else start
            all_day = bool(raw.get("allDay", False))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"event {event_id} has an invalid date: {e}") from e

    if raw.get("category") in CATEGORIES:
        category = raw["category"]
    else:
        category = category_from_event_type(raw.get("eventType"))

    creator = raw.get("createdBy")
    if creator is None and isinstance(raw.get("createdByAdmin"), dict):
        creator = raw["createdByAdmin"].get("userName")

    return AcademicEvent(
        id=_int(event_id),
        title=_safe_str(raw.get("title")).strip(),
        description=_safe_str(raw.get("description")),
        start=start,
        end=end,
        all_day=all_day,
        category=category,
        priority=priority_from_api(raw.get("priority")),
        location=_safe_str(raw.get("location")),
        status=status_from_api(raw.get("status")),
        created_by=_safe_str(creator) or "Unknown",
        created_at=_optional_datetime(raw.get("createdAt")),
        updated_at=_optional_datetime(raw.get("updatedAt")),
        requires_approval=bool(raw.get("requiresRegistration", False)),
        approved_by=raw.get("approvedBy"),
        approved_at=_optional_datetime(raw.get("approvedAt")),
        tags=_str_list(raw.get("tags")),
        attendees=_str_list(raw.get("attendees")),
        is_recurring=bool(raw.get("isRecurring", False)),
        recurrence_pattern=raw.get("recurrencePattern"),
    )


def event_to_payload(event: AcademicEvent, api_status: Optional[str] = None) -> dict[str, Any]:
    """
    Build the request body the API expects for PUT /api/events/{id}.
    """
    body: dict[str, Any] = {
        "title": event.title,
        "description": event.description,
        "eventType": event_type_from_category(event.category),
        "eventDate": event.start.isoformat(),
        "endDate": event.end.isoformat(),
        "location": event.location or None,
        "priority": priority_to_api(event.priority),
        "isPublic": True,
        "requiresRegistration": event.requires_approval,
        "capacity": None,
        "imageUrl": None,
        "contactEmail": None,
        "contactPhone": None,
    }
    if api_status:
        body["status"] = api_status
    return body


@dataclass
class EventForm:
    """
    Raw values of the add/edit event dialog.

    Dates are 'YYYY-MM-DDTHH:MM' strings, exactly as typed.
    """

    title: str = ""
    description: str = ""
    category: str = "academic"
    priority: str = "medium"
    start: str = ""
    end: str = ""
    location: str = ""
    all_day: bool = False
    recurring: bool = False
    requires_approval: bool = False


def validate_event_form(form: EventForm) -> dict[str, str]:
    """
    Return field -> message for every problem in `form` (empty dict = valid).
    """
    errors: dict[str, str] = {}
    if not form.title.strip():
        errors["title"] = "Event title is required"
    if not form.description.strip():
        errors["description"] = "Description is required"
    if not form.start:
        errors["start"] = "Start date is required"
    if not form.end:
        errors["end"] = "End date is required"

    if form.start and form.end:
        try:
            start = parse_datetime(form.start)
            end = parse_datetime(form.end)
        except ValueError:
            errors["start"] = "Invalid date"
        else:
            if end <= start:
                errors["end"] = "End date must be after start date"
    return errors


def form_to_payload(form: EventForm) -> dict[str, Any]:
    """
    Convert a validated form into a POST/PUT body.

    All-day events span 00:00:00 of the start day to 23:59:59.999 of the
    end day.
    """
    errors = validate_event_form(form)
    if errors:
        raise ValidationError("Please fix the form errors", errors)

    start = parse_datetime(form.start)
    end = parse_datetime(form.end)
    if form.all_day:
        start = datetime.combine(start.date(), time.min)
        end = datetime.combine(end.date(), time(23, 59, 59, 999000))

    return {
        "title": form.title.strip(),
        "description": form.description.strip(),
        "eventType": event_type_from_category(form.category),
        "eventDate": start.isoformat(),
        "endDate": end.isoformat(),
        "location": form.location.strip() or None,
        "priority": priority_to_api(form.priority),
        "isPublic": True,
        "requiresRegistration": form.requires_approval,
        "capacity": None,
        "imageUrl": None,
        "contactEmail": None,
        "contactPhone": None,
    }


def form_from_event(event: AcademicEvent) -> EventForm:
    return EventForm(
        title=event.title,
        description=event.description,
        category=event.category,
        priority=event.priority,
        start=event.start.strftime("%Y-%m-%dT%H:%M"),
        end=event.end.strftime("%Y-%m-%dT%H:%M"),
        location=event.location,
        all_day=event.all_day,
        recurring=event.is_recurring,
        requires_approval=event.requires_approval,
    )


@dataclass
class Semester:
    id: int
    name: str
    start: datetime
    end: datetime
    type: str = "1st"
    is_active: bool = False

    def contains(self, moment: datetime) -> bool:
        return self.start.date() <= moment.date() <= self.end.date()


@dataclass
class AcademicYear:
    id: int
    name: str
    start: datetime
    end: datetime
    is_active: bool = False
    semesters: list[Semester] = field(default_factory=list)


def _parse_semester(raw: dict[str, Any]) -> Semester:
    try:
        return Semester(
            id=_int(raw.get("id")),
            name=_safe_str(raw.get("name")),
            start=parse_datetime(raw.get("startDate")),
            end=parse_datetime(raw.get("endDate")),
            type=_safe_str(raw.get("type")) or "1st",
            is_active=bool(raw.get("isActive", False)),
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(f"semester {raw.get('id')!r} has an invalid date: {e}") from e


def parse_academic_year(raw: dict[str, Any]) -> AcademicYear:
    if raw.get("id") is None:
        raise ValidationError("academic year has no id")
    try:
        start = parse_datetime(raw.get("startDate"))
        end = parse_datetime(raw.get("endDate"))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"academic year {raw.get('id')!r} has an invalid date: {e}") from e
    return AcademicYear(
        id=_int(raw.get("id")),
        name=_safe_str(raw.get("name")),
        start=start,
        end=end,
        is_active=bool(raw.get("isActive", False)),
        semesters=parse_many(raw.get("semesters"), _parse_semester, "semester"),
    )


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------


@dataclass
class TrendRow:
    """One class/day aggregate from /api/analytics/trends."""

    code: str
    name: str
    date: str
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0

    def metric(self, name: str) -> int:
        return int(getattr(self, name))


def parse_trend_row(raw: dict[str, Any]) -> TrendRow:
    code = _safe_str(raw.get("code")).strip()
    day = _safe_str(raw.get("date")).strip()[:10]
    if not code or not day:
        raise ValidationError("trend row needs code and date")
    try:
        date.fromisoformat(day)
    except ValueError as e:
        raise ValidationError(f"trend row has an invalid date {day!r}") from e
    return TrendRow(
        code=code,
        name=_safe_str(raw.get("name")) or "Unknown",
        date=day,
        present=_int(raw.get("present")),
        absent=_int(raw.get("absent")),
        late=_int(raw.get("late")),
        excused=_int(raw.get("excused")),
    )


@dataclass
class StudentAttendance:
    """
    Denormalized per-student attendance summary.

    Read-only from the dashboard's point of view, except for the local
    patches applied after a status update or an archive/deactivate call.
    """

    id: str
    name: str
    student_number: str = ""
    department: str = ""
    course: str = ""
    year_level: str = ""
    section: str = ""
    total_classes: int = 0
    attended_classes: int = 0
    late_classes: int = 0
    absent_classes: int = 0
    attendance_rate: float = 0.0
    risk_level: str = "none"
    last_attendance: Optional[datetime] = None
    status: str = "ACTIVE"
    schedules: list[str] = field(default_factory=list)


def parse_student_attendance(raw: dict[str, Any]) -> StudentAttendance:
    sid = raw.get("studentId", raw.get("id"))
    if sid is None or _safe_str(sid).strip() == "":
        raise ValidationError("student has no id")

    name = _safe_str(raw.get("studentName")).strip()
    if not name:
        name = " ".join(
            p for p in (_safe_str(raw.get("firstName")).strip(), _safe_str(raw.get("lastName")).strip()) if p
        )

    total = _int(raw.get("totalClasses"))
    attended = _int(raw.get("attendedClasses"))
    late = _int(raw.get("lateClasses"))
    absent = _int(raw.get("absentClasses"))

    if raw.get("attendanceRate") is not None:
        rate = _float(raw.get("attendanceRate"))
    else:
        rate = (attended / total * 100) if total > 0 else 0.0

    risk = _safe_str(raw.get("riskLevel")).strip().lower()
    if risk not in RISK_LEVELS:
        risk = risk_level_for_rate(rate)

    schedules_raw = raw.get("schedules") or []
    schedules: list[str] = []
    if isinstance(schedules_raw, list):
        for s in schedules_raw:
            if isinstance(s, dict):
                label = s.get("subject") or s.get("subjectName") or s.get("name")
                if label:
                    schedules.append(str(label))
            elif s:
                schedules.append(str(s))

    return StudentAttendance(
        id=_safe_str(sid).strip(),
        name=name or "(no name)",
        student_number=_safe_str(raw.get("studentIdNum")),
        department=_safe_str(raw.get("department")),
        course=_safe_str(raw.get("course")),
        year_level=_safe_str(raw.get("yearLevel")),
        section=_safe_str(raw.get("section")),
        total_classes=total,
        attended_classes=attended,
        late_classes=late,
        absent_classes=absent,
        attendance_rate=round(rate, 2),
        risk_level=risk,
        last_attendance=_optional_datetime(raw.get("lastAttendance")),
        status=_safe_str(raw.get("status")).upper() or "ACTIVE",
        schedules=schedules,
    )


@dataclass
class AttendanceRecord:
    """A single attendance entry shown in the expanded student row."""

    id: str
    timestamp: datetime
    status: str
    subject: str = "Unknown Subject"
    room: str = "Unknown Room"
    time_in: Optional[str] = None
    time_out: Optional[str] = None
    instructor: str = ""
    notes: str = ""
    is_manual_entry: bool = False


def parse_attendance_record(raw: dict[str, Any]) -> AttendanceRecord:
    try:
        ts = parse_datetime(raw.get("timestamp"))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"attendance record has an invalid timestamp: {e}") from e

    status = _safe_str(raw.get("status")).upper()
    schedule = raw.get("subjectSchedule") if isinstance(raw.get("subjectSchedule"), dict) else {}
    subject = (schedule.get("subject") or {}).get("subjectName") if isinstance(schedule.get("subject"), dict) else None
    room = (schedule.get("room") or {}).get("roomNo") if isinstance(schedule.get("room"), dict) else None
    staff = schedule.get("instructor") if isinstance(schedule.get("instructor"), dict) else {}
    instructor = " ".join(p for p in (_safe_str(staff.get("firstName")), _safe_str(staff.get("lastName"))) if p)
    checkout = _optional_datetime(raw.get("checkOutTime"))

    record_id = raw.get("attendanceId")
    if record_id is None:
        record_id = f"{ts.isoformat()}-{_safe_str(raw.get('subjectSchedId'))}"

    return AttendanceRecord(
        id=_safe_str(record_id),
        timestamp=ts,
        status=status,
        subject=subject or "Unknown Subject",
        room=room or "Unknown Room",
        time_in=ts.strftime("%H:%M") if status in ("PRESENT", "LATE") else None,
        time_out=checkout.strftime("%H:%M") if checkout else None,
        instructor=instructor,
        notes=_safe_str(raw.get("notes")),
        is_manual_entry=raw.get("attendanceType") == "MANUAL_ENTRY",
    )
