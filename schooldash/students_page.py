"""
Student Attendance page.

The table is paginated by the server: every change of search text, filter,
sort order, page or page size triggers a new request and the `total` sent
back by the API is trusted. Per-student attendance records are fetched only
when a row is expanded and cached for the rest of the session.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from schooldash.api import ApiClient
from schooldash.errors import ApiError, ExportError
from schooldash.export import RECORD_COLUMNS, STUDENT_COLUMNS, default_filename, record_rows, student_rows, write_export
from schooldash.filters import Pager, StudentFilters, total_pages
from schooldash.model import (
    ATTENDANCE_STATUSES,
    AttendanceRecord,
    StudentAttendance,
    parse_attendance_record,
    parse_many,
    parse_student_attendance,
)
from schooldash.page import Notifier, Page

log = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
SORT_KEYS = {
    "name": "studentName",
    "attendance_rate": "attendanceRate",
    "risk_level": "riskLevel",
    "department": "department",
    "last_attendance": "lastAttendance",
}
SOFT_DELETE_STATUS = {"archive": "ARCHIVED", "deactivate": "INACTIVE"}


def clamp_page_size(size: int) -> int:
    return min(MAX_PAGE_SIZE, max(1, size))


class StudentsPage(Page):
    def __init__(self, client: ApiClient, notify: Optional[Notifier] = None, page_size: int = 10) -> None:
        super().__init__(notify)
        self.client = client
        self.students: list[StudentAttendance] = []
        self.total = 0
        self.filters = StudentFilters()
        self.sort_key = "name"
        self.sort_direction = "asc"
        self.pager = Pager(page_size=clamp_page_size(page_size))
        self.selected_ids: set[str] = set()
        self.expanded: set[str] = set()
        self._details: dict[str, list[AttendanceRecord]] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def query(self) -> dict[str, Any]:
        params = self.filters.to_query()
        params.update(
            {
                "page": self.pager.page,
                "pageSize": self.pager.page_size,
                "sortBy": SORT_KEYS.get(self.sort_key, self.sort_key),
                "sortOrder": self.sort_direction,
            }
        )
        return params

    def load(self) -> bool:
        def _load() -> None:
            items, total = self.client.list_student_attendance(self.query())
            self.students = parse_many(items, parse_student_attendance, "student")
            self.total = total
            log.debug("Loaded %d of %d students (page %d)", len(self.students), total, self.pager.page)

        return self._load_guarded(_load, "Failed to load students")

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.pager.page_size)

    # ------------------------------------------------------------------
    # Search, filters, sort, paging (each one refetches)
    # ------------------------------------------------------------------

    def search(self, text: str) -> bool:
        self.filters.search = text
        self.pager.reset()
        return self.load()

    def set_filter(self, **changes: str) -> bool:
        for key, value in changes.items():
            if not hasattr(self.filters, key):
                raise AttributeError(key)
            setattr(self.filters, key, value or "all")
        self.pager.reset()
        return self.load()

    def clear_filters(self) -> bool:
        self.filters = StudentFilters()
        self.pager.reset()
        return self.load()

    def sort_by(self, key: str, direction: Optional[str] = None) -> bool:
        """Sort by `key`; repeating the current key flips the direction."""
        if key not in SORT_KEYS:
            raise ValueError(f"Cannot sort by {key!r}")
        if direction is not None:
            self.sort_direction = direction
        elif key == self.sort_key:
            self.sort_direction = "desc" if self.sort_direction == "asc" else "asc"
        else:
            self.sort_direction = "asc"
        self.sort_key = key
        return self.load()

    def go_to_page(self, page: int) -> bool:
        self.pager.go_to(page, self.total)
        return self.load()

    def set_page_size(self, size: int) -> bool:
        self.pager.set_page_size(clamp_page_size(size))
        return self.load()

    # ------------------------------------------------------------------
    # Details
    # ------------------------------------------------------------------

    def find(self, student_id: str) -> Optional[StudentAttendance]:
        return next((s for s in self.students if s.id == student_id), None)

    def details(self, student_id: str) -> list[AttendanceRecord]:
        """
        Attendance records of one student, fetched on first access.

        A failed fetch is reported and not cached, so the next expand tries
        again.
        """
        if student_id in self._details:
            return self._details[student_id]
        try:
            body = self.client.student_details(student_id)
        except ApiError as e:
            log.error("Failed to fetch details for %s: %s", student_id, e)
            self.notify("error", str(e))
            return []
        records = parse_many(body.get("attendanceRecords"), parse_attendance_record, "attendance record")
        records.sort(key=lambda r: r.timestamp, reverse=True)
        self._details[student_id] = records
        return records

    def toggle_expanded(self, student_id: str) -> list[AttendanceRecord]:
        if student_id in self.expanded:
            self.expanded.remove(student_id)
            return []
        self.expanded.add(student_id)
        return self.details(student_id)

    # ------------------------------------------------------------------
    # Selection and bulk updates
    # ------------------------------------------------------------------

    def toggle_selected(self, student_id: str) -> None:
        if student_id in self.selected_ids:
            self.selected_ids.remove(student_id)
        else:
            self.selected_ids.add(student_id)

    def select_page(self) -> None:
        self.selected_ids = {s.id for s in self.students}

    def clear_selection(self) -> None:
        self.selected_ids.clear()

    def bulk_update_status(
        self, status: str, reason: Optional[str] = None, ids: Optional[Iterable[str]] = None
    ) -> bool:
        """
        Set the latest attendance status of the selected students.

        Cached details of the touched students are dropped so the next
        expand shows fresh records.
        """
        status = status.upper()
        if status not in ATTENDANCE_STATUSES:
            raise ValueError(f"Unknown attendance status: {status!r}")
        chosen = list(ids) if ids is not None else sorted(self.selected_ids)
        if not chosen:
            self.notify("error", "Please select students first")
            return False

        def _update() -> None:
            self.client.update_attendance_status(chosen, status, reason)
            for sid in chosen:
                self._details.pop(sid, None)
            self.selected_ids.difference_update(chosen)

        return self._act(_update, f"Updated {len(chosen)} student(s) to {status}", "Failed to update attendance")

    def soft_delete(self, student_id: str, action: str = "archive") -> bool:
        """Archive or deactivate a student and patch the row locally."""
        if action not in SOFT_DELETE_STATUS:
            raise ValueError(f"Unknown action: {action!r}")

        def _delete() -> None:
            self.client.soft_delete_student(student_id, action)
            student = self.find(student_id)
            if student is not None:
                student.status = SOFT_DELETE_STATUS[action]

        verb = "archived" if action == "archive" else "deactivated"
        return self._act(_delete, f"Student {verb}", f"Failed to {action} student")

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, fmt: str, out_path: Union[str, Path, None] = None) -> Optional[Path]:
        """Export the students of the current page."""
        target = out_path or default_filename(fmt, prefix="student-attendance")
        try:
            out = write_export(student_rows(self.students), STUDENT_COLUMNS, fmt, target, title="Student Attendance")
        except ExportError as e:
            self.notify("error", str(e))
            return None
        self.notify("success", f"Exported {len(self.students)} student(s) to {out}")
        return out

    def export_records(self, student_id: str, fmt: str, out_path: Union[str, Path, None] = None) -> Optional[Path]:
        student = self.find(student_id)
        if student is None:
            self.notify("error", f"Student not loaded: {student_id}")
            return None
        rows = record_rows(student, self.details(student_id))
        target = out_path or default_filename(fmt, prefix="attendance-records")
        try:
            out = write_export(rows, RECORD_COLUMNS, fmt, target, title="Student Attendance Records")
        except ExportError as e:
            self.notify("error", str(e))
            return None
        self.notify("success", f"Exported {len(rows)} record(s) to {out}")
        return out
