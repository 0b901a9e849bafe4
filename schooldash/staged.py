"""
Staged analytics filters.

The analytics widget keeps two copies of its filters: `pending` (what the
user is editing) and `applied` (what the data on screen was fetched with).
Setters only touch `pending`; nothing is refetched until apply() copies it
over and hands back the query for the next request.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Optional

from schooldash.analytics import TIME_RANGES, time_range_bounds


@dataclass(frozen=True)
class AnalyticsFilters:
    department: str = "all"
    risk_level: str = "all"
    course: str = "all"
    section: str = "all"
    year_level: str = "all"
    subject: str = "all"
    time_range: str = "week"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {
            "departmentId": self.department,
            "riskLevel": self.risk_level,
            "courseId": self.course,
            "sectionId": self.section,
            "yearLevel": self.year_level,
            "subjectId": self.subject,
        }
        query = {k: v for k, v in query.items() if v != "all"}
        query["timeRange"] = self.time_range

        bounds = time_range_bounds(self.time_range, start=self.custom_start, end=self.custom_end)
        if bounds is not None:
            query["startDate"] = bounds.start.isoformat()
            query["endDate"] = bounds.end.isoformat()
        return query


class StagedFilters:
    def __init__(self, initial: Optional[AnalyticsFilters] = None) -> None:
        self.applied = initial or AnalyticsFilters()
        self.pending = self.applied

    def set(self, **changes: Any) -> None:
        """Change pending filter values, e.g. set(department="CS")."""
        if "time_range" in changes and changes["time_range"] not in TIME_RANGES:
            raise ValueError(f"Unknown time range: {changes['time_range']!r}")
        self.pending = replace(self.pending, **changes)

    def set_custom_range(self, start: date, end: date) -> None:
        if end < start:
            raise ValueError("custom range end is before start")
        self.pending = replace(self.pending, time_range="custom", custom_start=start, custom_end=end)

    @property
    def has_pending_changes(self) -> bool:
        return self.pending != self.applied

    def apply(self) -> dict[str, Any]:
        self.applied = self.pending
        return self.applied.to_query()

    def clear(self) -> None:
        self.pending = AnalyticsFilters()
