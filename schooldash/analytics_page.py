"""
Attendance Analytics widget.

Combines two sources:

- the server-side aggregates from /api/attendance/analytics (time series,
  late arrivals, streaks), refetched only when staged filters are applied
- the student summaries already loaded by the Student Attendance page,
  from which summary cards, department bars and the risk pie are derived
  locally

Every fetch takes a new generation number. When a response arrives for a
generation that has since been superseded it is dropped, so a slow answer to
an old filter set never overwrites a newer one.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from schooldash.analytics import (
    DrillDown,
    Summary,
    apply_analytics_filters,
    attendance_distribution,
    department_stats,
    pattern_analysis,
    period_change,
    risk_distribution,
    streak_stats,
    summarize,
    x_axis_for,
)
from schooldash.api import ApiClient
from schooldash.errors import ApiError, ExportError
from schooldash.export import ANALYTICS_COLUMNS, analytics_rows, default_filename, write_export
from schooldash.model import StudentAttendance
from schooldash.page import Notifier, Page, run_parallel
from schooldash.staged import StagedFilters

log = logging.getLogger(__name__)


class AnalyticsPage(Page):
    def __init__(
        self,
        client: ApiClient,
        students: Sequence[StudentAttendance] = (),
        notify: Optional[Notifier] = None,
    ) -> None:
        super().__init__(notify)
        self.client = client
        self.students: list[StudentAttendance] = list(students)
        self.staged = StagedFilters()
        self.drill = DrillDown()
        self.data: dict[str, Any] = {}
        self.filter_options: dict[str, Any] = {}
        self.generation = 0
        self._lock = threading.Lock()

    def _next_generation(self) -> int:
        with self._lock:
            self.generation += 1
            return self.generation

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self.generation

    def _fetch(self, query: dict[str, Any]) -> bool:
        """Fetch analytics for `query`; returns False when the answer was stale."""
        generation = self._next_generation()
        try:
            data = self.client.analytics(query)
        except ApiError as e:
            if not self._is_current(generation):
                log.debug("Ignoring failure of stale analytics request (generation %d): %s", generation, e)
                return False
            raise
        if not self._is_current(generation):
            log.debug("Discarding stale analytics response (generation %d)", generation)
            return False
        self.data = data
        return True

    def load(self) -> bool:
        """Fetch analytics and the filter options concurrently."""
        query = self.staged.applied.to_query()

        def _load() -> None:
            _, options = run_parallel(lambda: self._fetch(query), self.client.analytics_filter_options)
            self.filter_options = options

        return self._load_guarded(_load, "Failed to load analytics")

    def apply_filters(self) -> bool:
        query = self.staged.apply()
        self.drill.reset()
        return self._load_guarded(lambda: self._fetch(query), "Failed to load analytics")

    def clear_filters(self) -> None:
        self.staged.clear()

    def set_students(self, students: Sequence[StudentAttendance]) -> None:
        self.students = list(students)

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    @property
    def displayed_students(self) -> list[StudentAttendance]:
        return self.drill.apply(apply_analytics_filters(self.students, self.staged.applied))

    @property
    def summary(self) -> Summary:
        return summarize(self.displayed_students)

    @property
    def departments(self) -> list[dict[str, Any]]:
        return department_stats(self.displayed_students)

    @property
    def risk_levels(self) -> list[dict[str, Any]]:
        return risk_distribution(self.displayed_students)

    @property
    def pie(self) -> list[dict[str, Any]]:
        return attendance_distribution(self.summary)

    @property
    def trend(self) -> list[dict[str, Any]]:
        points = self.data.get("timeBasedData")
        return pattern_analysis(points if isinstance(points, list) else [])

    @property
    def streaks(self) -> dict[str, Any]:
        raw = self.data.get("streakData")
        points = raw.get("data") if isinstance(raw, dict) else raw
        return streak_stats(points if isinstance(points, list) else [])

    @property
    def late_arrivals(self) -> list[dict[str, Any]]:
        rows = self.data.get("lateArrivalData")
        return rows if isinstance(rows, list) else []

    @property
    def x_axis(self) -> dict[str, str]:
        return x_axis_for(self.staged.applied.time_range)

    def rate_change(self) -> dict[str, Any]:
        """Change of the attendance rate between the last two trend points."""
        points = self.trend
        if len(points) < 2:
            return period_change(0, 0)
        current = float(points[-1].get("attendanceRate") or 0)
        previous = float(points[-2].get("attendanceRate") or 0)
        return period_change(current, previous)

    def drill_down(self, type: str, value: str) -> None:
        self.drill.select(type, value)

    def drill_back(self) -> None:
        self.drill.back()

    def reset_drill_down(self) -> None:
        self.drill.reset()

    def export(self, fmt: str, out_path: Union[str, Path, None] = None) -> Optional[Path]:
        """Export summary cards, department stats and risk counts of the displayed students."""
        rows = analytics_rows(self.summary, self.departments, self.risk_levels)
        try:
            target = out_path or default_filename(fmt, prefix="attendance-analytics")
            out = write_export(rows, ANALYTICS_COLUMNS, fmt, target, title="Attendance Analytics")
        except ExportError as e:
            self.notify("error", str(e))
            return None
        self.notify("success", f"Exported analytics to {out}")
        return out
