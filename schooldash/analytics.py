"""
Attendance analytics derivations.

Everything in this module works on plain lists (student summaries or
time-series points) and is recomputed from scratch on each call:

- summary counts, attendance rate and risk buckets (linear reductions)
- time-range bounds with inclusive day edges
- department / risk / pie distributions for the charts
- pattern analysis: trailing moving average plus naive peak/valley flags
- streak statistics and period-over-period change

No statistical modelling or forecasting happens here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Sequence

from schooldash.model import RISK_LEVELS, StudentAttendance

log = logging.getLogger(__name__)

TIME_RANGES = ("today", "week", "month", "quarter", "year", "custom")
MOVING_AVERAGE_WINDOW = 7


@dataclass
class Summary:
    total_students: int
    total_classes: int
    attended_classes: int
    late_classes: int
    absent_classes: int
    attendance_rate: float
    departments: int
    risk_counts: dict[str, int]

    @property
    def high_risk(self) -> int:
        return self.risk_counts.get("high", 0)


def summarize(students: Sequence[StudentAttendance]) -> Summary:
    total_classes = sum(s.total_classes for s in students)
    attended = sum(s.attended_classes for s in students)
    risk_counts = {level: 0 for level in RISK_LEVELS}
    for s in students:
        risk_counts[s.risk_level] = risk_counts.get(s.risk_level, 0) + 1

    return Summary(
        total_students=len(students),
        total_classes=total_classes,
        attended_classes=attended,
        late_classes=sum(s.late_classes for s in students),
        absent_classes=sum(s.absent_classes for s in students),
        attendance_rate=round(attended / total_classes * 100, 2) if total_classes > 0 else 0.0,
        departments=len({s.department for s in students if s.department}),
        risk_counts=risk_counts,
    )


# ---------------------------------------------------------------------------
# Time ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeBounds:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _day_end(d: date) -> datetime:
    return datetime.combine(d, time.max)


def time_range_bounds(
    preset: str,
    now: Optional[datetime] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Optional[TimeBounds]:
    """
    Resolve a time-range preset into inclusive bounds.

    today   = today
    week    = the last 7 days up to today
    month   = first of this month .. today
    quarter = first day of this quarter .. today
    year    = January 1 .. today
    custom  = start .. end (None when either is missing)

    The start is normalized to 00:00:00 and the end to 23:59:59.999999.
    """
    now = now or datetime.now()
    today = now.date()

    if preset == "custom":
        if start is None or end is None:
            return None
        return TimeBounds(_day_start(start), _day_end(end))

    if preset == "today":
        first = today
    elif preset == "week":
        first = (now - timedelta(days=7)).date()
    elif preset == "month":
        first = today.replace(day=1)
    elif preset == "quarter":
        first = date(today.year, (today.month - 1) // 3 * 3 + 1, 1)
    elif preset == "year":
        first = date(today.year, 1, 1)
    else:
        raise ValueError(f"Unknown time range: {preset!r}")

    return TimeBounds(_day_start(first), _day_end(today))


def filter_by_time_range(students: Sequence[StudentAttendance], bounds: Optional[TimeBounds]) -> list[StudentAttendance]:
    """Keep students whose last attendance falls in bounds; unknown dates are kept."""
    if bounds is None:
        return list(students)
    return [s for s in students if s.last_attendance is None or bounds.contains(s.last_attendance)]


def x_axis_for(preset: str) -> dict[str, str]:
    return {
        "today": {"key": "hour", "label": "Hour"},
        "week": {"key": "date", "label": "Day"},
        "month": {"key": "date", "label": "Date"},
        "quarter": {"key": "week", "label": "Week"},
        "year": {"key": "month", "label": "Month"},
    }.get(preset, {"key": "date", "label": "Date"})


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------


def department_stats(students: Sequence[StudentAttendance]) -> list[dict[str, Any]]:
    by_dept: dict[str, dict[str, Any]] = {}
    for s in students:
        if not s.department:
            continue
        row = by_dept.setdefault(
            s.department, {"name": s.department, "count": 0, "totalClasses": 0, "attendedClasses": 0}
        )
        row["count"] += 1
        row["totalClasses"] += s.total_classes
        row["attendedClasses"] += s.attended_classes

    out = []
    for name in sorted(by_dept):
        row = by_dept[name]
        total = row["totalClasses"]
        row["attendanceRate"] = round(row["attendedClasses"] / total * 100, 2) if total > 0 else 0.0
        out.append(row)
    return out


def risk_distribution(students: Sequence[StudentAttendance]) -> list[dict[str, Any]]:
    counts = summarize(students).risk_counts
    return [{"level": level, "count": counts[level]} for level in RISK_LEVELS if counts.get(level)]


def attendance_distribution(summary: Summary) -> list[dict[str, Any]]:
    """
    Pie slices for present / late / absent.

    `attended_classes` includes late arrivals, so on-time presence is
    attended minus late.
    """
    present = max(0, summary.attended_classes - summary.late_classes)
    late = summary.late_classes
    absent = summary.absent_classes
    total = present + late + absent
    slices = []
    for name, value in (("Present", present), ("Late", late), ("Absent", absent)):
        pct = round(value / total * 100, 1) if total > 0 else 0.0
        slices.append({"name": name, "value": value, "percentage": pct})
    return slices


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


def moving_average(values: Sequence[float], window: int = MOVING_AVERAGE_WINDOW) -> list[float]:
    """Trailing moving average with a window of min(window, len(values))."""
    size = min(window, len(values))
    out: list[float] = []
    for i in range(len(values)):
        chunk = values[max(0, i - size + 1) : i + 1]
        out.append(round(sum(chunk) / len(chunk), 2))
    return out


def find_extrema(values: Sequence[float]) -> tuple[list[int], list[int]]:
    """
    Indices of local maxima and minima.

    A point is a peak when it is strictly greater than both neighbours and a
    valley when strictly smaller. The first and last points are never
    flagged.
    """
    peaks: list[int] = []
    valleys: list[int] = []
    for i in range(1, len(values) - 1):
        prev, cur, nxt = values[i - 1], values[i], values[i + 1]
        if cur > prev and cur > nxt:
            peaks.append(i)
        elif cur < prev and cur < nxt:
            valleys.append(i)
    return peaks, valleys


def pattern_analysis(points: Sequence[dict[str, Any]], value_key: str = "attendanceRate") -> list[dict[str, Any]]:
    """
    Copy `points` and add movingAverage, isPeak and isValley to each.
    """
    values = [float(p.get(value_key) or 0) for p in points]
    averages = moving_average(values)
    peaks, valleys = find_extrema(values)
    peak_set, valley_set = set(peaks), set(valleys)

    out = []
    for i, p in enumerate(points):
        row = dict(p)
        row["movingAverage"] = averages[i]
        row["isPeak"] = i in peak_set
        row["isValley"] = i in valley_set
        out.append(row)
    return out


def streak_stats(points: Sequence[dict[str, Any]]) -> dict[str, Any]:
    """
    Aggregate goodStreaks / poorStreaks counts of a streak time series.
    """
    good = [int(p.get("goodStreaks") or 0) for p in points]
    poor = [int(p.get("poorStreaks") or 0) for p in points]
    total_good, total_poor = sum(good), sum(poor)
    return {
        "maxGoodStreak": max(good, default=0),
        "maxPoorStreak": max(poor, default=0),
        "currentStreak": good[-1] if good else 0,
        "currentStreakType": "none" if not points else ("good" if total_good > total_poor else "poor"),
        "totalGoodDays": total_good,
        "totalPoorDays": total_poor,
    }


def period_change(current: float, previous: float) -> dict[str, Any]:
    if previous == 0:
        change = 100.0 if current > 0 else 0.0
    else:
        change = (current - previous) / previous * 100
    direction = "up" if change > 0 else "down" if change < 0 else "neutral"
    return {"change": round(abs(change), 1), "direction": direction}


# ---------------------------------------------------------------------------
# Filters and drill-down
# ---------------------------------------------------------------------------


def apply_analytics_filters(
    students: Sequence[StudentAttendance], applied: Any, now: Optional[datetime] = None
) -> list[StudentAttendance]:
    """
    Narrow students by the applied department, risk level and time range.

    `applied` is an AnalyticsFilters. A custom range that leaves nothing
    behind falls back to the department/risk result so the charts are
    never blank because of a mistyped range.
    """
    rows = [
        s
        for s in students
        if (applied.department == "all" or s.department == applied.department)
        and (applied.risk_level == "all" or s.risk_level == applied.risk_level)
    ]
    bounds = time_range_bounds(applied.time_range, now, applied.custom_start, applied.custom_end)
    narrowed = filter_by_time_range(rows, bounds)
    if not narrowed and applied.time_range == "custom":
        log.debug("custom range matched nothing; showing unfiltered data")
        return rows
    return narrowed


DRILL_TYPES = ("department", "risk_level")


@dataclass
class DrillDown:
    """
    Stack of drill-down levels. Each level narrows the previous one, so the
    active filters are ANDed; selecting a type that is already on the stack
    replaces its value in place.
    """

    levels: list[tuple[str, str]] = field(default_factory=list)

    @property
    def filters(self) -> dict[str, str]:
        return dict(self.levels)

    @property
    def breadcrumbs(self) -> list[str]:
        return [f"{type.replace('_', ' ').title()}: {value}" for type, value in self.levels]

    @property
    def active(self) -> bool:
        return bool(self.levels)

    def select(self, type: str, value: str) -> None:
        if type not in DRILL_TYPES:
            raise ValueError(f"Cannot drill down by {type!r}")
        for i, (existing, _) in enumerate(self.levels):
            if existing == type:
                self.levels[i] = (type, value)
                return
        self.levels.append((type, value))

    def back(self) -> None:
        """Drop the most recent level."""
        if self.levels:
            self.levels.pop()

    def reset(self) -> None:
        self.levels.clear()

    def apply(self, students: Sequence[StudentAttendance]) -> list[StudentAttendance]:
        filters = self.filters
        return [s for s in students if all(getattr(s, k) == v for k, v in filters.items())]
