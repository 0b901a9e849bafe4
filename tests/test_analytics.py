"""
Unit tests for analytics derivations and staged filters.
"""

import unittest
from datetime import date, datetime

from schooldash.analytics import (
    DrillDown,
    apply_analytics_filters,
    attendance_distribution,
    department_stats,
    find_extrema,
    moving_average,
    pattern_analysis,
    period_change,
    risk_distribution,
    streak_stats,
    summarize,
    time_range_bounds,
)
from schooldash.model import StudentAttendance
from schooldash.staged import AnalyticsFilters, StagedFilters

NOW = datetime(2024, 5, 15, 10, 30)


def _student(sid: str, dept: str, risk: str, attended: int, total: int = 10, late: int = 0, last=None) -> StudentAttendance:
    return StudentAttendance(
        id=sid,
        name=sid,
        department=dept,
        total_classes=total,
        attended_classes=attended,
        late_classes=late,
        absent_classes=total - attended,
        risk_level=risk,
        last_attendance=last,
    )


STUDENTS = [
    _student("a", "CS", "none", 10, late=2, last=datetime(2024, 5, 14)),
    _student("b", "CS", "high", 4, last=datetime(2024, 1, 3)),
    _student("c", "IT", "low", 8),
]


class TestSummary(unittest.TestCase):
    def test_summary_counts(self) -> None:
        s = summarize(STUDENTS)
        self.assertEqual(s.total_students, 3)
        self.assertEqual(s.attendance_rate, round(22 / 30 * 100, 2))
        self.assertEqual(s.departments, 2)
        self.assertEqual(s.high_risk, 1)

    def test_empty_summary(self) -> None:
        s = summarize([])
        self.assertEqual(s.attendance_rate, 0.0)
        self.assertEqual(risk_distribution([]), [])

    def test_distributions(self) -> None:
        depts = department_stats(STUDENTS)
        self.assertEqual([d["name"] for d in depts], ["CS", "IT"])
        self.assertEqual(depts[0]["attendanceRate"], 70.0)
        self.assertEqual(
            risk_distribution(STUDENTS),
            [{"level": "none", "count": 1}, {"level": "low", "count": 1}, {"level": "high", "count": 1}],
        )
        pie = attendance_distribution(summarize(STUDENTS))
        self.assertEqual([p["value"] for p in pie], [20, 2, 8])


class TestTimeRanges(unittest.TestCase):
    def test_presets(self) -> None:
        week = time_range_bounds("week", NOW)
        self.assertEqual(week.start, datetime(2024, 5, 8))
        self.assertEqual(week.end.date(), date(2024, 5, 15))
        self.assertEqual(week.end.microsecond, 999999)
        self.assertEqual(time_range_bounds("quarter", NOW).start, datetime(2024, 4, 1))
        self.assertEqual(time_range_bounds("year", NOW).start, datetime(2024, 1, 1))
        self.assertEqual(time_range_bounds("today", NOW).start, datetime(2024, 5, 15))

    def test_custom_needs_both_ends(self) -> None:
        self.assertIsNone(time_range_bounds("custom", NOW, start=date(2024, 1, 1)))
        bounds = time_range_bounds("custom", NOW, date(2024, 1, 1), date(2024, 1, 1))
        self.assertTrue(bounds.contains(datetime(2024, 1, 1, 23, 59)))

    def test_unknown_preset(self) -> None:
        with self.assertRaises(ValueError):
            time_range_bounds("decade", NOW)

    def test_filters_by_last_attendance(self) -> None:
        rows = apply_analytics_filters(STUDENTS, AnalyticsFilters(time_range="week"), NOW)
        self.assertEqual([s.id for s in rows], ["a", "c"])

    def test_empty_custom_range_falls_back(self) -> None:
        applied = AnalyticsFilters(department="CS", time_range="custom", custom_start=date(2020, 1, 1), custom_end=date(2020, 1, 2))
        rows = apply_analytics_filters(STUDENTS[:2], applied, NOW)
        self.assertEqual([s.id for s in rows], ["a", "b"])


class TestPatterns(unittest.TestCase):
    def test_moving_average_window_shrinks_for_short_series(self) -> None:
        self.assertEqual(moving_average([1, 2, 3]), [1.0, 1.5, 2.0])
        values = [7.0] * 10
        self.assertEqual(moving_average(values), values)

    def test_extrema_skip_the_edges(self) -> None:
        peaks, valleys = find_extrema([5, 9, 1, 4, 4, 2, 8])
        self.assertEqual(peaks, [1])
        self.assertEqual(valleys, [2, 5])
        self.assertEqual(find_extrema([3, 1]), ([], []))

    def test_pattern_analysis_adds_flags(self) -> None:
        points = [{"date": "d1", "attendanceRate": 80}, {"date": "d2", "attendanceRate": 95}, {"date": "d3", "attendanceRate": 70}]
        out = pattern_analysis(points)
        self.assertTrue(out[1]["isPeak"])
        self.assertFalse(out[0]["isPeak"])
        self.assertEqual(out[2]["movingAverage"], 81.67)
        self.assertNotIn("movingAverage", points[0])

    def test_streaks(self) -> None:
        stats = streak_stats([{"goodStreaks": 3, "poorStreaks": 1}, {"goodStreaks": 5, "poorStreaks": 0}])
        self.assertEqual(stats["maxGoodStreak"], 5)
        self.assertEqual(stats["currentStreak"], 5)
        self.assertEqual(stats["currentStreakType"], "good")
        self.assertEqual(streak_stats([])["currentStreakType"], "none")

    def test_period_change(self) -> None:
        self.assertEqual(period_change(90, 80), {"change": 12.5, "direction": "up"})
        self.assertEqual(period_change(60, 80), {"change": 25.0, "direction": "down"})
        self.assertEqual(period_change(5, 0), {"change": 100.0, "direction": "up"})
        self.assertEqual(period_change(0, 0), {"change": 0.0, "direction": "neutral"})


class TestDrillDown(unittest.TestCase):
    def test_select_apply_reset(self) -> None:
        drill = DrillDown()
        drill.select("department", "CS")
        self.assertEqual([s.id for s in drill.apply(STUDENTS)], ["a", "b"])
        self.assertEqual(drill.breadcrumbs, ["Department: CS"])
        drill.select("risk_level", "high")
        self.assertEqual(drill.breadcrumbs, ["Department: CS", "Risk Level: high"])
        self.assertEqual([s.id for s in drill.apply(STUDENTS)], ["b"])
        drill.reset()
        self.assertFalse(drill.active)
        self.assertEqual(len(drill.apply(STUDENTS)), 3)
        with self.assertRaises(ValueError):
            drill.select("course", "BSCS")

    def test_levels_narrow_cumulatively(self) -> None:
        students = [_student("1", "CS", "high", 3), _student("2", "IT", "high", 3)]
        drill = DrillDown()
        drill.select("department", "CS")
        drill.select("risk_level", "high")
        self.assertEqual(drill.filters, {"department": "CS", "risk_level": "high"})
        self.assertEqual([s.id for s in drill.apply(students)], ["1"])

    def test_back_drops_one_level_and_its_breadcrumb(self) -> None:
        drill = DrillDown()
        drill.select("department", "CS")
        drill.select("risk_level", "high")
        drill.back()
        self.assertEqual(drill.breadcrumbs, ["Department: CS"])
        self.assertEqual([s.id for s in drill.apply(STUDENTS)], ["a", "b"])
        drill.back()
        drill.back()
        self.assertFalse(drill.active)
        self.assertEqual(len(drill.apply(STUDENTS)), 3)

    def test_reselecting_a_type_replaces_its_value(self) -> None:
        drill = DrillDown()
        drill.select("department", "CS")
        drill.select("department", "IT")
        self.assertEqual(drill.breadcrumbs, ["Department: IT"])
        self.assertEqual([s.id for s in drill.apply(STUDENTS)], ["c"])


class TestStagedFilters(unittest.TestCase):
    def test_changes_stay_pending_until_applied(self) -> None:
        staged = StagedFilters()
        staged.set(department="CS")
        self.assertTrue(staged.has_pending_changes)
        self.assertEqual(staged.applied.department, "all")

        query = staged.apply()
        self.assertFalse(staged.has_pending_changes)
        self.assertEqual(query["departmentId"], "CS")
        self.assertEqual(query["timeRange"], "week")
        self.assertNotIn("riskLevel", query)

    def test_custom_range(self) -> None:
        staged = StagedFilters()
        with self.assertRaises(ValueError):
            staged.set_custom_range(date(2024, 2, 1), date(2024, 1, 1))
        staged.set_custom_range(date(2024, 1, 1), date(2024, 1, 31))
        query = staged.apply()
        self.assertEqual(query["startDate"], "2024-01-01T00:00:00")
        self.assertEqual(query["endDate"], "2024-01-31T23:59:59.999999")

    def test_invalid_time_range_and_clear(self) -> None:
        staged = StagedFilters()
        with self.assertRaises(ValueError):
            staged.set(time_range="forever")
        staged.set(risk_level="high")
        staged.clear()
        self.assertFalse(staged.has_pending_changes)


if __name__ == "__main__":
    unittest.main()
