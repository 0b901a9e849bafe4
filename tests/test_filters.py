"""
Unit tests for event/student filtering, sorting and pagination.
"""

import unittest
from datetime import date, datetime, timedelta

from schooldash.filters import (
    EventFilters,
    Pager,
    StudentFilters,
    distinct,
    event_stats,
    filter_chips,
    filter_events,
    filter_students,
    paginate,
    sort_records,
    total_pages,
    upcoming_events,
)
from schooldash.model import CATEGORIES, AcademicEvent, Semester, StudentAttendance


def _event(event_id: int, start: datetime, **kw) -> AcademicEvent:
    return AcademicEvent(id=event_id, title=kw.pop("title", f"Event {event_id}"), start=start, end=start + timedelta(hours=1), **kw)


EVENTS = [
    _event(1, datetime(2024, 1, 2, 9), category="academic", priority="high", status="published", title="Midterm exam"),
    _event(2, datetime(2024, 1, 2, 14), category="holiday", status="draft", description="campus closed"),
    _event(3, datetime(2024, 1, 20, 9), category="deadline", priority="critical", status="cancelled"),
]


class TestEventFilters(unittest.TestCase):
    def test_today_range(self) -> None:
        out = filter_events(EVENTS, EventFilters(date_range="today"), today=date(2024, 1, 2))
        self.assertEqual([e.id for e in out], [1, 2])

    def test_today_keeps_both_events_of_that_day(self) -> None:
        events = [
            _event(1, datetime(2024, 1, 1, 9)),
            _event(2, datetime(2024, 1, 2, 9)),
            _event(3, datetime(2024, 1, 2, 15)),
        ]
        out = filter_events(events, EventFilters(date_range="today"), today=date(2024, 1, 2))
        self.assertEqual([e.id for e in out], [2, 3])

    def test_week_is_sunday_based(self) -> None:
        # Sunday 2023-12-31 .. Saturday 2024-01-06
        out = filter_events(EVENTS, EventFilters(date_range="week"), today=date(2024, 1, 6))
        self.assertEqual([e.id for e in out], [1, 2])
        out = filter_events(EVENTS, EventFilters(date_range="week"), today=date(2024, 1, 7))
        self.assertEqual(out, [])

    def test_semester_range(self) -> None:
        sem = Semester(id=1, name="1st", start=datetime(2024, 1, 10), end=datetime(2024, 5, 31))
        out = filter_events(EVENTS, EventFilters(date_range="semester"), today=date(2024, 1, 2), semester=sem)
        self.assertEqual([e.id for e in out], [3])

    def test_category_filters_partition_the_list(self) -> None:
        total = sum(len(filter_events(EVENTS, EventFilters(category=c))) for c in CATEGORIES)
        self.assertEqual(total, len(EVENTS))

    def test_search_matches_title_or_description(self) -> None:
        self.assertEqual([e.id for e in filter_events(EVENTS, EventFilters(search="EXAM"))], [1])
        self.assertEqual([e.id for e in filter_events(EVENTS, EventFilters(search="closed"))], [2])

    def test_default_filters_keep_everything(self) -> None:
        self.assertTrue(EventFilters().is_default())
        self.assertEqual(filter_events(EVENTS, EventFilters()), EVENTS)

    def test_chips(self) -> None:
        chips = filter_chips(EventFilters(search=" exam ", category="special", date_range="week"))
        self.assertEqual(chips, {"search": '"exam"', "category": "Special Event", "dateRange": "This Week"})

    def test_stats_and_upcoming(self) -> None:
        self.assertEqual(event_stats(EVENTS), {"total": 3, "published": 1, "pending": 1, "critical": 1})
        soon = upcoming_events(EVENTS, now=datetime(2024, 1, 1))
        self.assertEqual([e.id for e in soon], [1, 2])


class TestStudentFilters(unittest.TestCase):
    def test_query_and_matching(self) -> None:
        students = [
            StudentAttendance(id="1", name="Ana Cruz", department="CS", risk_level="high"),
            StudentAttendance(id="2", name="Ben Uy", department="IT", risk_level="none"),
        ]
        f = StudentFilters(search="ana", department="cs")
        self.assertEqual([s.id for s in filter_students(students, f)], ["1"])
        self.assertEqual(f.active_count(), 2)
        self.assertEqual(f.to_query()["q"], "ana")
        self.assertIsNone(StudentFilters(search="  ").to_query()["q"])


class TestSortingAndPaging(unittest.TestCase):
    def test_missing_values_sort_last_in_both_directions(self) -> None:
        rows = [{"v": 2}, {"v": None}, {"v": 1}, {}]
        self.assertEqual([r.get("v") for r in sort_records(rows, "v")], [1, 2, None, None])
        self.assertEqual([r.get("v") for r in sort_records(rows, "v", "desc")], [2, 1, None, None])

    def test_strings_case_insensitive(self) -> None:
        rows = [{"n": "bob"}, {"n": "Alice"}]
        self.assertEqual([r["n"] for r in sort_records(rows, "n")], ["Alice", "bob"])

    def test_pages_cover_every_item_once(self) -> None:
        items = list(range(23))
        for size in (1, 5, 10, 23, 50):
            pages = total_pages(len(items), size)
            joined = [x for p in range(1, pages + 1) for x in paginate(items, p, size)]
            self.assertEqual(joined, items)
        self.assertEqual(total_pages(0, 10), 1)

    def test_page_length_formula(self) -> None:
        for n in (0, 1, 7, 10, 23):
            items = list(range(n))
            for size in (1, 3, 10):
                for page in range(0, n + 3):
                    effective = max(1, page)
                    expected = min(size, max(0, n - (effective - 1) * size))
                    self.assertEqual(len(paginate(items, page, size)), expected, (n, size, page))

    def test_page_below_one_is_first_page(self) -> None:
        items = list(range(5))
        self.assertEqual(paginate(items, 0, 2), [0, 1])
        self.assertEqual(paginate(items, -3, 2), [0, 1])

    def test_distinct_keeps_first_seen_order(self) -> None:
        rows = [{"d": "IT"}, {"d": "CS"}, {"d": ""}, {"d": "IT"}, {"d": None}]
        self.assertEqual(distinct(rows, lambda r: r["d"]), ["IT", "CS"])

    def test_pager_clamps(self) -> None:
        pager = Pager(page_size=10)
        pager.go_to(9, count=25)
        self.assertEqual(pager.page, 3)
        pager.next(25)
        self.assertEqual(pager.page, 3)
        pager.set_page_size(20)
        self.assertEqual(pager.page, 1)
        with self.assertRaises(ValueError):
            pager.set_page_size(0)


if __name__ == "__main__":
    unittest.main()
