"""
Unit tests for the data model and its API mapping.

Model contract:
- list and create shapes of an event both parse
- records that cannot be used raise ValidationError (and are skipped in lists)
- enum values from the API map to the dashboard's labels
"""

import unittest
from datetime import datetime

from schooldash.errors import ValidationError
from schooldash.model import (
    EventForm,
    category_from_event_type,
    event_type_from_category,
    form_to_payload,
    parse_event,
    parse_many,
    parse_student_attendance,
    priority_from_api,
    priority_to_api,
    risk_level_for_rate,
    status_from_api,
    validate_event_form,
)


class TestEventParsing(unittest.TestCase):
    def test_list_shape_combines_date_and_times(self) -> None:
        ev = parse_event({"id": 4, "title": " Exam ", "date": "2024-03-05", "startTime": "13:30", "endTime": "15:00"})
        self.assertEqual(ev.id, 4)
        self.assertEqual(ev.title, "Exam")
        self.assertEqual(ev.start, datetime(2024, 3, 5, 13, 30))
        self.assertEqual(ev.end, datetime(2024, 3, 5, 15, 0))
        self.assertFalse(ev.all_day)

    def test_missing_start_time_is_all_day(self) -> None:
        ev = parse_event({"id": 1, "title": "Holiday", "date": "2024-03-05"})
        self.assertTrue(ev.all_day)
        self.assertEqual(ev.start, ev.end)
        self.assertEqual(ev.start, datetime(2024, 3, 5))

    def test_midnight_start_is_all_day(self) -> None:
        ev = parse_event({"id": 1, "title": "x", "date": "2024-03-05", "startTime": "00:00"})
        self.assertTrue(ev.all_day)

    def test_created_shape(self) -> None:
        ev = parse_event(
            {"eventId": 9, "title": "Fair", "eventDate": "2024-03-05T08:00:00", "endDate": "2024-03-06T17:00:00"}
        )
        self.assertEqual(ev.id, 9)
        self.assertEqual(ev.end.day, 6)

    def test_invalid_records_raise(self) -> None:
        with self.assertRaises(ValidationError):
            parse_event({"title": "no id", "date": "2024-03-05"})
        with self.assertRaises(ValidationError):
            parse_event({"id": 1, "title": "bad", "date": "2024-13-45"})

    def test_parse_many_skips_invalid(self) -> None:
        raw = [{"id": 1, "date": "2024-01-01"}, {"id": 2, "date": "nope"}, "junk", {"id": 3, "date": "2024-01-03"}]
        with self.assertLogs("schooldash.model", level="WARNING"):
            events = parse_many(raw, parse_event, "event")
        self.assertEqual([e.id for e in events], [1, 3])

    def test_category_and_color(self) -> None:
        ev = parse_event({"id": 1, "date": "2024-01-01", "eventType": "MEETING"})
        self.assertEqual(ev.category, "administrative")
        self.assertEqual(ev.color, "#F97316")


class TestMappings(unittest.TestCase):
    def test_event_type_mapping(self) -> None:
        self.assertEqual(category_from_event_type("SEMINAR"), "academic")
        self.assertEqual(category_from_event_type("SPORTS"), "holiday")
        self.assertEqual(category_from_event_type("ORIENTATION"), "special")
        self.assertEqual(category_from_event_type("OTHER"), "deadline")
        self.assertEqual(category_from_event_type("SOMETHING"), "academic")
        self.assertEqual(event_type_from_category("special"), "GRADUATION")

    def test_priority_and_status(self) -> None:
        self.assertEqual(priority_from_api("URGENT"), "critical")
        self.assertEqual(priority_from_api(None), "medium")
        self.assertEqual(priority_to_api("medium"), "NORMAL")
        self.assertEqual(status_from_api("ONGOING"), "published")
        self.assertEqual(status_from_api("POSTPONED"), "cancelled")
        self.assertEqual(status_from_api("whatever"), "draft")

    def test_risk_thresholds(self) -> None:
        self.assertEqual(risk_level_for_rate(90), "none")
        self.assertEqual(risk_level_for_rate(89.9), "low")
        self.assertEqual(risk_level_for_rate(75), "low")
        self.assertEqual(risk_level_for_rate(50), "medium")
        self.assertEqual(risk_level_for_rate(49.9), "high")


class TestEventForm(unittest.TestCase):
    def test_required_fields(self) -> None:
        errors = validate_event_form(EventForm())
        self.assertEqual(set(errors), {"title", "description", "start", "end"})

    def test_end_must_follow_start(self) -> None:
        form = EventForm(title="a", description="b", start="2024-01-02T10:00", end="2024-01-02T10:00")
        self.assertIn("end", validate_event_form(form))

    def test_all_day_payload_spans_whole_days(self) -> None:
        form = EventForm(
            title="Break", description="d", start="2024-01-02T10:00", end="2024-01-03T11:00", all_day=True
        )
        payload = form_to_payload(form)
        self.assertEqual(payload["eventDate"], "2024-01-02T00:00:00")
        self.assertEqual(payload["endDate"], "2024-01-03T23:59:59.999000")
        self.assertEqual(payload["eventType"], "ACADEMIC")
        self.assertEqual(payload["priority"], "NORMAL")

    def test_invalid_form_raises(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            form_to_payload(EventForm(title="x"))
        self.assertIn("description", ctx.exception.field_errors)


class TestStudentParsing(unittest.TestCase):
    def test_derives_rate_and_risk(self) -> None:
        s = parse_student_attendance({"studentId": 5, "firstName": "Ana", "lastName": "Cruz", "totalClasses": 4, "attendedClasses": 3})
        self.assertEqual(s.id, "5")
        self.assertEqual(s.name, "Ana Cruz")
        self.assertEqual(s.attendance_rate, 75.0)
        self.assertEqual(s.risk_level, "low")

    def test_api_risk_level_wins(self) -> None:
        s = parse_student_attendance({"studentId": "x", "studentName": "B", "attendanceRate": 95, "riskLevel": "HIGH"})
        self.assertEqual(s.risk_level, "high")


if __name__ == "__main__":
    unittest.main()
