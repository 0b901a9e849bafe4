"""
Tests for bulk event import.

Import contract:
- rows are posted one by one; a bad row does not stop the rest
- every failure is reported as "Row N: message"
"""

import json
import tempfile
import unittest
from pathlib import Path

from fakes import FakeResponse, FakeSession

from schooldash.api import ApiClient
from schooldash.errors import ValidationError
from schooldash.importer import build_import_payload, import_events, load_import_file


class TestBuildPayload(unittest.TestCase):
    def test_defaults(self) -> None:
        payload = build_import_payload({"title": "Orientation", "date": "2024-06-03"})
        self.assertEqual(payload["eventType"], "LECTURE")
        self.assertEqual(payload["priority"], "NORMAL")
        self.assertTrue(payload["isPublic"])
        self.assertFalse(payload["requiresRegistration"])
        self.assertIsNone(payload["capacity"])
        self.assertTrue(payload["eventDate"].endswith("Z"))

    def test_flags_and_capacity(self) -> None:
        payload = build_import_payload({"date": "2024-06-03", "isPublic": "no", "capacity": "40"})
        self.assertFalse(payload["isPublic"])
        self.assertEqual(payload["capacity"], 40)

    def test_bad_date(self) -> None:
        with self.assertRaises(ValidationError):
            build_import_payload({"date": "June 3rd"})


class TestImportEvents(unittest.TestCase):
    def test_counts_and_row_errors(self) -> None:
        session = FakeSession()
        session.add(
            "POST",
            "/api/events",
            [
                FakeResponse({"eventId": 1}, status_code=201),
                FakeResponse({"error": "Title already used"}, status_code=409, reason="Conflict"),
                FakeResponse({"eventId": 3}, status_code=201),
            ],
        )
        client = ApiClient("http://api.test", session=session)
        records = [
            {"title": "A", "date": "2024-06-03"},
            {"title": "B", "date": "2024-06-04"},
            {"title": "C", "date": "not-a-date"},
            {"title": "D", "date": "2024-06-05"},
        ]
        result = import_events(client, records)
        self.assertEqual(result.success, 2)
        self.assertEqual(result.failed, 2)
        self.assertEqual(result.total, 4)
        self.assertEqual(result.errors, ["Row 2: Title already used", "Row 3: Invalid date or time"])
        self.assertEqual(len(session.calls_to("POST")), 3)


class TestLoadFile(unittest.TestCase):
    def test_csv_and_json(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            csv_path = Path(d) / "events.csv"
            csv_path.write_text("\ufefftitle,date\nExam,2024-06-03\n", encoding="utf-8")
            self.assertEqual(load_import_file(csv_path), [{"title": "Exam", "date": "2024-06-03"}])

            json_path = Path(d) / "events.json"
            json_path.write_text(json.dumps({"events": [{"title": "X"}, 3]}), encoding="utf-8")
            self.assertEqual(load_import_file(json_path), [{"title": "X"}])

    def test_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "bad.json"
            p.write_text("{", encoding="utf-8")
            with self.assertRaises(ValidationError):
                load_import_file(p)


if __name__ == "__main__":
    unittest.main()
