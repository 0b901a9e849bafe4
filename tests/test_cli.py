"""
Tests for CLI entry points.

These tests focus on:
- Basic CLI argument validation (argparse exits non-zero)
- Settings persistence using a temporary file
  (to avoid touching real user data during tests)
- A full `events list` run against a fake API session
"""

import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from fakes import FakeResponse, FakeSession, event_json, student_json
from rich.console import Console

from schooldash import interactive
from schooldash.api import ApiClient
from schooldash.cli import build_parser, main
from schooldash.config import load_config


def _run(argv) -> tuple[int, str]:
    """Run main() and return (exit code, captured stdout)."""
    out = io.StringIO()
    with redirect_stdout(out):
        try:
            main(argv)
        except SystemExit as e:
            return e.code, out.getvalue()
    return 0, out.getvalue()


class TestArgumentValidation(unittest.TestCase):
    def test_invalid_date_exits_nonzero(self) -> None:
        with redirect_stdout(io.StringIO()), mock.patch("sys.stderr", io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                build_parser().parse_args(["calendar", "--date", "2024-02-30"])
        self.assertNotEqual(ctx.exception.code, 0)

    def test_settings_requires_action(self) -> None:
        with mock.patch("sys.stderr", io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                main(["settings"])
        self.assertNotEqual(ctx.exception.code, 0)

    def test_bool_values(self) -> None:
        args = build_parser().parse_args(["settings", "set", "display.showWeekends", "off"])
        self.assertIs(args.value, False)


class TestSettingsCommand(unittest.TestCase):
    def test_set_and_show_roundtrip(self) -> None:
        # Do not touch the real settings file used by users.
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "settings.json"
            env = {"APP_ENV": "testing", "SCHOOLDASH_SETTINGS_PATH": str(p)}
            with mock.patch.dict(os.environ, env):
                code, out = _run(["settings", "set", "integration.googleSync", "true"])
                self.assertEqual(code, 0)
                self.assertTrue(p.exists())

                code, out = _run(["settings", "show"])
                self.assertEqual(code, 0)
                self.assertIn("integration.googleSync = true", out)

                code, out = _run(["settings", "set", "display.fontSize", "true"])
                self.assertEqual(code, 1)


class TestEventsCommand(unittest.TestCase):
    def test_list_against_fake_api(self) -> None:
        session = FakeSession()
        session.add("GET", "/api/academic-years", FakeResponse([]))
        session.add(
            "GET",
            "/api/events",
            FakeResponse([event_json(1, "2024-01-02", title="Enrollment"), event_json(2, "2024-01-03", status="SCHEDULED")]),
        )
        client = ApiClient("http://api.test", session=session)
        with tempfile.TemporaryDirectory() as d:
            env = {"APP_ENV": "testing", "SCHOOLDASH_SETTINGS_PATH": str(Path(d) / "s.json")}
            with mock.patch.dict(os.environ, env), mock.patch.object(ApiClient, "from_config", return_value=client):
                code, out = _run(["events", "list", "--status", "published"])
        self.assertEqual(code, 0)
        self.assertIn("#2 | 2024-01-03 09:00 | Event 2", out)
        self.assertNotIn("Enrollment", out)
        self.assertIn("1 shown | total=2 published=1", out)

    def test_api_failure_exits_one(self) -> None:
        session = FakeSession()
        session.add("GET", "/api/academic-years", FakeResponse(None, status_code=503))
        client = ApiClient("http://api.test", session=session)
        with tempfile.TemporaryDirectory() as d:
            env = {"APP_ENV": "testing", "SCHOOLDASH_SETTINGS_PATH": str(Path(d) / "s.json")}
            with mock.patch.dict(os.environ, env), mock.patch.object(ApiClient, "from_config", return_value=client):
                code, out = _run(["events", "report"])
        self.assertEqual(code, 1)
        self.assertIn("Error: The server encountered an error", out)


YEARS = [
    {
        "id": 1,
        "name": "2023-2024",
        "startDate": "2023-08-01",
        "endDate": "2024-05-31",
        "semesters": [
            {"id": 11, "name": "2nd Semester", "startDate": "2024-01-08", "endDate": "2024-05-31"},
            {"id": 10, "name": "1st Semester", "startDate": "2023-08-01", "endDate": "2023-12-20"},
        ],
    }
]


def _run_against(session: FakeSession, argv, workdir: str) -> tuple[int, str]:
    client = ApiClient("http://api.test", session=session)
    env = {"APP_ENV": "testing", "SCHOOLDASH_SETTINGS_PATH": str(Path(workdir) / "s.json")}
    with mock.patch.dict(os.environ, env), mock.patch.object(ApiClient, "from_config", return_value=client):
        return _run(argv)


class TestEventsSubcommands(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.session = FakeSession()
        self.session.add("GET", "/api/academic-years", FakeResponse(YEARS))
        self.session.add(
            "GET",
            "/api/events",
            FakeResponse([event_json(1, "2024-01-10"), event_json(2, "2024-01-11"), event_json(3, "2024-01-12")]),
        )

    def test_add_exits_one_when_the_api_fails(self) -> None:
        self.session.add("POST", "/api/events", FakeResponse({"error": "db down"}, status_code=500, reason="Server Error"))
        argv = ["events", "add", "--title", "Exam", "--description", "Finals"]
        argv += ["--start", "2024-01-15T09:00", "--end", "2024-01-15T11:00"]
        code, out = _run_against(self.session, argv, self.tmp.name)
        self.assertEqual(code, 1)
        self.assertIn("Error: Failed to create event", out)
        self.assertNotIn("submit:", out)

    def test_list_is_paginated(self) -> None:
        code, out = _run_against(self.session, ["events", "list", "--page", "2", "--page-size", "2"], self.tmp.name)
        self.assertEqual(code, 0)
        self.assertIn("#3 | ", out)
        self.assertNotIn("#1 | ", out)
        self.assertIn("3 shown", out)

    def test_year_and_semester_select_the_event_window(self) -> None:
        code, out = _run_against(self.session, ["events", "--year", "1", "--semester", "10", "report"], self.tmp.name)
        self.assertEqual(code, 0)
        params = self.session.calls_to("GET", "/api/events")[-1].params
        self.assertEqual((params["startDate"], params["endDate"]), ("2023-08-01", "2023-12-20"))

    def test_unknown_year_exits_one(self) -> None:
        code, out = _run_against(self.session, ["calendar", "--year", "7"], self.tmp.name)
        self.assertEqual(code, 1)
        self.assertIn("Error: Unknown academic year: 7", out)


class TestStudentsAndAnalyticsExports(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.session = FakeSession()
        self.session.add(
            "GET",
            "/api/attendance/students",
            FakeResponse({"items": [student_json("1"), student_json("2", department="IT")], "total": 2}),
        )

    def test_records_export(self) -> None:
        self.session.add(
            "GET",
            "/api/students/1/details",
            FakeResponse({"attendanceRecords": [{"attendanceId": 1, "timestamp": "2024-01-02T08:01:00", "status": "PRESENT"}]}),
        )
        out_file = Path(self.tmp.name) / "records.csv"
        code, out = _run_against(
            self.session, ["students", "records-export", "1", str(out_file), "--format", "csv"], self.tmp.name
        )
        self.assertEqual(code, 0)
        lines = out_file.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[1].startswith("2024-01-02,2024-1,Student 1"))

    def test_records_export_of_missing_student_exits_one(self) -> None:
        code, out = _run_against(self.session, ["students", "records-export", "9"], self.tmp.name)
        self.assertEqual(code, 1)
        self.assertIn("Error: Student not loaded: 9", out)

    def test_analytics_export(self) -> None:
        self.session.add("GET", "/api/attendance/analytics", FakeResponse({"success": True, "data": {}}))
        self.session.add("GET", "/api/analytics/filter-options", FakeResponse({}))
        out_file = Path(self.tmp.name) / "analytics.csv"
        code, out = _run_against(self.session, ["analytics", "--export", str(out_file)], self.tmp.name)
        self.assertEqual(code, 0)
        text = out_file.read_text(encoding="utf-8")
        self.assertIn("Summary,Total Students,2", text)
        self.assertIn("Department,IT", text)


class TestInteractive(unittest.TestCase):
    def test_menu_rejects_unknown_choice_and_exits(self) -> None:
        out = io.StringIO()
        config = load_config({"APP_ENV": "testing"})
        client = ApiClient("http://api.test", session=FakeSession())
        with mock.patch.object(interactive, "console", Console(file=out, width=100)), mock.patch.object(
            interactive, "_prompt", side_effect=["9", "0"]
        ):
            interactive.run_interactive(config, client)
        text = out.getvalue()
        self.assertIn("Invalid choice.", text)
        self.assertIn("Bye.", text)
        self.assertIn("env=testing", text)

    def test_ask_ids_skips_junk(self) -> None:
        with mock.patch.object(interactive, "console", Console(file=io.StringIO())), mock.patch.object(
            interactive, "_prompt", return_value="1, 2 x 3"
        ):
            self.assertEqual(interactive._ask_ids("ids: "), [1, 2, 3])

    def test_calendar_edit_prefills_the_current_event(self) -> None:
        session = FakeSession()
        session.add("GET", "/api/academic-years", FakeResponse(YEARS))
        session.add("GET", "/api/events", FakeResponse([event_json(1, "2024-01-10", title="Orientation")]))
        session.add("PUT", "/api/events/1", FakeResponse({"success": True}))
        client = ApiClient("http://api.test", session=session)
        # menu, edit id, then title..approval with only the description changed
        answers = ["1", "e", "1", "", "Welcome week", "", "", "", "", "", "", "", "0", "0"]
        with tempfile.TemporaryDirectory() as d:
            config = load_config({"APP_ENV": "testing", "SCHOOLDASH_SETTINGS_PATH": str(Path(d) / "s.json")})
            with mock.patch.object(interactive, "console", Console(file=io.StringIO(), width=120)), mock.patch.object(
                interactive, "_prompt", side_effect=answers
            ):
                interactive.run_interactive(config, client)
        body = session.calls_to("PUT", "/api/events/1")[0].json
        self.assertEqual(body["title"], "Orientation")
        self.assertEqual(body["description"], "Welcome week")
        self.assertEqual(body["eventDate"], "2024-01-10T09:00:00")

    def test_calendar_year_and_semester_pick(self) -> None:
        session = FakeSession()
        session.add("GET", "/api/academic-years", FakeResponse(YEARS))
        session.add("GET", "/api/events", FakeResponse([]))
        client = ApiClient("http://api.test", session=session)
        with tempfile.TemporaryDirectory() as d:
            config = load_config({"APP_ENV": "testing", "SCHOOLDASH_SETTINGS_PATH": str(Path(d) / "s.json")})
            with mock.patch.object(interactive, "console", Console(file=io.StringIO(), width=120)), mock.patch.object(
                interactive, "_prompt", side_effect=["1", "y", "1", "10", "0", "0"]
            ):
                interactive.run_interactive(config, client)
        params = session.calls_to("GET", "/api/events")[-1].params
        self.assertEqual(params["startDate"], "2023-08-01")

    def test_students_page_size_comes_from_the_offered_sizes(self) -> None:
        session = FakeSession()
        session.add("GET", "/api/attendance/students", FakeResponse({"items": [student_json("1")], "total": 1}))
        client = ApiClient("http://api.test", session=session)
        config = load_config({"APP_ENV": "testing"})
        with mock.patch.object(interactive, "console", Console(file=io.StringIO(), width=120)), mock.patch.object(
            interactive, "_prompt", side_effect=["3", "z", "50", "0", "0"]
        ):
            interactive.run_interactive(config, client)
        self.assertEqual(session.calls_to("GET", "/api/attendance/students")[-1].params["pageSize"], 50)


if __name__ == "__main__":
    unittest.main()
