"""
CLI (Command Line Interface).

Quick terminal commands for the dashboard pages, e.g.:

    schooldash events list --category academic --range week
    schooldash events publish 1 2 3
    schooldash events export out.ics --format ical
    schooldash calendar --view week --date 2024-01-02
    schooldash events --year 1 --semester 11 list
    schooldash trends --class CS101 --metric late
    schooldash students --search ana --risk high
    schooldash students details 2021-0001
    schooldash students records-export 2021-0001 --format pdf
    schooldash analytics --range month --export summary.xlsx --format excel
    schooldash settings set display.showWeekends false
    schooldash interactive

Note:
- The interactive UI lives in schooldash/interactive.py
- Commands print plain text; logging goes through rich's handler
"""

from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import Any, Optional

from rich.logging import RichHandler

from schooldash.analytics import TIME_RANGES
from schooldash.analytics_page import AnalyticsPage
from schooldash.api import ApiClient
from schooldash.calendar_page import SUBMIT_ERROR, CalendarPage
from schooldash.calendar_view import DayView, WeekView
from schooldash.charts import METRICS, text_bar
from schooldash.config import Config, load_config
from schooldash.errors import SchoolDashError
from schooldash.export import FORMATS
from schooldash.filters import DATE_RANGES, paginate
from schooldash.model import CATEGORIES, EVENT_STATUSES, PRIORITIES, RISK_LEVELS, AcademicEvent, EventForm
from schooldash.storage import load_settings, save_settings, update_setting
from schooldash.students_page import SORT_KEYS, StudentsPage
from schooldash.trends_page import TrendsPage

log = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=False)],
        force=True,
    )


def _print_notification(level: str, message: str) -> None:
    prefix = "Error: " if level == "error" else ""
    print(f"{prefix}{message}")


def _iso_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date '{text}' (expected YYYY-MM-DD)") from e


def _bool_value(text: str) -> bool:
    value = text.strip().lower()
    if value in {"true", "1", "yes", "on"}:
        return True
    if value in {"false", "0", "no", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got '{text}'")


def _event_line(ev: AcademicEvent) -> str:
    when = ev.start.strftime("%Y-%m-%d") if ev.all_day else ev.start.strftime("%Y-%m-%d %H:%M")
    bits = [f"#{ev.id}", when, ev.title, f"[{ev.category}/{ev.priority}/{ev.status}]"]
    if ev.location:
        bits.append(f"@ {ev.location}")
    return " | ".join(bits)


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------


def _calendar_page(args: argparse.Namespace, config: Config, client: ApiClient) -> CalendarPage:
    page = CalendarPage(client, config.settings_path, notify=_print_notification)
    if not page.load():
        raise SystemExit(1)
    if args.year is not None and not page.select_semester(args.year, args.semester):
        raise SystemExit(1)
    return page


def _cmd_events(args: argparse.Namespace, config: Config, client: ApiClient) -> int:
    page = _calendar_page(args, config, client)

    if args.action == "list":
        page.set_filters(
            search=args.search or "",
            category=args.category,
            priority=args.priority,
            status=args.status,
            date_range=args.range,
        )
        events = page.visible_events
        if not events:
            print("No events found.")
            return 0
        for ev in paginate(events, args.page, max(1, args.page_size)):
            print(_event_line(ev))
        stats = page.stats
        print(
            f"{len(events)} shown | total={stats['total']} published={stats['published']} "
            f"pending={stats['pending']} critical={stats['critical']}"
        )
        return 0

    if args.action == "show":
        ev = page.find(args.id)
        if ev is None:
            print(f"Event not found: {args.id}")
            return 1
        print(_event_line(ev))
        print(f"  {ev.start:%Y-%m-%d %H:%M} -> {ev.end:%Y-%m-%d %H:%M}{' (all day)' if ev.all_day else ''}")
        if ev.description:
            print(f"  {ev.description}")
        print(f"  created by {ev.created_by}")
        return 0

    if args.action == "add":
        form = EventForm(
            title=args.title,
            description=args.description,
            category=args.category,
            priority=args.priority,
            start=args.start,
            end=args.end,
            location=args.location or "",
            all_day=args.all_day,
            requires_approval=args.requires_approval,
        )
        errors = page.create_event(form)
        for field_name, message in errors.items():
            if field_name == SUBMIT_ERROR:
                continue  # already reported by the page
            print(f"{field_name}: {message}")
        return 1 if errors else 0

    if args.action == "delete":
        deleted = page.delete_selected(args.ids)
        return 0 if deleted == len(args.ids) else 1

    if args.action in ("publish", "archive"):
        updated = page.bulk_action(args.action, args.ids)
        return 0 if updated == len(args.ids) else 1

    if args.action == "export":
        return 0 if page.export(args.format, args.out) else 1

    if args.action == "import":
        result = page.import_file(args.file)
        print(f"Imported: {result.success} | Failed: {result.failed}")
        for line in result.errors:
            print(f"  {line}")
        return 0 if result.failed == 0 else 1

    if args.action == "report":
        print(page.report())
        return 0

    return 2


def _cmd_calendar(args: argparse.Namespace, config: Config, client: ApiClient) -> int:
    page = _calendar_page(args, config, client)
    page.set_view(args.view)
    if args.date:
        page.current_date = args.date

    view = page.view()
    if args.view == "month":
        for cell in view:
            if not cell.events:
                continue
            marker = "*" if cell.is_today else " "
            titles = ", ".join(ev.title for ev in cell.preview)
            more = f" +{cell.hidden_count} more" if cell.hidden_count else ""
            print(f"{marker}{cell.day.isoformat()}: {titles}{more}")
    elif isinstance(view, WeekView):
        for day in view.days:
            print(day.strftime("%a %Y-%m-%d"))
            for hour in view.hours:
                for placed in view.at(day, hour):
                    print(f"  {placed.event.start:%H:%M} {placed.event.title}")
    elif isinstance(view, DayView):
        print(view.day.strftime("%A %Y-%m-%d"))
        for ev in view.all_day:
            print(f"  all day  {ev.title}")
        for hour, groups in view.by_hour.items():
            for key, events in groups.items():
                print(f"  {key:>5}    " + ", ".join(ev.title for ev in events))
        if view.is_free:
            print("  No events scheduled")
    else:
        for ev in view:
            print(_event_line(ev))
    return 0


# ---------------------------------------------------------------------------
# trends / students / analytics / settings
# ---------------------------------------------------------------------------


def _cmd_trends(args: argparse.Namespace, config: Config, client: ApiClient) -> int:
    page = TrendsPage(client, args.instructor or config.instructor_id, notify=_print_notification)
    page.set_range(args.start, args.end)
    page.select_class(args.class_code)
    page.set_metric(args.metric)
    if not page.load():
        return 1

    if not page.rows:
        print("No trend data.")
        return 0
    page.pager.go_to(args.page, len(page.filtered))
    chart = page.chart()
    for row in page.page_rows:
        value = row.metric(args.metric)
        print(f"{row.date} {row.code:<10} {value:>4} {text_bar(value, chart.max_value)}")
    print(f"Page {page.pager.page}/{page.total_pages} | {len(page.filtered)} data points | max {chart.max_value:g}")
    return 0


def _cmd_students(args: argparse.Namespace, config: Config, client: ApiClient) -> int:
    page = StudentsPage(client, notify=_print_notification, page_size=args.page_size)
    page.filters.search = args.search or ""
    page.filters.department = args.department or "all"
    page.filters.risk_level = args.risk
    page.sort_key = args.sort
    page.sort_direction = "desc" if args.desc else "asc"
    page.pager.page = max(1, args.page)
    if not page.load():
        return 1

    if args.action == "details":
        records = page.details(args.id)
        if not records:
            print("No attendance records.")
            return 0
        for r in records:
            print(f"{r.timestamp:%Y-%m-%d} {r.status:<8} {r.subject} | {r.room} | in {r.time_in or '-'} out {r.time_out or '-'}")
        return 0

    if args.action == "export":
        return 0 if page.export(args.format, args.out) else 1

    if args.action == "records-export":
        return 0 if page.export_records(args.id, args.format, args.out) else 1

    if not page.students:
        print("No students found.")
        return 0
    for s in page.students:
        print(f"{s.id} | {s.name} | {s.department} | {s.attendance_rate:.1f}% | risk={s.risk_level} | {s.status}")
    print(f"Page {page.pager.page}/{page.total_pages} | {page.total} students")
    return 0


def _cmd_analytics(args: argparse.Namespace, config: Config, client: ApiClient) -> int:
    students = StudentsPage(client, notify=_print_notification, page_size=100)
    if not students.load():
        return 1

    page = AnalyticsPage(client, students.students, notify=_print_notification)
    page.staged.set(time_range=args.range, department=args.department or "all", risk_level=args.risk)
    if args.range == "custom":
        if not (args.start and args.end):
            print("--start and --end are required for a custom range.")
            return 1
        page.staged.set_custom_range(args.start, args.end)
    page.staged.apply()
    if not page.load():
        return 1

    s = page.summary
    print(f"Students: {s.total_students} | Departments: {s.departments} | Attendance: {s.attendance_rate:.1f}%")
    print("Risk: " + ", ".join(f"{r['level']}={r['count']}" for r in page.risk_levels))
    top = max((d["attendanceRate"] for d in page.departments), default=0)
    for d in page.departments:
        print(f"  {d['name']:<20} {d['attendanceRate']:>6.1f}% {text_bar(d['attendanceRate'], top)}")
    change = page.rate_change()
    print(f"Trend: {change['direction']} {change['change']}% over {len(page.trend)} points")
    if args.export:
        return 0 if page.export(args.format, args.export) else 1
    return 0


def _cmd_settings(args: argparse.Namespace, config: Config) -> int:
    settings = load_settings(config.settings_path)
    if args.action == "set":
        try:
            settings = update_setting(settings, args.key, args.value)
        except KeyError:
            print(f"Unknown setting: {args.key}")
            return 1
        save_settings(settings, config.settings_path)
        print(f"Saved {args.key} = {str(args.value).lower()}")
        return 0

    for section, values in settings.items():
        for key, value in values.items():
            print(f"{section}.{key} = {str(value).lower()}")
    return 0


def _add_semester_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--year", type=int, help="Academic year id")
    parser.add_argument("--semester", type=int, help="Semester id (default: first semester of the year)")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="schooldash", description="School dashboard CLI")
    parser.add_argument("--base-url", help="API base URL (overrides SCHOOLDASH_API_BASE_URL)")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    # events
    p_events = sub.add_parser("events", help="Academic calendar events")
    _add_semester_args(p_events)
    ev_sub = p_events.add_subparsers(dest="action", required=True)

    p_list = ev_sub.add_parser("list", help="List events")
    p_list.add_argument("--category", choices=("all",) + CATEGORIES, default="all")
    p_list.add_argument("--priority", choices=("all",) + PRIORITIES, default="all")
    p_list.add_argument("--status", choices=("all",) + EVENT_STATUSES, default="all")
    p_list.add_argument("--range", choices=DATE_RANGES, default="all")
    p_list.add_argument("--search", type=str)
    p_list.add_argument("--page", type=int, default=1)
    p_list.add_argument("--page-size", type=int, default=20)

    p_show = ev_sub.add_parser("show", help="Show one event")
    p_show.add_argument("id", type=int)

    p_add = ev_sub.add_parser("add", help="Create an event")
    p_add.add_argument("--title", required=True)
    p_add.add_argument("--description", required=True)
    p_add.add_argument("--start", required=True, help="YYYY-MM-DDTHH:MM")
    p_add.add_argument("--end", required=True, help="YYYY-MM-DDTHH:MM")
    p_add.add_argument("--category", choices=CATEGORIES, default="academic")
    p_add.add_argument("--priority", choices=PRIORITIES, default="medium")
    p_add.add_argument("--location")
    p_add.add_argument("--all-day", action="store_true")
    p_add.add_argument("--requires-approval", action="store_true")

    for name, help_text in (
        ("delete", "Delete events"),
        ("publish", "Publish events"),
        ("archive", "Archive (cancel) events"),
    ):
        p = ev_sub.add_parser(name, help=help_text)
        p.add_argument("ids", type=int, nargs="+")

    p_export = ev_sub.add_parser("export", help="Export all loaded events")
    p_export.add_argument("out", nargs="?", help="Output file (default academic-calendar-<date>.<ext>)")
    p_export.add_argument("--format", choices=FORMATS, default="csv")

    p_import = ev_sub.add_parser("import", help="Import events from a CSV or JSON file")
    p_import.add_argument("file")

    ev_sub.add_parser("report", help="Print a summary report")

    # calendar
    p_cal = sub.add_parser("calendar", help="Show the calendar")
    p_cal.add_argument("--view", choices=("month", "week", "day", "timeline"), default="month")
    p_cal.add_argument("--date", type=_iso_date)
    _add_semester_args(p_cal)

    # trends
    p_trends = sub.add_parser("trends", help="Attendance trends per class")
    p_trends.add_argument("--start", type=str)
    p_trends.add_argument("--end", type=str)
    p_trends.add_argument("--class", dest="class_code", type=str)
    p_trends.add_argument("--metric", choices=METRICS, default="present")
    p_trends.add_argument("--instructor", type=int)
    p_trends.add_argument("--page", type=int, default=1)

    # students
    p_students = sub.add_parser("students", help="Student attendance")
    p_students.add_argument("--search", type=str)
    p_students.add_argument("--department", type=str)
    p_students.add_argument("--risk", choices=("all",) + RISK_LEVELS, default="all")
    p_students.add_argument("--sort", choices=tuple(SORT_KEYS), default="name")
    p_students.add_argument("--desc", action="store_true")
    p_students.add_argument("--page", type=int, default=1)
    p_students.add_argument("--page-size", type=int, default=10)
    st_sub = p_students.add_subparsers(dest="action")
    p_details = st_sub.add_parser("details", help="Attendance records of one student")
    p_details.add_argument("id", type=str)
    p_st_export = st_sub.add_parser("export", help="Export the current page")
    p_st_export.add_argument("out", nargs="?")
    p_st_export.add_argument("--format", choices=("csv", "excel", "pdf"), default="csv")
    p_records = st_sub.add_parser("records-export", help="Export the attendance records of one student")
    p_records.add_argument("id", type=str)
    p_records.add_argument("out", nargs="?", help="Output file (default attendance-records-<date>.<ext>)")
    p_records.add_argument("--format", choices=("csv", "excel", "pdf"), default="csv")

    # analytics
    p_an = sub.add_parser("analytics", help="Attendance analytics summary")
    p_an.add_argument("--range", choices=TIME_RANGES, default="week")
    p_an.add_argument("--start", type=_iso_date)
    p_an.add_argument("--end", type=_iso_date)
    p_an.add_argument("--department", type=str)
    p_an.add_argument("--risk", choices=("all",) + RISK_LEVELS, default="all")
    p_an.add_argument("--export", metavar="FILE", help="Also write the summary to FILE")
    p_an.add_argument("--format", choices=("csv", "excel", "pdf"), default="csv")

    # settings
    p_settings = sub.add_parser("settings", help="Calendar settings")
    set_sub = p_settings.add_subparsers(dest="action", required=True)
    set_sub.add_parser("show", help="Show settings")
    p_set = set_sub.add_parser("set", help="Change one setting")
    p_set.add_argument("key", help="SECTION.KEY, e.g. display.showWeekends")
    p_set.add_argument("value", type=_bool_value)

    sub.add_parser("interactive", help="Interactive menu mode")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config().with_overrides(api_base_url=args.base_url, log_level=args.log_level)
    setup_logging(config.log_level)
    log.debug("Using API at %s (%s)", config.api_base_url, config.env)

    if args.command == "settings":
        raise SystemExit(_cmd_settings(args, config))

    client = ApiClient.from_config(config)
    handlers: dict[str, Any] = {
        "events": _cmd_events,
        "calendar": _cmd_calendar,
        "trends": _cmd_trends,
        "students": _cmd_students,
        "analytics": _cmd_analytics,
    }

    if args.command in handlers:
        try:
            raise SystemExit(handlers[args.command](args, config, client))
        except SchoolDashError as e:
            log.error("%s", e)
            print(f"Error: {e}")
            raise SystemExit(1)

    if args.command == "interactive":
        from schooldash.interactive import run_interactive

        run_interactive(config, client)
        raise SystemExit(0)

    raise SystemExit(2)
