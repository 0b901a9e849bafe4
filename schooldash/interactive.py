from __future__ import annotations

from datetime import date
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from schooldash.analytics import TIME_RANGES
from schooldash.analytics_page import AnalyticsPage
from schooldash.api import ApiClient
from schooldash.calendar_page import SUBMIT_ERROR, CalendarPage
from schooldash.calendar_view import DayCell, DayView, WeekView
from schooldash.charts import METRICS, RISK_COLORS, sparkline, text_bar
from schooldash.config import Config
from schooldash.filters import DATE_RANGES, distinct
from schooldash.model import (
    ATTENDANCE_STATUSES,
    CATEGORIES,
    CATEGORY_LABELS,
    PRIORITIES,
    AcademicEvent,
    EventForm,
    form_from_event,
)
from schooldash.students_page import SORT_KEYS, StudentsPage
from schooldash.trends_page import TrendsPage

console = Console()

_NOTIFY_STYLE = {"error": "bold red", "success": "green", "info": "cyan"}
_WEEKDAYS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _println(msg: str = "") -> None:
    console.print(msg)


def _prompt(msg: str) -> str:
    return console.input(msg)


def _notify(level: str, message: str) -> None:
    console.print(f"[{_NOTIFY_STYLE.get(level, 'white')}]{message}[/]")


def _pick(msg: str, options: tuple[str, ...], current: str) -> str:
    raw = _prompt(f"{msg} {'/'.join(options)} [{current}]: ").strip().lower()
    if not raw:
        return current
    if raw not in options:
        _println("Invalid choice.")
        return current
    return raw


def _ask_int(msg: str) -> Optional[int]:
    raw = _prompt(msg).strip()
    if not raw:
        return None
    if not raw.lstrip("-").isdigit():
        _println("Not a number.")
        return None
    return int(raw)


def _ask_ids(msg: str) -> list[int]:
    raw = _prompt(msg).replace(",", " ").split()
    ids = [int(x) for x in raw if x.isdigit()]
    if len(ids) != len(raw):
        _println("Ignoring entries that are not numbers.")
    return ids


def run_interactive(config: Config, client: ApiClient) -> None:
    """
    Interactive menu loop over the four dashboard pages.
    """
    calendar = CalendarPage(client, config.settings_path, notify=_notify)
    trends = TrendsPage(client, config.instructor_id, notify=_notify)
    students = StudentsPage(client, notify=_notify)
    analytics = AnalyticsPage(client, notify=_notify)

    while True:
        _println("\n=== School Dashboard ===")
        _println(f"API: {config.api_base_url} | role={config.user_role} | env={config.env}")

        choice = _prompt(
            "\n[1] Academic calendar\n"
            "[2] Attendance trends\n"
            "[3] Student attendance\n"
            "[4] Attendance analytics\n"
            "[0] Exit\n"
            "Select: "
        ).strip()

        if choice == "0":
            _println("Bye.")
            return

        if choice == "1":
            _flow_calendar(calendar)
        elif choice == "2":
            _flow_trends(trends)
        elif choice == "3":
            _flow_students(students)
        elif choice == "4":
            _flow_analytics(analytics, students)
        else:
            _println("Invalid choice.")


def _retry_prompt(page: Any) -> bool:
    """After a failed load offer a manual retry. Returns True once loaded."""
    while page.error:
        _println(f"[red]{page.error}[/]")
        again = _prompt("Retry? [Y/n]: ").strip().lower()
        if again == "n":
            return False
        page.retry()
    return True


# ---------------------------------------------------------------------------
# Academic calendar
# ---------------------------------------------------------------------------


def _event_row(ev: AcademicEvent) -> list[str]:
    when = f"{ev.start:%Y-%m-%d}" if ev.all_day else f"{ev.start:%Y-%m-%d %H:%M}"
    return [
        str(ev.id),
        when,
        f"[{ev.color}]■[/] {ev.title}",
        CATEGORY_LABELS.get(ev.category, ev.category),
        ev.priority,
        ev.status,
        ev.location,
    ]


def _print_events(title: str, events: list[AcademicEvent], selected: set[int]) -> None:
    table = Table(title=title, box=box.SIMPLE)
    for col in ("", "ID", "When", "Title", "Category", "Priority", "Status", "Location"):
        table.add_column(col)
    for ev in events:
        table.add_row("✔" if ev.id in selected else "", *_event_row(ev))
    console.print(table)


def _print_month(cells: list[DayCell], ref: date) -> None:
    table = Table(title=ref.strftime("%B %Y"), box=box.SQUARE, show_lines=True)
    for name in _WEEKDAYS:
        table.add_column(name, width=14)
    for start in range(0, len(cells), 7):
        row = []
        for cell in cells[start : start + 7]:
            day = f"[bold reverse]{cell.day.day}[/]" if cell.is_today else str(cell.day.day)
            if not cell.in_current_month:
                day = f"[dim]{cell.day.day}[/]"
            lines = [day] + [f"[{ev.color}]{ev.title[:12]}[/]" for ev in cell.preview]
            if cell.hidden_count:
                lines.append(f"[dim]+{cell.hidden_count} more[/]")
            row.append("\n".join(lines))
        table.add_row(*row)
    console.print(table)


def _print_week(view: WeekView) -> None:
    table = Table(title=f"Week of {view.days[0]:%Y-%m-%d}", box=box.SIMPLE)
    table.add_column("Hour", justify="right")
    for d in view.days:
        table.add_column(d.strftime("%a %d"))
    for hour in view.hours:
        cells = []
        for d in view.days:
            cells.append("\n".join(f"{p.event.start:%H:%M} {p.event.title[:14]}" for p in view.at(d, hour)))
        if any(cells):
            table.add_row(f"{hour}:00", *cells)
    console.print(table)


def _print_day(view: DayView) -> None:
    _println(f"\n[bold]{view.day:%A, %B %d %Y}[/]")
    if view.is_free:
        _println("No events scheduled")
        return
    for ev in view.all_day:
        _println(f"  [dim]all day[/] [{ev.color}]{ev.title}[/]")
    for groups in view.by_hour.values():
        for key, events in groups.items():
            _println(f"  {key:>5}  " + ", ".join(f"[{ev.color}]{ev.title}[/]" for ev in events))


def _render_calendar(page: CalendarPage) -> None:
    stats = page.stats
    _println(
        f"\nTotal {stats['total']} | Published {stats['published']} | "
        f"Pending {stats['pending']} | Critical {stats['critical']}"
    )
    if page.selected_semester is not None:
        _println(f"Semester: {page.selected_semester.name}")
    if page.chips:
        _println("Filters: " + " · ".join(page.chips.values()))

    view = page.view()
    if page.view_mode == "month":
        _print_month(view, page.current_date)
    elif isinstance(view, WeekView):
        _print_week(view)
    elif isinstance(view, DayView):
        _print_day(view)
    else:
        _print_events("Timeline", view, page.selected_ids)


def _form_from_prompts(defaults: Optional[EventForm] = None) -> EventForm:
    """Ask for every form field. With `defaults`, a blank answer keeps the current value."""
    d = defaults or EventForm()

    def text(label: str, current: str) -> str:
        shown = f" [{current}]" if current else ""
        return _prompt(f"{label}{shown}: ").strip() or current

    def flag(label: str, current: bool) -> bool:
        raw = _prompt(f"{label} [{'Y/n' if current else 'y/N'}]: ").strip().lower()
        return current if not raw else raw == "y"

    return EventForm(
        title=text("Title", d.title),
        description=text("Description", d.description),
        category=_pick("Category", CATEGORIES, d.category or "academic"),
        priority=_pick("Priority", PRIORITIES, d.priority or "medium"),
        start=text("Start (YYYY-MM-DDTHH:MM)", d.start),
        end=text("End (YYYY-MM-DDTHH:MM)", d.end),
        location=text("Location", d.location),
        all_day=flag("All day?", d.all_day),
        recurring=d.recurring,
        requires_approval=flag("Requires approval?", d.requires_approval),
    )


def _print_form_errors(errors: dict[str, str]) -> None:
    for field_name, message in errors.items():
        if field_name != SUBMIT_ERROR:
            _println(f"[red]{field_name}: {message}[/]")


def _pick_semester(page: CalendarPage) -> None:
    for year in page.academic_years:
        active = " (active)" if year.is_active else ""
        _println(f"  {year.id} | {year.name}{active}")
        for sem in year.semesters:
            _println(f"      {sem.id} | {sem.name} {sem.start:%Y-%m-%d} - {sem.end:%Y-%m-%d}")
    year_id = _ask_int("Academic year id: ")
    if year_id is None:
        return
    page.select_semester(year_id, _ask_int("Semester id [blank = first]: "))


def _flow_calendar(page: CalendarPage) -> None:
    page.load()
    if not _retry_prompt(page):
        return

    while True:
        _render_calendar(page)
        choice = _prompt(
            "\n[v] View  [p] Prev  [n] Next  [t] Today  [f] Filters  [l] List/select\n"
            "[a] Add  [e] Edit  [d] Delete  [b] Publish/archive  [i] Import  [x] Export\n"
            "[y] Year/semester  [c] Clear selection  [s] Settings  [u] Upcoming  [r] Refresh  [0] Back\n"
            "Select: "
        ).strip().lower()

        if choice == "0":
            return
        if choice == "v":
            page.set_view(_pick("View", ("month", "week", "day", "timeline"), page.view_mode))
        elif choice == "p":
            page.navigate(-1)
        elif choice == "n":
            page.navigate(1)
        elif choice == "t":
            page.go_today()
        elif choice == "f":
            page.set_filters(
                search=_prompt(f"Search [{page.filters.search}]: ").strip() or page.filters.search,
                category=_pick("Category", ("all",) + CATEGORIES, page.filters.category),
                priority=_pick("Priority", ("all",) + PRIORITIES, page.filters.priority),
                date_range=_pick("Date range", DATE_RANGES, page.filters.date_range),
            )
        elif choice == "l":
            _print_events("Events", page.visible_events, page.selected_ids)
            for event_id in _ask_ids("Toggle selection (ids, blank = none): "):
                page.toggle_selected(event_id)
        elif choice == "a":
            _print_form_errors(page.create_event(_form_from_prompts()))
        elif choice == "e":
            event_id = _ask_int("Event id to edit: ")
            current = page.find(event_id) if event_id is not None else None
            if current is not None:
                _print_form_errors(page.update_event(event_id, _form_from_prompts(form_from_event(current))))
        elif choice == "d":
            ids = _ask_ids("Event ids to delete [blank = selection]: ") or None
            page.delete_selected(ids)
        elif choice == "b":
            action = _pick("Action", ("publish", "archive"), "publish")
            ids = _ask_ids("Event ids [blank = selection]: ") or None
            page.bulk_action(action, ids)
        elif choice == "i":
            path = _prompt("File (.csv or .json): ").strip()
            if path:
                result = page.import_file(path)
                for line in result.errors:
                    _println(f"  [red]{line}[/]")
        elif choice == "x":
            fmt = _pick("Format", ("csv", "excel", "pdf", "ical"), "csv")
            out = _prompt("File name [blank = default]: ").strip() or None
            saved = page.export(fmt, out)
            if saved:
                _println(f"Saved to: {saved.resolve()}")
        elif choice == "y":
            _pick_semester(page)
        elif choice == "c":
            page.clear_selection()
        elif choice == "s":
            _flow_settings(page)
        elif choice == "u":
            _print_events("Upcoming (next 7 days)", page.upcoming, set())
        elif choice == "r":
            page.refresh()
        else:
            _println("Invalid choice.")


def _flow_settings(page: CalendarPage) -> None:
    keys = [f"{section}.{key}" for section, values in page.settings.items() for key in values]
    while True:
        table = Table(title="Settings", box=box.SIMPLE)
        table.add_column("#", justify="right")
        table.add_column("Setting")
        table.add_column("Value")
        for i, dotted in enumerate(keys, start=1):
            section, key = dotted.split(".")
            table.add_row(str(i), dotted, "on" if page.settings[section][key] else "off")
        console.print(table)

        pick = _prompt("Number to toggle, [s] save, [r] reset, blank = back: ").strip().lower()
        if not pick:
            return
        if pick == "s":
            page.save_settings()
        elif pick == "r":
            page.reset_settings()
        elif pick.isdigit() and 1 <= int(pick) <= len(keys):
            section, key = keys[int(pick) - 1].split(".")
            page.set_setting(keys[int(pick) - 1], not page.settings[section][key])
        else:
            _println("Invalid choice.")


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------


def _flow_trends(page: TrendsPage) -> None:
    page.load()
    if not _retry_prompt(page):
        return

    while True:
        chart = page.chart()
        values = [r.metric(page.metric) for r in page.filtered]
        _println(f"\n[bold]{page.metric.title()}[/] [{page.color}]{sparkline(values)}[/]  max {chart.max_value:g}")

        table = Table(title=f"Trends (page {page.pager.page}/{page.total_pages})", box=box.SIMPLE)
        for col in ("Date", "Class", "Name", "Present", "Absent", "Late", "Excused"):
            table.add_column(col)
        for r in page.page_rows:
            table.add_row(r.date, r.code, r.name, str(r.present), str(r.absent), str(r.late), str(r.excused))
        console.print(table)

        choice = _prompt("[m] Metric  [c] Class  [d] Dates  [n] Next  [p] Prev  [0] Back: ").strip().lower()
        if choice == "0":
            return
        if choice == "m":
            page.set_metric(_pick("Metric", METRICS, page.metric))
        elif choice == "c":
            for code, name in page.class_options:
                _println(f"  {code} | {name}")
            page.select_class(_prompt("Class code [blank = all]: ").strip())
        elif choice == "d":
            page.set_range(_prompt("Start (YYYY-MM-DD): ").strip(), _prompt("End (YYYY-MM-DD): ").strip())
            page.load()
        elif choice == "n":
            page.pager.next(len(page.filtered))
        elif choice == "p":
            page.pager.previous(len(page.filtered))
        else:
            _println("Invalid choice.")


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------


def _print_students(page: StudentsPage) -> None:
    table = Table(title=f"Students (page {page.pager.page}/{page.total_pages}, {page.total} total)", box=box.SIMPLE)
    for col in ("", "ID", "Name", "Department", "Course", "Rate", "Risk", "Status"):
        table.add_column(col)
    for s in page.students:
        risk = f"[{RISK_COLORS.get(s.risk_level, 'white')}]{s.risk_level}[/]"
        table.add_row(
            "✔" if s.id in page.selected_ids else "",
            s.id,
            s.name,
            s.department,
            s.course,
            f"{s.attendance_rate:.1f}% {text_bar(s.attendance_rate, 100, width=10)}",
            risk,
            s.status,
        )
    console.print(table)


def _flow_students(page: StudentsPage) -> None:
    page.load()
    if not _retry_prompt(page):
        return

    while True:
        _print_students(page)
        choice = _prompt(
            "[s] Search  [f] Filters  [o] Sort  [n] Next  [p] Prev  [z] Page size\n"
            "[d] Details  [t] Toggle select  [c] Clear selection  [u] Bulk status  [a] Archive\n"
            "[x] Export page  [r] Export records  [0] Back: "
        ).strip().lower()

        if choice == "0":
            return
        if choice == "s":
            page.search(_prompt("Search: ").strip())
        elif choice == "f":
            page.set_filter(
                department=_prompt("Department [blank = all]: ").strip(),
                risk_level=_prompt("Risk level [blank = all]: ").strip().lower(),
            )
        elif choice == "o":
            page.sort_by(_pick("Sort by", tuple(SORT_KEYS), page.sort_key))
        elif choice == "n":
            page.go_to_page(page.pager.page + 1)
        elif choice == "p":
            page.go_to_page(page.pager.page - 1)
        elif choice == "z":
            options = tuple(str(n) for n in page.pager.page_size_options)
            page.set_page_size(int(_pick("Page size", options, str(page.pager.page_size))))
        elif choice == "d":
            sid = _prompt("Student id: ").strip()
            table = Table(title=f"Attendance records of {sid}", box=box.SIMPLE)
            for col in ("Date", "Status", "Subject", "Room", "In", "Out", "Notes"):
                table.add_column(col)
            for r in page.details(sid):
                table.add_row(
                    f"{r.timestamp:%Y-%m-%d}", r.status, r.subject, r.room, r.time_in or "-", r.time_out or "-", r.notes
                )
            console.print(table)
        elif choice == "t":
            for sid in _prompt("Student ids: ").replace(",", " ").split():
                page.toggle_selected(sid)
        elif choice == "c":
            page.clear_selection()
        elif choice == "u":
            status = _pick("Status", tuple(s.lower() for s in ATTENDANCE_STATUSES), "present")
            page.bulk_update_status(status, _prompt("Reason [optional]: ").strip() or None)
        elif choice == "a":
            sid = _prompt("Student id: ").strip()
            page.soft_delete(sid, _pick("Action", ("archive", "deactivate"), "archive"))
        elif choice == "x":
            fmt = _pick("Format", ("csv", "excel", "pdf"), "csv")
            page.export(fmt, _prompt("File name [blank = default]: ").strip() or None)
        elif choice == "r":
            sid = _prompt("Student id: ").strip()
            fmt = _pick("Format", ("csv", "excel", "pdf"), "csv")
            page.export_records(sid, fmt, _prompt("File name [blank = default]: ").strip() or None)
        else:
            _println("Invalid choice.")


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


def _render_analytics(page: AnalyticsPage) -> None:
    s = page.summary
    change = page.rate_change()
    arrow = {"up": "▲", "down": "▼"}.get(change["direction"], "•")
    _println(
        f"\nStudents {s.total_students} | Attendance {s.attendance_rate:.1f}% | "
        f"High risk {s.high_risk} | Departments {s.departments} | Trend {arrow} {change['change']}%"
    )
    if page.drill.breadcrumbs:
        _println("Drill-down: All › " + " › ".join(page.drill.breadcrumbs))

    table = Table(title="Departments", box=box.SIMPLE)
    table.add_column("Department")
    table.add_column("Students", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("")
    for d in page.departments:
        table.add_row(d["name"], str(d["count"]), f"{d['attendanceRate']:.1f}%", text_bar(d["attendanceRate"], 100, 20))
    console.print(table)

    _println("Risk: " + "  ".join(f"[{RISK_COLORS[r['level']]}]{r['level']} {r['count']}[/]" for r in page.risk_levels))
    _println("Attendance: " + "  ".join(f"{p['name']} {p['percentage']}%" for p in page.pie))

    trend = page.trend
    if trend:
        rates = [float(p.get("attendanceRate") or 0) for p in trend]
        peaks = sum(1 for p in trend if p["isPeak"])
        valleys = sum(1 for p in trend if p["isValley"])
        _println(f"{page.x_axis['label']} trend {sparkline(rates)}  peaks {peaks}, valleys {valleys}")
    streaks = page.streaks
    _println(f"Streaks: best {streaks['maxGoodStreak']} | worst {streaks['maxPoorStreak']} | {streaks['currentStreakType']}")


def _flow_analytics(page: AnalyticsPage, students: StudentsPage) -> None:
    if not students.students:
        students.load()
    page.set_students(students.students)
    page.load()
    if not _retry_prompt(page):
        return

    while True:
        _render_analytics(page)
        pending = " [yellow](unapplied changes)[/]" if page.staged.has_pending_changes else ""
        choice = _prompt(
            f"[r] Time range  [d] Department  [k] Risk  [a] Apply{pending}  [c] Clear\n"
            "[g] Drill down  [u] Up one level  [b] Reset drill-down  [x] Export  [0] Back: "
        ).strip().lower()

        if choice == "0":
            return
        if choice == "r":
            preset = _pick("Range", TIME_RANGES, page.staged.pending.time_range)
            if preset == "custom":
                try:
                    start = date.fromisoformat(_prompt("Start (YYYY-MM-DD): ").strip())
                    end = date.fromisoformat(_prompt("End (YYYY-MM-DD): ").strip())
                    page.staged.set_custom_range(start, end)
                except ValueError as e:
                    _println(f"[red]{e}[/]")
            else:
                page.staged.set(time_range=preset)
        elif choice == "d":
            departments = distinct(page.students, lambda s: s.department)
            if departments:
                _println("Departments: " + ", ".join(departments))
            page.staged.set(department=_prompt("Department [blank = all]: ").strip() or "all")
        elif choice == "k":
            page.staged.set(risk_level=_pick("Risk", ("all", "none", "low", "medium", "high"), page.staged.pending.risk_level))
        elif choice == "a":
            page.apply_filters()
        elif choice == "c":
            page.clear_filters()
        elif choice == "g":
            kind = _pick("By", ("department", "risk_level"), "department")
            value = _prompt("Value: ").strip()
            if value:
                page.drill_down(kind, value)
        elif choice == "u":
            page.drill_back()
        elif choice == "b":
            page.reset_drill_down()
        elif choice == "x":
            fmt = _pick("Format", ("csv", "excel", "pdf"), "csv")
            saved = page.export(fmt, _prompt("File name [blank = default]: ").strip() or None)
            if saved:
                _println(f"Saved to: {saved.resolve()}")
        else:
            _println("Invalid choice.")
