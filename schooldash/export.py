"""
Export of calendar events and attendance records.

Formats:
- CSV   (csv module, one line per record)
- iCal  (.ics, importable into Google Calendar / Outlook / Apple Calendar)
- Excel (.xlsx workbook via openpyxl)
- PDF   (grid table via reportlab)

Tabular exports all go through write_export(rows, columns, fmt, path), so the
calendar page and the student page share the same writers.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from schooldash.analytics import Summary
from schooldash.errors import ExportError
from schooldash.model import CATEGORIES, CATEGORY_LABELS, AcademicEvent, AttendanceRecord, StudentAttendance

log = logging.getLogger(__name__)

FORMATS = ("csv", "excel", "pdf", "ical")
EXTENSIONS = {"csv": "csv", "excel": "xlsx", "pdf": "pdf", "ical": "ics"}

EVENT_COLUMNS = [
    "Title",
    "Description",
    "Start Date",
    "End Date",
    "All Day",
    "Category",
    "Priority",
    "Location",
    "Attendees",
    "Recurring",
    "Recurrence Pattern",
    "Requires Approval",
    "Tags",
]

RECORD_COLUMNS = [
    "Date",
    "Student ID",
    "Student Name",
    "Subject",
    "Section",
    "Instructor",
    "Time In",
    "Time Out",
    "Status",
    "Remarks",
]

STUDENT_COLUMNS = [
    "Student ID",
    "Student Name",
    "Department",
    "Course",
    "Year Level",
    "Section",
    "Total Classes",
    "Attended",
    "Late",
    "Absent",
    "Attendance Rate",
    "Risk Level",
    "Status",
]

ANALYTICS_COLUMNS = ["Section", "Item", "Value"]

_HEADER_HEX = "2980B9"


def default_filename(fmt: str, prefix: str = "academic-calendar", today: Optional[date] = None) -> str:
    if fmt not in EXTENSIONS:
        raise ExportError(f"Unsupported export format: {fmt}")
    day = (today or date.today()).isoformat()
    return f"{prefix}-{day}.{EXTENSIONS[fmt]}"


def _flat(value: Any) -> str:
    text = "" if value is None else str(value)
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _bool(value: bool) -> str:
    return "true" if value else "false"


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


def event_rows(events: Sequence[AcademicEvent]) -> list[list[str]]:
    return [
        [
            ev.title,
            ev.description or "",
            ev.start.isoformat(),
            ev.end.isoformat(),
            _bool(ev.all_day),
            ev.category,
            ev.priority,
            ev.location or "",
            ";".join(ev.attendees),
            _bool(ev.is_recurring),
            ev.recurrence_pattern or "",
            _bool(ev.requires_approval),
            ";".join(ev.tags),
        ]
        for ev in events
    ]


def record_rows(student: StudentAttendance, records: Sequence[AttendanceRecord]) -> list[list[str]]:
    return [
        [
            r.timestamp.date().isoformat(),
            student.student_number or student.id,
            student.name,
            r.subject,
            student.section,
            r.instructor or "-",
            r.time_in or "-",
            r.time_out or "-",
            r.status,
            r.notes,
        ]
        for r in records
    ]


def student_rows(students: Sequence[StudentAttendance]) -> list[list[str]]:
    return [
        [
            s.student_number or s.id,
            s.name,
            s.department,
            s.course,
            s.year_level,
            s.section,
            str(s.total_classes),
            str(s.attended_classes),
            str(s.late_classes),
            str(s.absent_classes),
            f"{s.attendance_rate:.1f}%",
            s.risk_level,
            s.status,
        ]
        for s in students
    ]


def analytics_rows(
    summary: Summary, departments: Sequence[dict[str, Any]], risk_levels: Sequence[dict[str, Any]]
) -> list[list[str]]:
    """Summary cards, then one row per department and per risk level."""
    rows = [
        ["Summary", "Total Students", str(summary.total_students)],
        ["Summary", "Total Classes", str(summary.total_classes)],
        ["Summary", "Attended", str(summary.attended_classes)],
        ["Summary", "Late", str(summary.late_classes)],
        ["Summary", "Absent", str(summary.absent_classes)],
        ["Summary", "Attendance Rate", f"{summary.attendance_rate:.1f}%"],
        ["Summary", "Departments", str(summary.departments)],
    ]
    for d in departments:
        rows.append(["Department", d["name"], f"{d['count']} student(s), {d['attendanceRate']:.1f}%"])
    for r in risk_levels:
        rows.append(["Risk Level", r["level"], str(r["count"])])
    return rows


# ---------------------------------------------------------------------------
# CSV / iCal text
# ---------------------------------------------------------------------------


def to_csv(rows: Sequence[Sequence[Any]], columns: Sequence[str]) -> str:
    """
    Render header + rows as CSV joined with '\\n'.

    Embedded newlines are flattened to spaces so the output always has
    len(rows) + 1 lines.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_flat(v) for v in row])
    return buf.getvalue().rstrip("\n")


def generate_csv(events: Sequence[AcademicEvent]) -> str:
    return to_csv(event_rows(events), EVENT_COLUMNS)


def _ics_escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\").replace("\r\n", "\\n").replace("\n", "\\n").replace(";", "\\;").replace(",", "\\,")
    )


def _ics_utc(dt: datetime) -> str:
    # naive datetimes are local time
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def generate_ical(events: Sequence[AcademicEvent]) -> str:
    lines: list[str] = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//ICCT//Academic Calendar//EN", "CALSCALE:GREGORIAN"]
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    for ev in events:
        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{ev.id}@icct.edu")
        lines.append(f"DTSTAMP:{stamp}")
        lines.append(f"DTSTART:{_ics_utc(ev.start)}")
        lines.append(f"DTEND:{_ics_utc(ev.end)}")
        lines.append(f"SUMMARY:{_ics_escape(ev.title)}")
        if ev.description:
            lines.append(f"DESCRIPTION:{_ics_escape(ev.description)}")
        if ev.location:
            lines.append(f"LOCATION:{_ics_escape(ev.location)}")
        lines.append("END:VEVENT")

    lines.append("END:VCALENDAR")
    # ICS standard uses CRLF
    return "\r\n".join(lines) + "\r\n"


def generate_report(events: Sequence[AcademicEvent], now: Optional[datetime] = None) -> str:
    """Plain-text summary of the calendar (totals and per-category counts)."""
    now = now or datetime.now()
    lines = [
        "ICCT Academic Calendar Report",
        f"Generated: {now.date().isoformat()}",
        "",
        "Summary:",
        f"- Total Events: {len(events)}",
        f"- Published Events: {sum(1 for e in events if e.status == 'published')}",
        f"- Draft Events: {sum(1 for e in events if e.status == 'draft')}",
        f"- Critical Events: {sum(1 for e in events if e.priority == 'critical')}",
        f"- Upcoming Events: {sum(1 for e in events if e.start > now)}",
        "",
        "Event Categories:",
    ]
    for cat in CATEGORIES:
        lines.append(f"- {CATEGORY_LABELS[cat]}: {sum(1 for e in events if e.category == cat)}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def _write_excel(rows: Sequence[Sequence[Any]], columns: Sequence[str], out: Path, title: str) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append(list(columns))
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=_HEADER_HEX, end_color=_HEADER_HEX, fill_type="solid")
    for col_num in range(1, len(columns) + 1):
        cell = ws.cell(row=1, column=col_num)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")

    for row in rows:
        ws.append([_flat(v) for v in row])

    for i, name in enumerate(columns, start=1):
        longest = max([len(name)] + [len(_flat(r[i - 1])) for r in rows if len(r) >= i])
        ws.column_dimensions[get_column_letter(i)].width = min(50, longest + 2)

    ws.freeze_panes = "A2"
    wb.save(out)


def _write_pdf(rows: Sequence[Sequence[Any]], columns: Sequence[str], out: Path, title: str) -> None:
    doc = SimpleDocTemplate(str(out), pagesize=landscape(letter), title=title)
    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"].clone("cell", fontSize=7, leading=8)

    data: list[list[Any]] = [list(columns)]
    for row in rows:
        data.append([Paragraph(escape(_flat(v)), cell_style) for v in row])

    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.Color(41 / 255, 128 / 255, 185 / 255)),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    doc.build([Paragraph(title, styles["Title"]), Spacer(1, 12), table])


def write_export(
    rows: Sequence[Sequence[Any]],
    columns: Sequence[str],
    fmt: str,
    out_path: str | Path,
    title: str = "Export",
) -> Path:
    """
    Write rows to `out_path` in csv, excel or pdf format. Returns the path.

    Raises ExportError when there is nothing to export or the format is
    unknown.
    """
    if not rows:
        raise ExportError("No records available to export")

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "csv":
        out.write_text(to_csv(rows, columns) + "\n", encoding="utf-8")
    elif fmt == "excel":
        _write_excel(rows, columns, out, title)
    elif fmt == "pdf":
        _write_pdf(rows, columns, out, title)
    else:
        raise ExportError(f"Unsupported export format: {fmt}")

    log.info("Exported %d rows to %s (%s)", len(rows), out, fmt)
    return out


def export_events(events: Sequence[AcademicEvent], fmt: str, out_path: str | Path) -> Path:
    """Export calendar events; fmt is csv, excel, pdf or ical."""
    if not events:
        raise ExportError("No events available to export")
    if fmt == "ical":
        out = Path(out_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        # newline="" keeps the CRLF line endings intact
        with out.open("w", encoding="utf-8", newline="") as fh:
            fh.write(generate_ical(events))
        log.info("Exported %d events to %s (ical)", len(events), out)
        return out
    return write_export(event_rows(events), EVENT_COLUMNS, fmt, out_path, title="Academic Calendar")
