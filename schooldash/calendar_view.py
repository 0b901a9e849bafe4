"""
Calendar view computation.

Given the events of the page, a reference date and a view mode, compute
what each view shows:

    month     complete Sunday-to-Saturday weeks covering the month
    week      7 days (Sunday first) x hour slots 6..22
    day       all-day events plus timed events per hour, grouped by start time
    timeline  every event, sorted by start

Day matching always compares time-stripped dates, so an event that spans N
calendar days shows up in exactly N day cells. Overlapping events inside an
hour slot are stacked by their index (a fixed pixel offset per position);
there is no packing.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from schooldash.model import AcademicEvent


VIEW_MODES = ("month", "week", "day", "list", "timeline")
FIRST_HOUR = 6
LAST_HOUR = 22
HOUR_HEIGHT_PX = 60
STACK_OFFSET_PX = 50
MONTH_CELL_PREVIEW = 3


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _week_start(day: date) -> date:
    # Sunday-based week: weekday() is Mon=0..Sun=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def month_days(ref: date | datetime) -> list[date]:
    """
    Return the days of the month grid containing `ref`.

    Starts on the Sunday on/before the 1st and ends on the Saturday on/after
    the last day of the month, so the length is always a multiple of 7.
    """
    ref_day = _as_date(ref)
    first = ref_day.replace(day=1)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])

    start = _week_start(first)
    end = _week_start(last) + timedelta(days=6)

    days: list[date] = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def occurs_on(event: AcademicEvent, day: date | datetime) -> bool:
    d = _as_date(day)
    return event.start.date() <= d <= event.end.date()


def events_for_date(events: list[AcademicEvent], day: date | datetime) -> list[AcademicEvent]:
    return [ev for ev in events if occurs_on(ev, day)]


@dataclass
class DayCell:
    day: date
    in_current_month: bool
    is_today: bool
    events: list[AcademicEvent] = field(default_factory=list)

    @property
    def preview(self) -> list[AcademicEvent]:
        return self.events[:MONTH_CELL_PREVIEW]

    @property
    def hidden_count(self) -> int:
        return max(0, len(self.events) - MONTH_CELL_PREVIEW)


def month_view(events: list[AcademicEvent], ref: date | datetime, today: Optional[date] = None) -> list[DayCell]:
    ref_day = _as_date(ref)
    today = today or date.today()
    return [
        DayCell(
            day=d,
            in_current_month=d.month == ref_day.month,
            is_today=d == today,
            events=events_for_date(events, d),
        )
        for d in month_days(ref_day)
    ]


@dataclass
class PlacedEvent:
    """An event positioned inside an hour slot of the week view."""

    event: AcademicEvent
    top_offset: float
    z_index: int


def _place(hour_events: list[AcademicEvent]) -> list[PlacedEvent]:
    placed: list[PlacedEvent] = []
    for index, ev in enumerate(sorted(hour_events, key=lambda e: e.start)):
        top = (ev.start.minute / 60) * HOUR_HEIGHT_PX + index * STACK_OFFSET_PX
        placed.append(PlacedEvent(event=ev, top_offset=top, z_index=10 + index))
    return placed


@dataclass
class WeekView:
    days: list[date]
    hours: list[int]
    # (day, hour) -> events starting in that slot
    slots: dict[tuple[date, int], list[PlacedEvent]]

    def at(self, day: date, hour: int) -> list[PlacedEvent]:
        return self.slots.get((day, hour), [])


def week_view(events: list[AcademicEvent], ref: date | datetime) -> WeekView:
    start = _week_start(_as_date(ref))
    days = [start + timedelta(days=i) for i in range(7)]
    hours = list(range(FIRST_HOUR, LAST_HOUR + 1))

    buckets: dict[tuple[date, int], list[AcademicEvent]] = {}
    for ev in events:
        key = (ev.start.date(), ev.start.hour)
        if key[0] in days and key[1] in hours:
            buckets.setdefault(key, []).append(ev)

    return WeekView(days=days, hours=hours, slots={k: _place(v) for k, v in buckets.items()})


@dataclass
class DayView:
    day: date
    all_day: list[AcademicEvent]
    # hour -> {"H:MM" -> events}
    by_hour: dict[int, dict[str, list[AcademicEvent]]]

    @property
    def total(self) -> int:
        return len(self.all_day) + sum(len(v) for groups in self.by_hour.values() for v in groups.values())

    @property
    def is_free(self) -> bool:
        return self.total == 0


def day_view(events: list[AcademicEvent], ref: date | datetime) -> DayView:
    """
    Events starting on `ref`'s day. Only the start day counts here (the day
    view lists what begins that day).
    """
    day = _as_date(ref)
    day_events = [ev for ev in events if ev.start.date() == day]
    all_day = [ev for ev in day_events if ev.all_day]
    timed = sorted((ev for ev in day_events if not ev.all_day), key=lambda e: e.start)

    by_hour: dict[int, dict[str, list[AcademicEvent]]] = {h: {} for h in range(FIRST_HOUR, LAST_HOUR + 1)}
    for ev in timed:
        if ev.start.hour not in by_hour:
            continue
        key = f"{ev.start.hour}:{ev.start.minute:02d}"
        by_hour[ev.start.hour].setdefault(key, []).append(ev)

    return DayView(day=day, all_day=all_day, by_hour=by_hour)


def timeline_view(events: list[AcademicEvent]) -> list[AcademicEvent]:
    return sorted(events, key=lambda e: e.start)


def shift(ref: date, mode: str, step: int) -> date:
    """
    Move the reference date one unit back (step=-1) or forward (step=1).

    Month navigation clamps the day (Jan 31 + 1 month -> Feb 28/29).
    """
    if mode == "month":
        month_index = ref.month - 1 + step
        year = ref.year + month_index // 12
        month = month_index % 12 + 1
        day = min(ref.day, calendar.monthrange(year, month)[1])
        return date(year, month, day)
    if mode == "week":
        return ref + timedelta(days=7 * step)
    if mode == "day":
        return ref + timedelta(days=step)
    return ref
