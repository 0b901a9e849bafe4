"""
Academic Calendar page.

Holds the events of the selected semester plus the academic years, and
exposes every user action of the page: navigation between views, filters,
create / edit / delete, bulk publish or archive, import, export and the
locally stored settings.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from schooldash.api import ApiClient
from schooldash.calendar_view import VIEW_MODES, day_view, month_view, shift, timeline_view, week_view
from schooldash.errors import ApiError, ExportError, ValidationError
from schooldash.export import default_filename, export_events, generate_report
from schooldash.filters import EventFilters, event_stats, filter_chips, filter_events, upcoming_events
from schooldash.importer import ImportResult, import_events, load_import_file
from schooldash.model import (
    ACTION_STATUS,
    AcademicEvent,
    AcademicYear,
    EventForm,
    Semester,
    event_to_payload,
    event_type_from_category,
    form_to_payload,
    parse_academic_year,
    parse_event,
    parse_many,
    priority_to_api,
    validate_event_form,
)
from schooldash.page import Notifier, Page, run_parallel
from schooldash.storage import default_settings, load_settings, save_settings, update_setting

log = logging.getLogger(__name__)

_STATUS_QUERY = {"draft": "DRAFT", "published": "SCHEDULED", "cancelled": "CANCELLED"}
_ACTION_LOCAL_STATUS = {"publish": "published", "archive": "cancelled"}

# form error key used when the server rejects an otherwise valid form
SUBMIT_ERROR = "submit"


class CalendarPage(Page):
    def __init__(
        self,
        client: ApiClient,
        settings_path: Union[str, Path],
        notify: Optional[Notifier] = None,
        today: Optional[date] = None,
    ) -> None:
        super().__init__(notify)
        self.client = client
        self.settings_path = Path(settings_path)
        self.events: list[AcademicEvent] = []
        self.academic_years: list[AcademicYear] = []
        self.selected_year: Optional[AcademicYear] = None
        self.selected_semester: Optional[Semester] = None
        self.filters = EventFilters()
        self.view_mode = "month"
        self._today = today
        self.current_date = self.today
        self.selected_ids: set[int] = set()
        self.settings = default_settings()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _event_query(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.selected_semester is not None:
            params["startDate"] = self.selected_semester.start.date().isoformat()
            params["endDate"] = self.selected_semester.end.date().isoformat()
        if self.filters.category != "all":
            params["eventType"] = event_type_from_category(self.filters.category)
        if self.filters.status != "all":
            params["status"] = _STATUS_QUERY.get(self.filters.status)
        if self.filters.priority != "all":
            params["priority"] = priority_to_api(self.filters.priority)
        if self.filters.search.strip():
            params["search"] = self.filters.search.strip()
        return params

    def _fetch_events(self) -> list[AcademicEvent]:
        events = parse_many(self.client.list_events(self._event_query()), parse_event, "event")
        log.debug("Loaded %d events", len(events))
        return events

    def _fetch_years(self) -> list[AcademicYear]:
        return parse_many(self.client.list_academic_years(), parse_academic_year, "academic year")

    def _set_years(self, years: list[AcademicYear]) -> None:
        self.academic_years = years
        # first year and its first semester are selected automatically
        if self.selected_year is None and years:
            self.selected_year = years[0]
            if years[0].semesters:
                self.selected_semester = years[0].semesters[0]

    def load(self) -> bool:
        """Initial load: settings, academic years, then the events."""
        self.settings = load_settings(self.settings_path)

        def _load() -> None:
            self._set_years(self._fetch_years())
            self.events = self._fetch_events()

        return self._load_guarded(_load, "Failed to load events")

    def load_events(self) -> bool:
        def _load() -> None:
            self.events = self._fetch_events()

        return self._load_guarded(_load, "Failed to load events")

    def refresh(self) -> bool:
        """Re-fetch academic years and events concurrently."""

        def _load() -> None:
            years, events = run_parallel(self._fetch_years, self._fetch_events)
            self._set_years(years)
            self.events = events

        return self._load_guarded(_load, "Failed to refresh calendar")

    def select_semester(self, year_id: int, semester_id: Optional[int] = None) -> bool:
        year = next((y for y in self.academic_years if y.id == year_id), None)
        if year is None:
            self.notify("error", f"Unknown academic year: {year_id}")
            return False
        self.selected_year = year
        if semester_id is None:
            self.selected_semester = year.semesters[0] if year.semesters else None
        else:
            self.selected_semester = next((s for s in year.semesters if s.id == semester_id), None)
        return self.load_events()

    def set_filters(self, **changes: Any) -> None:
        for key, value in changes.items():
            if not hasattr(self.filters, key):
                raise AttributeError(key)
            setattr(self.filters, key, value)

    def clear_filters(self) -> None:
        self.filters = EventFilters()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def today(self) -> date:
        return self._today or date.today()

    @property
    def visible_events(self) -> list[AcademicEvent]:
        return filter_events(self.events, self.filters, self.today, self.selected_semester)

    @property
    def stats(self) -> dict[str, int]:
        return event_stats(self.events)

    @property
    def upcoming(self) -> list[AcademicEvent]:
        return upcoming_events(self.events)

    @property
    def chips(self) -> dict[str, str]:
        return filter_chips(self.filters)

    def find(self, event_id: int) -> Optional[AcademicEvent]:
        return next((ev for ev in self.events if ev.id == event_id), None)

    def set_view(self, mode: str) -> None:
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {mode!r}")
        self.view_mode = mode

    def navigate(self, step: int) -> None:
        self.current_date = shift(self.current_date, self.view_mode, step)

    def go_today(self) -> None:
        self.current_date = self.today

    def view(self) -> Any:
        events = self.visible_events
        if self.view_mode == "month":
            return month_view(events, self.current_date)
        if self.view_mode == "week":
            return week_view(events, self.current_date)
        if self.view_mode == "day":
            return day_view(events, self.current_date)
        return timeline_view(events)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_event(self, form: EventForm) -> dict[str, str]:
        """
        Validate and submit a new event. Returns the form errors, empty when
        the event was created. A failed request is reported under
        SUBMIT_ERROR.
        """
        errors = validate_event_form(form)
        if errors:
            return errors
        try:
            payload = form_to_payload(form)
        except ValidationError as e:
            return e.field_errors

        if not self._act(lambda: self.client.create_event(payload), "Event created successfully", "Failed to create event"):
            return {SUBMIT_ERROR: "Failed to create event"}
        self.load_events()
        return {}

    def update_event(self, event_id: int, form: EventForm) -> dict[str, str]:
        errors = validate_event_form(form)
        if errors:
            return errors
        try:
            payload = form_to_payload(form)
        except ValidationError as e:
            return e.field_errors
        current = self.find(event_id)
        if current is not None:
            payload["status"] = _STATUS_QUERY.get(current.status, "DRAFT")

        if not self._act(
            lambda: self.client.update_event(event_id, payload), "Event updated successfully", "Failed to update event"
        ):
            return {SUBMIT_ERROR: "Failed to update event"}
        self.load_events()
        return {}

    def delete_event(self, event_id: int) -> bool:
        def _delete() -> None:
            self.client.delete_event(event_id)
            self.events = [ev for ev in self.events if ev.id != event_id]
            self.selected_ids.discard(event_id)

        return self._act(_delete, "Event deleted successfully", "Failed to delete event")

    # ------------------------------------------------------------------
    # Selection and bulk actions
    # ------------------------------------------------------------------

    def toggle_selected(self, event_id: int) -> None:
        if event_id in self.selected_ids:
            self.selected_ids.remove(event_id)
        else:
            self.selected_ids.add(event_id)

    def select_all_visible(self) -> None:
        self.selected_ids = {ev.id for ev in self.visible_events}

    def clear_selection(self) -> None:
        self.selected_ids.clear()

    def _selection(self, ids: Optional[Iterable[int]]) -> list[int]:
        chosen = list(ids) if ids is not None else sorted(self.selected_ids)
        if not chosen:
            self.notify("error", "Please select events first")
        return chosen

    def delete_selected(self, ids: Optional[Iterable[int]] = None) -> int:
        """Delete each selected event; returns how many were deleted."""
        chosen = self._selection(ids)
        deleted: list[int] = []
        for event_id in chosen:
            try:
                self.client.delete_event(event_id)
            except ApiError as e:
                log.error("Failed to delete event %s: %s", event_id, e)
                continue
            deleted.append(event_id)

        self.events = [ev for ev in self.events if ev.id not in deleted]
        self.selected_ids.difference_update(deleted)
        if deleted:
            self.notify("success", f"{len(deleted)} event(s) deleted successfully")
        if len(deleted) < len(chosen):
            self.notify("error", "Failed to delete some events")
        return len(deleted)

    def bulk_action(self, action: str, ids: Optional[Iterable[int]] = None) -> int:
        """
        Publish or archive the selected events with one PUT per event.

        Events whose update succeeded get their new status locally. Returns
        the number of updated events.
        """
        if action not in ACTION_STATUS:
            raise ValueError(f"Unknown bulk action: {action!r}")
        chosen = self._selection(ids)
        api_status = ACTION_STATUS[action]
        local_status = _ACTION_LOCAL_STATUS[action]

        updated: set[int] = set()
        failed = 0
        for event_id in chosen:
            event = self.find(event_id)
            if event is None:
                continue
            try:
                self.client.update_event(event_id, event_to_payload(event, api_status))
            except ApiError as e:
                log.error("Failed to %s event %s: %s", action, event_id, e)
                failed += 1
                continue
            updated.add(event_id)

        for event in self.events:
            if event.id in updated:
                event.status = local_status

        if updated:
            verb = "published" if action == "publish" else "archived"
            self.notify("success", f"{len(updated)} event(s) {verb}")
            self.selected_ids.difference_update(updated)
        if failed:
            self.notify("error", "Failed to update some events")
        return len(updated)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def import_file(self, path: Union[str, Path]) -> ImportResult:
        try:
            records = load_import_file(path)
        except ValidationError as e:
            self.notify("error", str(e))
            return ImportResult()

        result = import_events(self.client, records)
        if result.success:
            self.notify("success", f"Imported {result.success} event(s)")
            self.load_events()
        if result.failed:
            self.notify("error", f"{result.failed} row(s) failed to import")
        return result

    def export(self, fmt: str, out_path: Union[str, Path, None] = None) -> Optional[Path]:
        target = out_path or default_filename(fmt)
        try:
            out = export_events(self.events, fmt, target)
        except ExportError as e:
            self.notify("error", str(e))
            return None
        self.notify("success", f"Events exported to {fmt.upper()} successfully")
        return out

    def report(self) -> str:
        return generate_report(self.events)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_setting(self, dotted_key: str, value: bool) -> None:
        self.settings = update_setting(self.settings, dotted_key, value)

    def save_settings(self) -> bool:
        try:
            save_settings(self.settings, self.settings_path)
        except OSError as e:
            log.error("Error saving settings: %s", e)
            self.notify("error", "Failed to save settings")
            return False
        self.notify("success", "Settings saved successfully")
        return True

    def reset_settings(self) -> None:
        self.settings = default_settings()
        self.notify("success", "Settings reset to defaults")
