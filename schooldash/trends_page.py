"""
Attendance Trends page.

Shows per-class daily counts for one instructor as a line chart of a single
metric plus a paginated table (10 rows per page).
"""

from __future__ import annotations

import logging
from typing import Optional

from schooldash.api import ApiClient
from schooldash.charts import METRICS, LineChart, grid_labels, line_chart, metric_color
from schooldash.filters import Pager, total_pages
from schooldash.model import TrendRow, parse_many, parse_trend_row
from schooldash.page import Notifier, Page

log = logging.getLogger(__name__)

TRENDS_PAGE_SIZE = 10


class TrendsPage(Page):
    def __init__(self, client: ApiClient, instructor_id: int, notify: Optional[Notifier] = None) -> None:
        super().__init__(notify)
        self.client = client
        self.instructor_id = instructor_id
        self.rows: list[TrendRow] = []
        self.start: Optional[str] = None
        self.end: Optional[str] = None
        self.selected_code: Optional[str] = None
        self.metric = "present"
        self.pager = Pager(page_size=TRENDS_PAGE_SIZE)

    def load(self) -> bool:
        def _load() -> None:
            # a failed load leaves the table empty
            self.rows = []
            raw = self.client.list_trends(self.instructor_id, self.start, self.end, self.selected_code)
            self.rows = parse_many(raw, parse_trend_row, "trend row")
            self.pager.reset()
            log.debug("Loaded %d trend rows", len(self.rows))

        return self._load_guarded(_load, "Failed to load trends")

    def set_range(self, start: Optional[str], end: Optional[str]) -> None:
        self.start = start or None
        self.end = end or None

    def select_class(self, code: Optional[str]) -> None:
        self.selected_code = code or None
        self.pager.reset()

    def set_metric(self, metric: str) -> None:
        if metric not in METRICS:
            raise ValueError(f"Unknown metric: {metric!r}")
        self.metric = metric

    @property
    def class_options(self) -> list[tuple[str, str]]:
        """(code, name) of every class in the data, first name seen wins."""
        seen: dict[str, str] = {}
        for row in self.rows:
            seen.setdefault(row.code, row.name)
        return list(seen.items())

    @property
    def filtered(self) -> list[TrendRow]:
        if not self.selected_code:
            return list(self.rows)
        return [r for r in self.rows if r.code == self.selected_code]

    @property
    def page_rows(self) -> list[TrendRow]:
        return self.pager.slice(self.filtered)

    @property
    def total_pages(self) -> int:
        return total_pages(len(self.filtered), self.pager.page_size)

    def chart(self) -> LineChart:
        return line_chart([r.metric(self.metric) for r in self.filtered])

    def grid(self) -> list[int]:
        return grid_labels(self.chart().max_value)

    @property
    def color(self) -> str:
        return metric_color(self.metric)
