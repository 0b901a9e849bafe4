"""
Chart geometry and text charts.

The trend line chart is computed in a 600x180 viewport with 20px padding so
the same points can be drawn as an SVG polyline or sampled for the terminal.
Bars and sparklines are plain strings meant to be embedded in rich tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

CHART_WIDTH = 600
CHART_HEIGHT = 180
CHART_PADDING = 20
GRID_PERCENTS = (0, 25, 50, 75, 100)

METRICS = ("present", "absent", "late", "excused")
METRIC_COLORS = {
    "present": "#10b981",
    "absent": "#f43f5e",
    "late": "#f59e0b",
    "excused": "#3b82f6",
}

RISK_COLORS = {"none": "green", "low": "yellow", "medium": "dark_orange", "high": "red"}

_SPARK_CHARS = "▁▂▃▄▅▆▇█"


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    value: float


@dataclass
class LineChart:
    points: list[Point]
    max_value: float

    @property
    def polyline(self) -> str:
        return " ".join(f"{p.x:g},{p.y:g}" for p in self.points)

    @property
    def area(self) -> str:
        """Polygon closing the line down to the x axis (for the filled area)."""
        if not self.points:
            return ""
        base = CHART_HEIGHT - CHART_PADDING
        return f"{CHART_PADDING},{base} {self.polyline} {CHART_WIDTH - CHART_PADDING},{base}"


def line_chart(values: Sequence[float]) -> LineChart:
    """
    Lay out `values` left to right across the viewport.

    Values are scaled by max(values, 1) so an all-zero series stays on the
    x axis instead of dividing by zero.
    """
    if not values:
        return LineChart(points=[], max_value=1)

    max_value = max(max(values), 1)
    inner_w = CHART_WIDTH - CHART_PADDING * 2
    inner_h = CHART_HEIGHT - CHART_PADDING * 2
    step = inner_w / max(1, len(values) - 1)

    points = [
        Point(
            x=round(CHART_PADDING + i * step, 2),
            y=round(CHART_HEIGHT - CHART_PADDING - (v / max_value) * inner_h, 2),
            value=v,
        )
        for i, v in enumerate(values)
    ]
    return LineChart(points=points, max_value=max_value)


def grid_labels(max_value: float) -> list[int]:
    return [round(pct / 100 * max_value) for pct in GRID_PERCENTS]


def metric_color(metric: str) -> str:
    return METRIC_COLORS.get(metric, "#6b7280")


def pie_percentages(values: Sequence[float]) -> list[float]:
    total = sum(values)
    if total <= 0:
        return [0.0 for _ in values]
    return [round(v / total * 100, 1) for v in values]


def text_bar(value: float, max_value: float, width: int = 30, char: str = "█") -> str:
    if max_value <= 0 or value <= 0:
        return ""
    filled = max(1, round(value / max_value * width))
    return char * min(width, filled)


def sparkline(values: Sequence[float]) -> str:
    if not values:
        return ""
    top = max(max(values), 1)
    last = len(_SPARK_CHARS) - 1
    return "".join(_SPARK_CHARS[min(last, int(v / top * last))] for v in values)
