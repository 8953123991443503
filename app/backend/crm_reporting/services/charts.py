"""Chart payloads handed to the renderer.

Each chart kind has its own closed shape: cartesian charts (line, bar)
carry an x-axis key and one colour per series; pie charts carry a single
series with a colour palette for the slices.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from crm_reporting.services.aggregation import ChartDataItem

PRIMARY_BLUE = "#3B82F6"
EMERALD = "#10B981"
VIOLET = "#8B5CF6"

DASHBOARD_PIE_COLORS = ("#3B82F6", "#10B981", "#F59E0B", "#8B5CF6", "#EC4899", "#78716c", "#facc15")
FUNNEL_PIE_COLORS = ("#3B82F6", "#10B981", "#F59E0B", "#8B5CF6", "#EC4899", "#6EE7B7", "#F87171")


class ChartKind(str, enum.Enum):
    LINE = "line"
    BAR = "bar"
    PIE = "pie"


@dataclass(frozen=True, slots=True)
class SeriesDescriptor:
    key: str
    color: str


@dataclass(frozen=True, slots=True)
class CartesianChart:
    kind: Literal[ChartKind.LINE, ChartKind.BAR]
    data: list[ChartDataItem]
    series: list[SeriesDescriptor]
    x_axis_key: str = "name"


@dataclass(frozen=True, slots=True)
class PieChart:
    data: list[ChartDataItem]
    colors: tuple[str, ...]
    value_key: str = "value"
    kind: Literal[ChartKind.PIE] = field(default=ChartKind.PIE, init=False)


Chart = Union[CartesianChart, PieChart]


def line_chart(data: Sequence[ChartDataItem], color: str = PRIMARY_BLUE) -> CartesianChart:
    return CartesianChart(kind=ChartKind.LINE, data=list(data), series=[SeriesDescriptor(key="value", color=color)])


def bar_chart(data: Sequence[ChartDataItem], color: str = PRIMARY_BLUE) -> CartesianChart:
    return CartesianChart(kind=ChartKind.BAR, data=list(data), series=[SeriesDescriptor(key="value", color=color)])


def pie_chart(data: Sequence[ChartDataItem], colors: Sequence[str] = DASHBOARD_PIE_COLORS) -> PieChart:
    return PieChart(data=list(data), colors=tuple(colors))


def chart_to_dict(chart: Chart, serialize_value: Any = None) -> dict[str, object]:
    """JSON-ready chart payload; ``serialize_value`` converts bucket values."""

    convert = serialize_value or (lambda value: value)
    data = [{"name": item.name, "value": convert(item.value)} for item in chart.data]
    if isinstance(chart, PieChart):
        return {
            "kind": chart.kind.value,
            "data": data,
            "value_key": chart.value_key,
            "colors": list(chart.colors),
        }
    return {
        "kind": chart.kind.value,
        "data": data,
        "x_axis_key": chart.x_axis_key,
        "series": [{"key": series.key, "color": series.color} for series in chart.series],
    }
