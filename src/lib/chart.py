"""
Line charts for DynamicChart and Plotters blocks

A Plotters block declares its chart in YAML:

    type: LineChart
    title: Hours
    range_x: [0, 4]
    data:
      - [[0, 0], [1, 1], [2, 2]]

A DynamicChart block builds the same data by calling plot() once per
series. Both end up as a LineChart, drawn by a chart renderer into SVG
bytes. The default renderer uses matplotlib.
"""

from io import BytesIO
from numbers import Real
from typing import Any, Callable, List, Literal, Optional, Tuple

import yaml
from matplotlib.figure import Figure
from pydantic import BaseModel, Field, ValidationError

from ..config import appsettings
from .errors import ChartError
from .log import LOG

Point = Tuple[float, float]

# Series colors, cycled
COLORS = ['red', 'green', 'blue', 'gold', 'magenta', 'cyan', 'black']


class LineChart(BaseModel):
    """
    One chart with any number of line series

    Attributes:
        type: Chart kind; only line charts exist
        title: Caption drawn above the plot
        range_x: Visible x range, (0, largest x) when omitted
        range_y: Visible y range, (0, largest y) when omitted
        data: Series of (x, y) points, one color each
    """
    type: Literal['LineChart'] = 'LineChart'
    title: str = ''
    range_x: Optional[Tuple[float, float]] = None
    range_y: Optional[Tuple[float, float]] = None
    data: List[List[Point]] = Field(default_factory=list)

    def range_get(self, axis: int) -> Tuple[float, float]:
        explicit = self.range_x if axis == 0 else self.range_y
        if explicit is not None:
            return explicit
        values = [point[axis] for series in self.data for point in series]
        return 0.0, max(values, default=0.0)


ChartRenderer = Callable[[LineChart], bytes]


def validation_describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = '.'.join(str(part) for part in first['loc']) or 'chart'
    return f"{location}: {first['msg']}"


def chart_decode(body: str) -> LineChart:
    """
    Decode a Plotters block body

    Raises:
        ChartError: If the body is not YAML describing a LineChart
    """
    try:
        payload = yaml.safe_load(body)
    except yaml.YAMLError as e:
        raise ChartError(f"failed to parse block: {e}") from e
    if not isinstance(payload, dict):
        raise ChartError("Plotters block must be a mapping with 'type' and 'data'")
    try:
        return LineChart.model_validate(payload)
    except ValidationError as e:
        raise ChartError(f"invalid chart: {validation_describe(e)}") from e


def chart_build(series: List[List[Point]], options: dict) -> LineChart:
    """
    LineChart for a DynamicChart block

    The block header may set ``chart_title``, ``range_x`` and ``range_y``.
    Its ``title`` stays the block caption.
    """
    try:
        return LineChart(
            title=str(options.get('chart_title', '')),
            range_x=options.get('range_x'),
            range_y=options.get('range_y'),
            data=series,
        )
    except ValidationError as e:
        raise ChartError(f"invalid chart: {validation_describe(e)}") from e


def points_coerce(points: Any) -> List[Point]:
    """
    Check the argument of plot() and turn it into (x, y) floats

    Raises:
        TypeError: If points is not a list of [x, y] number pairs
    """
    if isinstance(points, (str, bytes)) or not hasattr(points, '__iter__'):
        raise TypeError(f"plot() expects a list of [x, y] points, got {type(points).__name__}")
    series = []
    for position, point in enumerate(points, start=1):
        if isinstance(point, (str, bytes)) or not hasattr(point, '__len__') or len(point) != 2:
            raise TypeError(f"plot() point {position} is not an [x, y] pair: {point!r}")
        x, y = point
        if not all(isinstance(value, Real) for value in (x, y)):
            raise TypeError(f"plot() point {position} has non-numeric coordinates: {point!r}")
        series.append((float(x), float(y)))
    return series


def matplotlib_render(chart: LineChart) -> bytes:
    """
    Draw a LineChart as SVG

    Uses a bare Figure rather than pyplot, so nothing touches global
    figure state or needs a display.
    """
    LOG(f"Rendering chart with {len(chart.data)} series", level=3)
    figure = Figure(figsize=(appsettings.chart_width, appsettings.chart_height))
    axes = figure.subplots()
    for index, series in enumerate(chart.data):
        axes.plot(
            [x for x, _ in series],
            [y for _, y in series],
            color=COLORS[index % len(COLORS)],
        )

    low, high = chart.range_get(0)
    if low != high:
        axes.set_xlim(low, high)
    low, high = chart.range_get(1)
    if low != high:
        axes.set_ylim(low, high)
    if chart.title:
        axes.set_title(chart.title)
    axes.grid(True, alpha=0.3)

    buffer = BytesIO()
    figure.savefig(buffer, format='svg')
    return buffer.getvalue()
