import asyncio
import logging
from typing import Callable, Dict, List, Sequence

import plotly.graph_objects as go
import plotly.io as pio

from .config import (
    ACCENT_FILL,
    ACCENT_LINE,
    CHART_TITLES,
    HIERARCHY_COLORSCALE,
    HIERARCHY_FONT_COLOR,
    LINE_COLOR,
    NEUTRAL_FILL,
    NEUTRAL_LINE,
    PLOT_TEMPLATE,
    SERIES_LABELS,
)
from .models import AggregationResult, HierarchyRow

logger = logging.getLogger(__name__)


# ============================================================
# Configuration / constants
# ============================================================

HOVER_TEMPLATE_COUNT = "%{x}<br>%{y:,} titles<extra></extra>"

HOVER_TEMPLATE_HIERARCHY = "<b>%{label}</b>: %{value:,}<extra></extra>"
# The root is a container, not a metric: no hover box.
HOVER_TEMPLATE_ROOT = "<extra></extra>"

PIE_FILLS: List[str] = [ACCENT_FILL, NEUTRAL_FILL]
PIE_LINES: List[str] = [ACCENT_LINE, NEUTRAL_LINE]


# ============================================================
# Helper functions
# ============================================================


def _split(result: AggregationResult) -> tuple:
    labels = [label for label, _ in result]
    values = [value for _, value in result]
    return labels, values


def _base_layout(fig: go.Figure, title: str, template: str) -> go.Figure:
    fig.update_layout(
        title=dict(text=f"<b>{title}</b>", x=0.5, xanchor="center"),
        template=template,
        margin=dict(t=70, l=50, r=30, b=40),
    )
    return fig


def _hierarchy_colors(rows: Sequence[HierarchyRow]) -> List[float]:
    """
    Color each node by the value of its first-level ancestor (root = 0).
    """
    by_id = {row.id: row for row in rows}
    colors: List[float] = []
    for row in rows:
        if row.parent is None:
            colors.append(0)
            continue
        parent = by_id.get(row.parent)
        if parent is None or parent.parent is None:
            # first-level node
            colors.append(row.value)
        else:
            colors.append(parent.value)
    return colors


def _hierarchy_sizes(rows: Sequence[HierarchyRow]) -> List[float]:
    """
    Plotly 'total' branch values: the root is drawn as the sum of its children.
    """
    root_id = rows[0].id
    root_total = sum(row.value for row in rows if row.parent == root_id)
    return [root_total if row.parent is None else row.value for row in rows]


def _hierarchy_trace_kwargs(rows: Sequence[HierarchyRow]) -> dict:
    return dict(
        ids=[row.id for row in rows],
        labels=[row.label for row in rows],
        parents=["" if row.parent is None else row.parent for row in rows],
        values=_hierarchy_sizes(rows),
        branchvalues="total",
        marker=dict(
            colors=_hierarchy_colors(rows),
            colorscale=[list(stop) for stop in HIERARCHY_COLORSCALE],
            showscale=True,
        ),
        insidetextfont=dict(color=HIERARCHY_FONT_COLOR),
        hovertemplate=[
            HOVER_TEMPLATE_ROOT if row.parent is None else HOVER_TEMPLATE_HIERARCHY
            for row in rows
        ],
    )


# ============================================================
# Figure builders
# ============================================================


def bar_chart(
    result: AggregationResult,
    *,
    title: str = CHART_TITLES["country"],
    series_label: str = SERIES_LABELS["country"],
    template: str = PLOT_TEMPLATE,
) -> go.Figure:
    """
    Vertical bar chart of (label, count) pairs, e.g. titles per country.
    """
    labels, values = _split(result)
    fig = go.Figure(
        go.Bar(
            x=labels,
            y=values,
            name=series_label,
            marker=dict(color=ACCENT_FILL, line=dict(color=ACCENT_LINE, width=1)),
            hovertemplate=HOVER_TEMPLATE_COUNT,
        )
    )
    fig.update_yaxes(rangemode="tozero", tickformat=",")
    fig.update_layout(showlegend=False)
    return _base_layout(fig, title, template)


def line_chart(
    result: AggregationResult,
    *,
    title: str = CHART_TITLES["year"],
    series_label: str = SERIES_LABELS["year"],
    template: str = PLOT_TEMPLATE,
) -> go.Figure:
    """
    Line chart of counts over ordered labels (release years).
    """
    labels, values = _split(result)
    fig = go.Figure(
        go.Scatter(
            x=labels,
            y=values,
            mode="lines+markers",
            name=series_label,
            line=dict(width=3, color=LINE_COLOR, shape="spline", smoothing=0.1),
            hovertemplate=HOVER_TEMPLATE_COUNT,
        )
    )
    fig.update_xaxes(type="category", title_text="Year")
    fig.update_layout(showlegend=False)
    return _base_layout(fig, title, template)


def pie_chart(
    result: AggregationResult,
    *,
    title: str = CHART_TITLES["type"],
    template: str = PLOT_TEMPLATE,
) -> go.Figure:
    labels, values = _split(result)
    fig = go.Figure(
        go.Pie(
            labels=labels,
            values=values,
            sort=False,
            marker=dict(colors=PIE_FILLS, line=dict(color=PIE_LINES, width=1)),
        )
    )
    return _base_layout(fig, title, template)


def histogram_chart(
    result: AggregationResult,
    *,
    title: str = CHART_TITLES["duration"],
    series_label: str = SERIES_LABELS["duration"],
    template: str = PLOT_TEMPLATE,
) -> go.Figure:
    """
    Pre-binned histogram: one bar per non-empty bucket, no gaps between bars.
    """
    fig = bar_chart(result, title=title, series_label=series_label, template=template)
    fig.update_layout(bargap=0)
    fig.update_xaxes(tickangle=-45)
    return fig


def treemap_chart(
    rows: Sequence[HierarchyRow],
    *,
    title: str = CHART_TITLES["treemap"],
    template: str = PLOT_TEMPLATE,
) -> go.Figure:
    """
    Treemap of flattened hierarchy rows (root first, as produced by
    ``aggregations.flatten_hierarchy``).
    """
    if not rows:
        return go.Figure()
    fig = go.Figure(go.Treemap(**_hierarchy_trace_kwargs(rows)))
    return _base_layout(fig, title, template)


def sunburst_chart(
    rows: Sequence[HierarchyRow],
    *,
    title: str = CHART_TITLES["sunburst"],
    template: str = PLOT_TEMPLATE,
) -> go.Figure:
    if not rows:
        return go.Figure()
    fig = go.Figure(go.Sunburst(**_hierarchy_trace_kwargs(rows)))
    return _base_layout(fig, title, template)


CHART_BUILDERS: Dict[str, Callable[..., go.Figure]] = {
    "country": bar_chart,
    "year": line_chart,
    "type": pie_chart,
    "duration": histogram_chart,
    "treemap": treemap_chart,
    "sunburst": sunburst_chart,
}


# ============================================================
# Renderer with explicit readiness
# ============================================================


class ChartRenderer:
    """
    Builds figures once its own asynchronous initialization has finished.

    ``initialize()`` resolves the plotly template off the event loop and then
    sets the readiness signal awaited by ``wait_ready()``.  Building a figure
    before that raises ``RuntimeError``.
    """

    def __init__(self, template: str = PLOT_TEMPLATE) -> None:
        self.template = template
        self._ready = asyncio.Event()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def initialize(self) -> None:
        # Template lookup loads plotly's bundled template JSON on first use.
        await asyncio.to_thread(pio.templates.__getitem__, self.template)
        self._ready.set()
        logger.info("Chart renderer ready (template=%s)", self.template)

    async def wait_ready(self) -> None:
        await self._ready.wait()

    def figure(self, kind: str, data) -> go.Figure:
        if not self.is_ready:
            raise RuntimeError("Chart renderer used before initialize() completed")
        try:
            builder = CHART_BUILDERS[kind]
        except KeyError:
            raise ValueError(
                f"Unknown chart kind {kind!r}; expected one of {sorted(CHART_BUILDERS)}"
            ) from None
        return builder(data, template=self.template)
