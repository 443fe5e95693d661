"""Tests for the plotly figure builders and renderer readiness."""

from __future__ import annotations

import asyncio

import plotly.graph_objects as go
import pytest

from catalog_charts.aggregations import flatten_hierarchy
from catalog_charts.plotting import (
    HOVER_TEMPLATE_HIERARCHY,
    HOVER_TEMPLATE_ROOT,
    ChartRenderer,
    bar_chart,
    histogram_chart,
    line_chart,
    pie_chart,
    sunburst_chart,
    treemap_chart,
)


def test_bar_chart_keeps_label_order() -> None:
    """Plot labels and values in the order given."""

    fig = bar_chart([("United States", 3), ("Germany", 2)])
    trace = fig.data[0]
    assert isinstance(trace, go.Bar)
    assert list(trace.x) == ["United States", "Germany"]
    assert list(trace.y) == [3, 2]


def test_line_chart_uses_categorical_years() -> None:
    """Keep year labels as categories on the x axis."""

    fig = line_chart([("2020", 1), ("2021", 4)])
    assert fig.data[0].mode == "lines+markers"
    assert fig.layout.xaxis.type == "category"


def test_pie_chart_does_not_resort() -> None:
    """Preserve first-seen type order in the pie."""

    fig = pie_chart([("TV Show", 2), ("Movie", 1)])
    assert list(fig.data[0].labels) == ["TV Show", "Movie"]
    assert fig.data[0].sort is False


def test_histogram_chart_has_no_bar_gap() -> None:
    """Draw adjacent buckets without gaps."""

    fig = histogram_chart([("90-99 min", 1), ("100-109 min", 2)])
    assert fig.layout.bargap == 0
    assert list(fig.data[0].x) == ["90-99 min", "100-109 min"]


@pytest.mark.parametrize("builder", [treemap_chart, sunburst_chart])
def test_hierarchy_charts_link_rows_by_id(builder, small_tree) -> None:
    """Pass ids, parents and sizes through, with the root sized by its children."""

    fig = builder(flatten_hierarchy(small_tree))
    trace = fig.data[0]
    assert list(trace.ids) == ["R", "Movie", "TV-MA", "TV Show"]
    assert list(trace.parents) == ["", "R", "Movie", "R"]
    assert list(trace.values) == [15, 10, 6, 5]
    assert list(trace.marker.colors) == [0, 10, 10, 5]
    assert trace.branchvalues == "total"


def test_hierarchy_chart_without_rows_is_empty() -> None:
    """Return an empty figure for no rows."""

    assert len(treemap_chart([]).data) == 0


def test_renderer_refuses_use_before_ready() -> None:
    """Raise when a figure is requested before initialization."""

    renderer = ChartRenderer()
    with pytest.raises(RuntimeError):
        renderer.figure("country", [("A", 1)])


def test_renderer_builds_after_initialize() -> None:
    """Signal readiness and dispatch to the matching builder."""

    renderer = ChartRenderer()
    asyncio.run(renderer.initialize())

    assert renderer.is_ready
    fig = renderer.figure("duration", [("0-9 min", 1)])
    assert isinstance(fig.data[0], go.Bar)


def test_renderer_rejects_unknown_kind() -> None:
    """Name the supported kinds when an unknown one is requested."""

    renderer = ChartRenderer()
    asyncio.run(renderer.initialize())
    with pytest.raises(ValueError, match="scatter"):
        renderer.figure("scatter", [])


def test_wait_ready_resolves_after_initialize() -> None:
    """Release waiters only once initialization has finished."""

    async def _scenario():
        renderer = ChartRenderer()
        waiter = asyncio.create_task(renderer.wait_ready())
        await asyncio.sleep(0)
        assert not waiter.done()
        await renderer.initialize()
        await asyncio.wait_for(waiter, timeout=5)
        return renderer.is_ready

    assert asyncio.run(_scenario()) is True


@pytest.mark.parametrize("builder", [treemap_chart, sunburst_chart])
def test_hierarchy_charts_hide_root_hover(builder, small_tree) -> None:
    """Show no hover box for the root and the value box for every other node."""

    trace = builder(flatten_hierarchy(small_tree)).data[0]
    templates = list(trace.hovertemplate)
    assert templates[0] == HOVER_TEMPLATE_ROOT
    assert templates[1:] == [HOVER_TEMPLATE_HIERARCHY] * 3
