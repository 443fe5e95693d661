import pandas as pd
from shiny import reactive, render, req
from shiny.express import input, ui
from shinywidgets import render_plotly

# Import organized modules
from catalog_charts.aggregations import DuplicateNodeError, result_to_frame
from catalog_charts.config import (
    CHART_TITLES,
    DURATION_BIN_WIDTH,
    MIN_RELEASE_YEAR,
    QUALIFY_HIERARCHY_IDS,
    TOP_COUNTRIES,
)
from catalog_charts.data_manager import (
    DEFAULT_CSV_PATH,
    DEFAULT_HIERARCHY_PATH,
    SourcePayload,
    load_sources,
)
from catalog_charts.main import aggregate_records
from catalog_charts.plotting import ChartRenderer

TABLE_CHOICES = {kind: CHART_TITLES[kind] for kind in ("country", "year", "type", "duration")}

# ======================================================
#  REACTIVE STATE
# ======================================================
# One renderer per session; its readiness is part of the load join.
renderer = ChartRenderer()


@reactive.calc
async def sources() -> SourcePayload:
    # Both loads and the renderer start together; see data_manager.load_sources.
    return await load_sources(DEFAULT_CSV_PATH, DEFAULT_HIERARCHY_PATH, renderer)


@reactive.calc
async def record_results():
    payload = await sources()
    # A failed catalog load or renderer leaves its four charts empty.
    req(payload.records is not None and payload.renderer_ready)
    return aggregate_records(
        payload.records,
        top_n=input.top_n(),
        min_year=int(input.min_year() or MIN_RELEASE_YEAR),
        bin_width=int(input.bin_width()),
    )


@reactive.calc
async def hierarchy_rows():
    payload = await sources()
    try:
        rows = payload.hierarchy_rows(qualify_ids=QUALIFY_HIERARCHY_IDS)
    except DuplicateNodeError:
        rows = None
    req(rows)
    return rows


# ======================================================
#  UI LAYOUT
# ======================================================
ui.page_opts(
    title="Catalog Explorer",
    fillable=False,
    fillable_mobile=True,
    full_width=True,
    id="page",
    lang="en",
)

with ui.sidebar(open="always", position="right"):
    ui.input_slider("top_n", "Countries shown", min=3, max=25, value=TOP_COUNTRIES, step=1)
    ui.input_numeric("min_year", "First release year", value=MIN_RELEASE_YEAR, min=1900, step=1)
    ui.input_select(
        "bin_width",
        "Running time bucket (minutes)",
        {"5": "5", "10": "10", "15": "15", "30": "30"},
        selected=str(DURATION_BIN_WIDTH),
    )
    ui.input_action_button("reset_filters", "Reset filters", class_="btn-primary mt-3")


@reactive.effect
@reactive.event(input.reset_filters)
def _reset_filters():
    ui.update_slider("top_n", value=TOP_COUNTRIES)
    ui.update_numeric("min_year", value=MIN_RELEASE_YEAR)
    ui.update_select("bin_width", selected=str(DURATION_BIN_WIDTH))


with ui.navset_tab(id="main_tabs"):
    with ui.nav_panel("Charts"):
        with ui.layout_columns(col_widths=[6, 6]):

            @render_plotly
            async def country_chart():
                results = await record_results()
                return renderer.figure("country", results["country"])

            @render_plotly
            async def year_chart():
                results = await record_results()
                return renderer.figure("year", results["year"])

            @render_plotly
            async def type_chart():
                results = await record_results()
                return renderer.figure("type", results["type"])

            @render_plotly
            async def duration_chart():
                results = await record_results()
                return renderer.figure("duration", results["duration"])

            @render_plotly
            async def treemap_chart():
                return renderer.figure("treemap", await hierarchy_rows())

            @render_plotly
            async def sunburst_chart():
                return renderer.figure("sunburst", await hierarchy_rows())

    with ui.nav_panel("Data"):
        ui.input_radio_buttons("table_kind", "Aggregation", TABLE_CHOICES, selected="country")

        @render.data_frame
        async def aggregation_table():
            results = await record_results()
            table: pd.DataFrame = result_to_frame(results[input.table_kind()])
            return render.DataGrid(table, height=600)

        @render.ui
        async def load_errors():
            payload = await sources()
            if not payload.errors:
                return None
            return ui.div(
                *[ui.p(f"{name}: {exc}") for name, exc in payload.errors.items()],
                class_="text-danger",
            )
