"""
Configuration constants for the catalog chart pipeline.
"""

from typing import Dict, List, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
CSV_FILENAME: str = "netflix_titles.csv"
HIERARCHY_FILENAME: str = "netflix_hierarchical_data.json"

# Column names in the catalog CSV -> Record field names
CSV_COLUMNS: Dict[str, str] = {
    "show_id": "show_id",
    "title": "title",
    "type": "content_type",
    "country": "country",
    "release_year": "release_year",
    "rating": "rating",
    "duration": "duration",
}
ID_COLUMN: str = "show_id"

REQUEST_TIMEOUT: int = 30

# ======================================================
#  AGGREGATION DEFAULTS
# ======================================================
TOP_COUNTRIES: int = 10
MIN_RELEASE_YEAR: int = 2000

DURATION_CONTENT_TYPE: str = "Movie"
DURATION_UNIT: str = " min"
DURATION_BIN_WIDTH: int = 10

HIERARCHY_ROOT_NAME: str = "Netflix"
# Real data repeats rating names under both content types
QUALIFY_HIERARCHY_IDS: bool = True

DEFAULT_LOG_LEVEL: str = "INFO"

# ======================================================
#  CHART DISPLAY OPTIONS
# ======================================================
ACCENT_FILL: str = "rgba(210, 45, 45, 0.7)"
ACCENT_LINE: str = "rgba(161, 36, 36, 1)"
NEUTRAL_FILL: str = "rgba(54, 54, 54, 0.7)"
NEUTRAL_LINE: str = "rgba(40, 40, 40, 1)"
LINE_COLOR: str = "rgba(210, 45, 45, 0.8)"

# minColor / midColor / maxColor of the hierarchy charts
HIERARCHY_COLORSCALE: List[Tuple[float, str]] = [
    (0.0, "#f0f0f0"),
    (0.5, "#d22d2d"),
    (1.0, "#a12424"),
]
HIERARCHY_FONT_COLOR: str = "white"

PLOT_TEMPLATE: str = "plotly_white"

CHART_TITLES: Dict[str, str] = {
    "country": f"Titles by Country (Top {TOP_COUNTRIES})",
    "year": f"Titles Released per Year ({MIN_RELEASE_YEAR} onwards)",
    "type": "Movie vs TV Show Share",
    "duration": "Movie Running Time Distribution (minutes)",
    "treemap": "Titles by Type and Rating",
    "sunburst": "Titles by Type and Rating",
}

SERIES_LABELS: Dict[str, str] = {
    "country": "Titles",
    "year": "Titles released",
    "duration": "Movies",
}
