"""Core pipeline logic: shape catalog records into chart-ready series.

This module turns two inputs into the structures the plotting helpers
expect:

* The catalog records (one :class:`~catalog_charts.models.Record` per CSV
  row), aggregated by country, release year, content type and movie running
  time.
* The type -> rating hierarchy, flattened into ``(id, parent, value)`` rows
  for treemap and sunburst charts.

Record aggregations load the valid records into a DataFrame and group and
count there.  Each call builds its own frame and returns a fresh list of
``(label, value)`` pairs; nothing is shared between calls.  A field that
fails to parse only removes that record from the one aggregation that
needed it.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

import pandas as pd

from .config import (
    DURATION_BIN_WIDTH,
    DURATION_CONTENT_TYPE,
    DURATION_UNIT,
    HIERARCHY_ROOT_NAME,
    MIN_RELEASE_YEAR,
    TOP_COUNTRIES,
)
from .models import (
    AggregationResult,
    HierarchyNode,
    HierarchyRow,
    Number,
    Record,
    records_to_frame,
)

# Module‑level logger
logger = logging.getLogger(__name__)

# ASCII digits only: "٢٠١٩" is not a year.
LEADING_INT_PATTERN = r"^\s*([+-]?[0-9]+)"


class DuplicateNodeError(ValueError):
    """Raised when two hierarchy nodes would share the same row id."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_leading_int(values: pd.Series) -> pd.Series:
    """Parse the integer prefix of each string in ``values``.

    Leading whitespace and a sign are accepted and anything after the digits
    is ignored, so ``"2019"``, ``" 2019"`` and ``"2019.0"`` all give 2019.

    Parameters
    ----------
    values : pd.Series
        Strings or missing values.

    Returns
    -------
    pd.Series
        Nullable ``Int64`` series on the same index; ``<NA>`` where the
        value is missing or does not start with ASCII digits.
    """
    digits = values.astype(object).str.extract(LEADING_INT_PATTERN, expand=False)
    return pd.to_numeric(digits, errors="coerce").astype("Int64")


def _counts_to_result(counts: pd.Series) -> AggregationResult:
    return [(str(label), int(count)) for label, count in counts.items()]


def _non_empty(values: pd.Series) -> pd.Series:
    values = values.dropna()
    return values[values != ""]


def result_to_frame(
    result: AggregationResult, label_col: str = "label", value_col: str = "count"
) -> pd.DataFrame:
    """Return an aggregation result as a two-column DataFrame, order kept."""
    return pd.DataFrame(list(result), columns=[label_col, value_col])


# ---------------------------------------------------------------------------
# Record aggregations
# ---------------------------------------------------------------------------


def count_by_country(
    records: Iterable[Record], top_n: int = TOP_COUNTRIES
) -> AggregationResult:
    """Count titles per production country and keep the ``top_n`` largest.

    Parameters
    ----------
    records : Iterable[Record]
        Catalog records.  The ``country`` field is a comma separated list.
    top_n : int, optional
        Number of countries to keep (at least 1).  Defaults to
        ``config.TOP_COUNTRIES``.

    Returns
    -------
    AggregationResult
        ``(country, count)`` pairs by descending count.  Ties keep the order
        in which the countries were first seen.

    Notes
    -----
    A record listing several countries counts once for each of them, and a
    country repeated inside one record is counted every time it appears.
    """
    if top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")

    frame = records_to_frame(records)
    countries = _non_empty(
        _non_empty(frame["country"]).str.split(",").explode().str.strip()
    )
    # groupby(sort=False) keeps first-seen order; the stable sort keeps it for ties
    counts = (
        countries.groupby(countries, sort=False)
        .size()
        .sort_values(ascending=False, kind="stable")
        .head(top_n)
    )
    return _counts_to_result(counts)


def count_by_year(
    records: Iterable[Record], min_year: int = MIN_RELEASE_YEAR
) -> AggregationResult:
    """Count titles per release year from ``min_year`` onwards.

    A year that does not parse, or parses to zero, counts as no year at all.

    Returns
    -------
    AggregationResult
        ``(year, count)`` pairs in ascending year order; the label is the
        year as a string.
    """
    frame = records_to_frame(records)
    years = parse_leading_int(frame["release_year"]).dropna()
    kept = years[(years != 0) & (years >= min_year)]

    logger.debug("Year aggregation skipped %d records", len(frame) - len(kept))
    return _counts_to_result(kept.value_counts().sort_index())


def count_by_type(records: Iterable[Record]) -> AggregationResult:
    """Count titles per content type, in the order the types first appear."""
    types = _non_empty(records_to_frame(records)["content_type"])
    return _counts_to_result(types.groupby(types, sort=False).size())


def duration_histogram(
    records: Iterable[Record],
    bin_width: int = DURATION_BIN_WIDTH,
    *,
    content_type: str = DURATION_CONTENT_TYPE,
    unit: str = DURATION_UNIT,
) -> AggregationResult:
    """Bin running times of one content type into fixed-width buckets.

    Parameters
    ----------
    records : Iterable[Record]
        Catalog records.  Only those whose ``content_type`` equals
        ``content_type`` and that carry a duration are used.
    bin_width : int, optional
        Width of each bucket in minutes.  Must be positive.
    content_type : str, optional
        The content type whose durations are expressed in minutes.
    unit : str, optional
        Unit suffix removed before parsing (first occurrence only).

    Returns
    -------
    AggregationResult
        ``("<start>-<end> min", count)`` pairs in ascending bucket order,
        where ``start = floor(duration / bin_width) * bin_width`` and
        ``end = start + bin_width - 1``.  Empty buckets are omitted.
    """
    if bin_width <= 0:
        raise ValueError(f"bin_width must be positive, got {bin_width}")

    frame = records_to_frame(records)
    movies = frame[(frame["content_type"] == content_type) & frame["duration"].notna()]
    stripped = movies["duration"].str.replace(unit, "", n=1, regex=False)
    minutes = parse_leading_int(stripped).dropna()
    logger.debug(
        "Duration histogram skipped %d unparseable durations", len(movies) - len(minutes)
    )

    starts = (minutes // bin_width) * bin_width
    counts = starts.value_counts().sort_index()
    return [
        (f"{int(start)}-{int(start) + bin_width - 1} min", int(count))
        for start, count in counts.items()
    ]


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


def _append_subtree(
    rows: List[HierarchyRow],
    seen: set,
    node: HierarchyNode,
    parent_id: str,
    depth: int,
    qualify_ids: bool,
) -> None:
    node_id = f"{parent_id}/{node.name}" if qualify_ids and depth > 1 else node.name
    if node_id in seen:
        raise DuplicateNodeError(
            f"Hierarchy node id {node_id!r} is not unique (parent {parent_id!r})"
        )
    seen.add(node_id)
    rows.append(HierarchyRow(node_id, parent_id, node.value))
    for child in node.children:
        _append_subtree(rows, seen, child, node_id, depth + 1, qualify_ids)


def flatten_hierarchy(
    root: HierarchyNode, *, qualify_ids: bool = False
) -> List[HierarchyRow]:
    """Flatten a tree into parent/child rows, depth-first in pre-order.

    The root comes first with no parent and a value of 0.  Each category
    follows with the root as parent and is immediately followed by its own
    children.  Nodes without children produce only their own row.

    Node ids must be unique across the output, since parent links are
    resolved by id.  With ``qualify_ids=False`` the node names are the ids
    and a repeated name raises :class:`DuplicateNodeError`.  With
    ``qualify_ids=True`` nodes below the first level get
    ``"<parent id>/<name>"`` as id, which keeps the same rating under two
    categories apart; ``HierarchyRow.label`` gives back the plain name.
    """
    rows: List[HierarchyRow] = [HierarchyRow(root.name, None, 0)]
    seen = {root.name}
    for category in root.children:
        _append_subtree(rows, seen, category, root.name, 1, qualify_ids)
    return rows


def build_hierarchy(
    records: Iterable[Record], root_name: str = HIERARCHY_ROOT_NAME
) -> HierarchyNode:
    """Derive the type -> rating -> count tree from catalog records.

    Categories keep first-seen order; ratings within a category are sorted
    by count, largest first (ties in first-seen order).  A category's value
    is the number of its records that carry a rating, so it always equals
    the sum of its children.
    """
    frame = records_to_frame(records)[["content_type", "rating"]].dropna()
    rated = frame[(frame["content_type"] != "") & (frame["rating"] != "")]

    categories = []
    for content_type, group in rated.groupby("content_type", sort=False):
        ranked = (
            group.groupby("rating", sort=False)
            .size()
            .sort_values(ascending=False, kind="stable")
        )
        categories.append(
            HierarchyNode(
                name=content_type,
                value=int(ranked.sum()),
                children=tuple(
                    HierarchyNode(name, int(count)) for name, count in ranked.items()
                ),
            )
        )
    return HierarchyNode(name=root_name, children=tuple(categories))


def rollup_violations(root: HierarchyNode) -> List[Tuple[str, Number, Number]]:
    """List categories whose children add up to more than the category value.

    Returns
    -------
    List[Tuple[str, Number, Number]]
        ``(category, declared value, sum of children)`` per violation.  An
        empty list means the tree is consistent.
    """
    violations = []
    for category in root.children:
        total = sum(child.value for child in category.children)
        if total > category.value:
            violations.append((category.name, category.value, total))
    return violations
