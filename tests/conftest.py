"""Pytest fixtures shared across the catalog chart tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from catalog_charts.models import HierarchyNode, Record

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_csv() -> Path:
    """Return the path of the small catalog CSV fixture."""

    return FIXTURES / "netflix_titles_sample.csv"


@pytest.fixture
def hierarchy_json() -> Path:
    """Return the path of the full type/rating hierarchy fixture."""

    return FIXTURES / "netflix_hierarchical_data.json"


@pytest.fixture
def make_record():
    """Return a factory building valid records with sequential ids."""

    counter = iter(range(1, 100_000))

    def _make(**fields) -> Record:
        fields.setdefault("show_id", f"s{next(counter)}")
        return Record(**fields)

    return _make


@pytest.fixture
def small_tree() -> HierarchyNode:
    """Return a root with one rated category and one category without children."""

    return HierarchyNode(
        name="R",
        children=(
            HierarchyNode("Movie", 10, (HierarchyNode("TV-MA", 6),)),
            HierarchyNode("TV Show", 5),
        ),
    )
