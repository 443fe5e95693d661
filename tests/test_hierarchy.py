"""Tests for hierarchy parsing, flattening, derivation and integrity checks."""

from __future__ import annotations

import json

import pytest

from catalog_charts.aggregations import (
    DuplicateNodeError,
    build_hierarchy,
    flatten_hierarchy,
    rollup_violations,
)
from catalog_charts.models import HierarchyNode, HierarchyRow


def _triples(rows):
    return [(row.id, row.parent, row.value) for row in rows]


def test_flatten_is_pre_order_with_root_first(small_tree) -> None:
    """Emit root, then each category followed by its own children."""

    assert _triples(flatten_hierarchy(small_tree)) == [
        ("R", None, 0),
        ("Movie", "R", 10),
        ("TV-MA", "Movie", 6),
        ("TV Show", "R", 5),
    ]


def test_flatten_ignores_root_value() -> None:
    """Never plot the root's own value."""

    rows = flatten_hierarchy(HierarchyNode("R", 99))
    assert rows == [HierarchyRow("R", None, 0)]


def test_flatten_rows_compare_as_plain_triples(small_tree) -> None:
    """Compare flattened rows directly with (id, parent, value) tuples."""

    assert flatten_hierarchy(small_tree) == [
        ("R", None, 0),
        ("Movie", "R", 10),
        ("TV-MA", "Movie", 6),
        ("TV Show", "R", 5),
    ]


def test_row_label_strips_parent_prefix() -> None:
    """Derive the display label from a qualified id and leave plain ids alone."""

    assert HierarchyRow("Movie/TV-MA", "Movie", 2).label == "TV-MA"
    assert HierarchyRow("TV-MA", "Movie", 2).label == "TV-MA"
    assert HierarchyRow("R", None, 0).label == "R"


def test_flatten_is_repeatable(small_tree) -> None:
    """Return equal rows on repeated calls over the same tree."""

    assert flatten_hierarchy(small_tree) == flatten_hierarchy(small_tree)


def test_flatten_strict_rejects_repeated_names() -> None:
    """Raise when the same rating appears under two categories."""

    tree = HierarchyNode(
        "R",
        children=(
            HierarchyNode("Movie", 3, (HierarchyNode("TV-MA", 2),)),
            HierarchyNode("TV Show", 4, (HierarchyNode("TV-MA", 1),)),
        ),
    )
    with pytest.raises(DuplicateNodeError):
        flatten_hierarchy(tree)


def test_flatten_qualified_ids_keep_labels() -> None:
    """Prefix second-level ids with the parent id and keep plain labels."""

    tree = HierarchyNode(
        "R",
        children=(
            HierarchyNode("Movie", 3, (HierarchyNode("TV-MA", 2),)),
            HierarchyNode("TV Show", 4, (HierarchyNode("TV-MA", 1),)),
        ),
    )
    rows = flatten_hierarchy(tree, qualify_ids=True)
    assert _triples(rows) == [
        ("R", None, 0),
        ("Movie", "R", 3),
        ("Movie/TV-MA", "Movie", 2),
        ("TV Show", "R", 4),
        ("TV Show/TV-MA", "TV Show", 1),
    ]
    assert [row.label for row in rows] == ["R", "Movie", "TV-MA", "TV Show", "TV-MA"]


def test_from_dict_treats_missing_children_as_empty() -> None:
    """Read a category without a children list as having no ratings."""

    root = HierarchyNode.from_dict(
        {"name": "R", "children": [{"name": "Movie", "value": 10}, {"name": "TV Show", "value": 5, "children": None}]}
    )
    assert root.children[0].children == ()
    assert root.children[1].children == ()
    assert root.value == 0


def test_from_dict_without_root_children() -> None:
    """Accept a root with no categories."""

    assert HierarchyNode.from_dict({"name": "R"}).children == ()


@pytest.mark.parametrize(
    "data",
    [
        {"children": []},
        {"name": "R", "children": [{"name": "Movie", "value": "many"}]},
        {"name": "R", "children": [{"name": "Movie", "value": -1}]},
        {"name": "R", "children": {"name": "Movie"}},
        ["not", "an", "object"],
    ],
)
def test_from_dict_rejects_malformed_nodes(data) -> None:
    """Reject nameless nodes, bad values and non-list children."""

    with pytest.raises(ValueError):
        HierarchyNode.from_dict(data)


def test_fixture_ratings_do_not_exceed_category_values(hierarchy_json) -> None:
    """Check that rating counts never add up to more than their category."""

    root = HierarchyNode.from_dict(json.loads(hierarchy_json.read_text(encoding="utf-8")))
    for category in root.children:
        assert sum(child.value for child in category.children) <= category.value
    assert rollup_violations(root) == []


def test_rollup_violations_reports_overfull_category() -> None:
    """Report the category, its declared value and its children's sum."""

    tree = HierarchyNode("R", children=(HierarchyNode("Movie", 3, (HierarchyNode("R", 2), HierarchyNode("PG", 2))),))
    assert rollup_violations(tree) == [("Movie", 3, 4)]


def test_build_hierarchy_from_records(make_record) -> None:
    """Group records by type then rating, largest rating first."""

    records = [
        make_record(content_type="Movie", rating="PG"),
        make_record(content_type="Movie", rating="R"),
        make_record(content_type="TV Show", rating="TV-MA"),
        make_record(content_type="Movie", rating="R"),
        make_record(content_type="Movie", rating=None),
        make_record(content_type=None, rating="G"),
    ]
    root = build_hierarchy(records, root_name="Catalog")

    assert root.name == "Catalog"
    assert [(c.name, c.value) for c in root.children] == [("Movie", 3), ("TV Show", 1)]
    assert [(r.name, r.value) for r in root.children[0].children] == [("R", 2), ("PG", 1)]
    assert rollup_violations(root) == []


def test_build_hierarchy_round_trips_through_json(make_record) -> None:
    """Serialize a derived tree and read it back unchanged."""

    records = [make_record(content_type="Movie", rating="PG")]
    root = build_hierarchy(records)
    assert HierarchyNode.from_dict(json.loads(json.dumps(root.to_dict()))) == root
