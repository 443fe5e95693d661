"""Typed containers for catalog records and the type/rating hierarchy.

The loaders in :mod:`catalog_charts.data_manager` turn raw CSV rows and
decoded JSON into these values; every aggregation in
:mod:`catalog_charts.aggregations` consumes them read-only.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields as dataclass_fields
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

import pandas as pd

from .config import CSV_COLUMNS

Number = Union[int, float]

# Ordered (label, value) pairs, the common input of every flat chart.
AggregationResult = List[Tuple[str, int]]


def _clean(value: Any) -> Optional[str]:
    """Normalize a raw cell to ``None`` or a non-empty string."""
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    text = str(value)
    return text if text else None


@dataclass(frozen=True)
class Record:
    """One row of the catalog CSV.

    All fields except ``show_id`` are optional text exactly as read from the
    file; numeric parsing happens inside each aggregation so that a bad value
    only removes the record from that one aggregation.
    """

    show_id: str
    title: Optional[str] = None
    content_type: Optional[str] = None
    country: Optional[str] = None
    release_year: Optional[str] = None
    rating: Optional[str] = None
    duration: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return bool(self.show_id)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Record":
        """Build a record from a CSV row keyed by the CSV header names."""
        fields = {field: _clean(row.get(column)) for column, field in CSV_COLUMNS.items()}
        fields["show_id"] = fields["show_id"] or ""
        return cls(**fields)


def records_from_frame(df: pd.DataFrame) -> Tuple[Record, ...]:
    """Convert a string-typed catalog DataFrame into records, keeping row order."""
    return tuple(Record.from_row(row) for row in df.to_dict(orient="records"))


RECORD_FIELDS: Tuple[str, ...] = tuple(f.name for f in dataclass_fields(Record))


def records_to_frame(records: Iterable[Record]) -> pd.DataFrame:
    """Return the valid records as a DataFrame with one column per field.

    Missing fields stay ``None``; row order follows ``records``.
    """
    rows = [asdict(record) for record in records if record.is_valid]
    return pd.DataFrame(rows, columns=list(RECORD_FIELDS), dtype=object)


def _node_value(raw: Any, name: str) -> Number:
    if raw is None:
        return 0
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"Node {name!r} has a non-numeric value: {raw!r}")
    if raw < 0:
        raise ValueError(f"Node {name!r} has a negative value: {raw!r}")
    return raw


@dataclass(frozen=True)
class HierarchyNode:
    """A node of the type -> rating tree.

    The root's ``value`` carries no meaning and is never plotted.
    """

    name: str
    value: Number = 0
    children: Tuple["HierarchyNode", ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HierarchyNode":
        """Build a tree from decoded JSON.

        A missing or ``null`` ``children`` entry means the node has no
        children.  A missing name or a non-numeric/negative value raises
        ``ValueError``.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected a JSON object for a hierarchy node, got {type(data).__name__}")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError(f"Hierarchy node without a name: {dict(data)!r}")

        raw_children = data.get("children") or []
        if not isinstance(raw_children, list):
            raise ValueError(f"Node {name!r} has non-list children: {raw_children!r}")

        return cls(
            name=name,
            value=_node_value(data.get("value"), name),
            children=tuple(cls.from_dict(child) for child in raw_children),
        )

    def to_dict(self) -> dict:
        out: dict = {"name": self.name, "value": self.value}
        if self.children:
            out["children"] = [child.to_dict() for child in self.children]
        return out


class HierarchyRow(NamedTuple):
    """One ``(id, parent, value)`` row of a flattened hierarchy.

    ``label`` is the node's display name: the id without the
    ``"<parent>/"`` prefix that qualified ids carry.
    """

    id: str
    parent: Optional[str]
    value: Number

    @property
    def label(self) -> str:
        prefix = f"{self.parent}/"
        if self.parent is not None and self.id.startswith(prefix):
            return self.id[len(prefix):]
        return self.id
