"""Data manager for loading the catalog and hierarchy sources.

This module wraps the two external sources behind small loaders that
either return parsed values or raise :class:`LoadError`, and joins the two
asynchronous loads with the chart renderer's initialization.  The join is
the only ordering point in the system: hierarchy charts are built only once
both the hierarchy and the renderer are ready, and a failure on one side
never hides the other side's result.  It uses ``logging`` instead of
printing directly to stdout.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd
import requests

from .aggregations import flatten_hierarchy
from .config import (
    CSV_FILENAME,
    HIERARCHY_FILENAME,
    ID_COLUMN,
    QUALIFY_HIERARCHY_IDS,
    REQUEST_TIMEOUT,
)
from .models import HierarchyNode, HierarchyRow, Record, records_from_frame
from .plotting import ChartRenderer

logger = logging.getLogger(__name__)

Source = Union[str, Path]


class LoadError(Exception):
    """A source could not be retrieved or decoded.

    ``status_code`` is set when an HTTP transport answered with a
    non-success status.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Data directory
# ---------------------------------------------------------------------------


def resolve_data_dir() -> Path:
    """Select the directory holding the source files.

    The lookup order is:

    1. The ``CATALOG_DATA_DIR`` environment variable, if set.
    2. A ``data`` folder at the repository root.
    """
    env = os.getenv("CATALOG_DATA_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return Path(__file__).resolve().parent.parent / "data"


# Resolve the directory once at import time
DATA_DIR: Path = resolve_data_dir()
DEFAULT_CSV_PATH: Path = DATA_DIR / CSV_FILENAME
DEFAULT_HIERARCHY_PATH: Path = DATA_DIR / HIERARCHY_FILENAME


def _is_url(source: Source) -> bool:
    return str(source).lower().startswith(("http://", "https://"))


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


def load_records(source: Source = DEFAULT_CSV_PATH) -> Tuple[Record, ...]:
    """
    Read the catalog CSV and return its valid records in file order.

    Every column is read as text; rows with an empty ``show_id`` are dropped.

    Parameters
    ----------
    source : str or Path, optional
        Local path or URL of the catalog CSV.

    Returns
    -------
    Tuple[Record, ...]
        One record per non-blank row.

    Raises
    ------
    LoadError
        If the file is missing or unreadable, or has no ``show_id`` column.
    """
    if not _is_url(source) and not Path(source).exists():
        raise LoadError(f"Catalog CSV not found at {source}")

    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise LoadError(f"Could not parse catalog CSV {source}: {exc}") from exc

    if ID_COLUMN not in df.columns:
        raise LoadError(f"Catalog CSV {source} has no {ID_COLUMN!r} column")

    records = tuple(record for record in records_from_frame(df) if record.is_valid)
    logger.info(
        "Loaded %d records from %s (%d blank rows dropped)",
        len(records),
        source,
        len(df) - len(records),
    )
    return records


def _fetch_json(source: Source) -> object:
    """Return decoded JSON from a URL (via requests) or a local file."""
    if _is_url(source):
        try:
            response = requests.get(str(source), timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise LoadError(f"Request for {source} failed: {exc}") from exc
        if not response.ok:
            raise LoadError(
                f"HTTP error! status: {response.status_code} for {source}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise LoadError(f"Response from {source} is not valid JSON: {exc}") from exc

    path = Path(source)
    if not path.exists():
        raise LoadError(f"Hierarchy file not found at {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise LoadError(f"Could not decode hierarchy file {path}: {exc}") from exc


def load_hierarchy(source: Source = DEFAULT_HIERARCHY_PATH) -> HierarchyNode:
    """
    Fetch and decode the type -> rating tree.

    Raises
    ------
    LoadError
        On transport failure, non-success HTTP status, invalid JSON or a
        tree that does not have the expected node shape.
    """
    data = _fetch_json(source)
    try:
        root = HierarchyNode.from_dict(data)
    except ValueError as exc:
        raise LoadError(f"Malformed hierarchy in {source}: {exc}") from exc
    logger.info("Loaded hierarchy %r with %d categories", root.name, len(root.children))
    return root


async def load_records_async(source: Source = DEFAULT_CSV_PATH) -> Tuple[Record, ...]:
    return await asyncio.to_thread(load_records, source)


async def load_hierarchy_async(source: Source = DEFAULT_HIERARCHY_PATH) -> HierarchyNode:
    return await asyncio.to_thread(load_hierarchy, source)


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------


@dataclass
class SourcePayload:
    """Outcome of :func:`load_sources`, one slot per independent completion."""

    records: Optional[Tuple[Record, ...]] = None
    hierarchy: Optional[HierarchyNode] = None
    renderer_ready: bool = False
    errors: Dict[str, Exception] = field(default_factory=dict)

    def hierarchy_rows(
        self, qualify_ids: bool = QUALIFY_HIERARCHY_IDS
    ) -> Optional[List[HierarchyRow]]:
        """Flattened hierarchy, or ``None`` unless hierarchy and renderer are both ready."""
        if self.hierarchy is None or not self.renderer_ready:
            return None
        return flatten_hierarchy(self.hierarchy, qualify_ids=qualify_ids)


async def _skip() -> None:
    return None


async def load_sources(
    csv_source: Source = DEFAULT_CSV_PATH,
    hierarchy_source: Optional[Source] = DEFAULT_HIERARCHY_PATH,
    renderer: Optional[ChartRenderer] = None,
) -> SourcePayload:
    """
    Load both sources and initialize the renderer concurrently, then join.

    Each of the three completions is its own failure domain: an exception in
    one is logged and stored under ``errors`` (keys ``"records"``,
    ``"hierarchy"``, ``"renderer"``) while the others still deliver.  Pass
    ``hierarchy_source=None`` to skip the hierarchy load.
    """
    renderer = renderer or ChartRenderer()
    names = ("records", "hierarchy", "renderer")
    results = await asyncio.gather(
        load_records_async(csv_source),
        load_hierarchy_async(hierarchy_source) if hierarchy_source is not None else _skip(),
        renderer.initialize(),
        return_exceptions=True,
    )

    payload = SourcePayload()
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.error("Loading %s failed: %s", name, result)
            payload.errors[name] = result
        elif isinstance(result, BaseException):
            raise result

    if "records" not in payload.errors:
        payload.records = results[0]
    if "hierarchy" not in payload.errors:
        payload.hierarchy = results[1]
    payload.renderer_ready = renderer.is_ready
    return payload
