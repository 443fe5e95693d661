"""
Catalog charts: load the catalog CSV and the type/rating hierarchy, run every
aggregation and write one standalone HTML chart per aggregation.

Without ``--hierarchy`` the type -> rating tree is derived from the CSV.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import plotly.graph_objects as go

from .aggregations import (
    DuplicateNodeError,
    build_hierarchy,
    count_by_country,
    count_by_type,
    count_by_year,
    duration_histogram,
    result_to_frame,
    rollup_violations,
)
from .config import (
    DEFAULT_LOG_LEVEL,
    DURATION_BIN_WIDTH,
    MIN_RELEASE_YEAR,
    QUALIFY_HIERARCHY_IDS,
    TOP_COUNTRIES,
)
from .data_manager import DATA_DIR, DEFAULT_CSV_PATH, SourcePayload, load_sources
from .models import AggregationResult, Record
from .plotting import ChartRenderer

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS: Dict[str, tuple] = {
    "country": ("country", "titles"),
    "year": ("release_year", "titles"),
    "type": ("type", "titles"),
    "duration": ("duration", "movies"),
}


def aggregate_records(
    records: Sequence[Record],
    *,
    top_n: int = TOP_COUNTRIES,
    min_year: int = MIN_RELEASE_YEAR,
    bin_width: int = DURATION_BIN_WIDTH,
) -> Dict[str, AggregationResult]:
    """Run the four record aggregations, keyed by chart kind."""
    return {
        "country": count_by_country(records, top_n=top_n),
        "year": count_by_year(records, min_year=min_year),
        "type": count_by_type(records),
        "duration": duration_histogram(records, bin_width=bin_width),
    }


def build_figures(
    payload: SourcePayload,
    renderer: ChartRenderer,
    results: Optional[Dict[str, AggregationResult]] = None,
    *,
    qualify_ids: bool = QUALIFY_HIERARCHY_IDS,
) -> Dict[str, go.Figure]:
    """
    Build a figure for every aggregation whose input is available.

    Charts whose source failed to load are left out of the result, and
    nothing is built when the renderer never became ready.
    """
    figures: Dict[str, go.Figure] = {}

    if results is None and payload.records is not None:
        results = aggregate_records(payload.records)
    if results and not payload.renderer_ready:
        logger.warning("Record charts skipped: the chart renderer is not ready")
        results = None
    for kind, result in (results or {}).items():
        figures[kind] = renderer.figure(kind, result)

    if payload.hierarchy is not None:
        for category, declared, total in rollup_violations(payload.hierarchy):
            logger.warning(
                "Category %r declares %s but its ratings sum to %s", category, declared, total
            )

    try:
        rows = payload.hierarchy_rows(qualify_ids=qualify_ids)
    except DuplicateNodeError as exc:
        logger.error("Hierarchy charts skipped: %s", exc)
        rows = None
    if rows is not None:
        figures["treemap"] = renderer.figure("treemap", rows)
        figures["sunburst"] = renderer.figure("sunburst", rows)

    return figures


def write_figures(figures: Dict[str, go.Figure], output_dir: Path) -> List[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, fig in figures.items():
        path = output_dir / f"{name}.html"
        fig.write_html(path, include_plotlyjs="cdn")
        written.append(path)
    return written


async def run(args: argparse.Namespace) -> int:
    renderer = ChartRenderer()
    payload = await load_sources(args.csv, args.hierarchy, renderer)

    if args.hierarchy is None and payload.records is not None:
        payload.hierarchy = build_hierarchy(payload.records)
        logger.info("Derived hierarchy from %d records", len(payload.records))
        if args.export_hierarchy is not None:
            args.export_hierarchy.parent.mkdir(parents=True, exist_ok=True)
            args.export_hierarchy.write_text(
                json.dumps(payload.hierarchy.to_dict(), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            logger.info("Hierarchy written to %s", args.export_hierarchy)

    if payload.records is None and payload.hierarchy is None:
        logger.error("No source could be loaded; nothing to render")
        return 1

    results = None
    if payload.records is not None:
        results = aggregate_records(
            payload.records,
            top_n=args.top_n,
            min_year=args.min_year,
            bin_width=args.bin_width,
        )
        for kind, result in results.items():
            label_col, value_col = SUMMARY_COLUMNS[kind]
            print(f"\n--- {kind.upper()} ---")
            print(result_to_frame(result, label_col, value_col).to_string(index=False))

    figures = build_figures(payload, renderer, results, qualify_ids=not args.strict_ids)
    written = write_figures(figures, args.output_dir)

    print("\n--- CATALOG CHARTS COMPLETE ---")
    print(f"\nSaved {len(written)} charts to {args.output_dir}/:")
    for path in written:
        print(f"  - {path.name}")
    for name, exc in payload.errors.items():
        print(f"  ! {name}: {exc}")
    return 0


def positive_int(text: str) -> int:
    """argparse type for options that must be a positive integer."""
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {text!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return value


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Aggregate the catalog by country, release year, type and running "
            "time and render the type/rating hierarchy as treemap and sunburst."
        )
    )
    parser.add_argument(
        "--csv",
        default=DEFAULT_CSV_PATH,
        help=f"Path or URL to the catalog CSV (default: {DEFAULT_CSV_PATH}).",
    )
    parser.add_argument(
        "--hierarchy",
        default=None,
        help="Path or URL to the hierarchy JSON (default: derive it from the CSV).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DATA_DIR / "charts",
        help="Directory receiving one HTML file per chart.",
    )
    parser.add_argument(
        "--export-hierarchy",
        type=Path,
        default=None,
        help="Write the derived hierarchy JSON here (only without --hierarchy).",
    )
    parser.add_argument("--top-n", type=positive_int, default=TOP_COUNTRIES)
    parser.add_argument("--min-year", type=int, default=MIN_RELEASE_YEAR)
    parser.add_argument("--bin-width", type=positive_int, default=DURATION_BIN_WIDTH)
    parser.add_argument(
        "--strict-ids",
        action="store_true",
        help="Fail on repeated hierarchy node names instead of qualifying ids.",
    )
    parser.add_argument("--log-level", default=DEFAULT_LOG_LEVEL)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
