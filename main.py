"""
Service Readiness Engine - command line entry point.

    python main.py readiness --growth data/growth_areas.json --wastewater data/wastewater_main.json
    python main.py viewport --bbox 138.55 -34.95 138.65 -34.90 --min-diameter 150
    python main.py fields --layer waterMains
"""

import argparse
import logging
import sys
from typing import List, Optional

from core.aggregator import top_bins
from core.analytics import AnalysisContext, ViewportAnalytics, layer_labels
from core.models import BoundingBox
from core.readiness import analyze_areas, format_distance
from core.settings import AnalysisSettings
from loaders.geojson import load_collection, write_collection
from loaders.predicates import FilterError, diameter_where

log = logging.getLogger("main")


def run_readiness(args, settings: AnalysisSettings) -> int:
    growth = load_collection(args.growth)
    wastewater = load_collection(args.wastewater)
    water = load_collection(args.water, required=False)

    report = analyze_areas(growth, water, wastewater, settings)

    print(f"\n{'Area':<30} {'Water km':>9} {'WW km':>9} {'Pipe km':>9} {'Readiness':>10}")
    for r in report.results:
        print(
            f"{r.name[:30]:<30} {format_distance(r.water_distance_km):>9} "
            f"{format_distance(r.sewer_distance_km):>9} {format_distance(r.pipe_length_km):>9} "
            f"{r.readiness * 100:>9.1f}%"
        )
    if report.skipped:
        print(f"\n{report.skipped} area(s) skipped (no polygon geometry)")

    if args.output:
        write_collection(report.areas, args.output)
        log.info(f"Annotated areas written to {args.output}")
    return 0


def _parse_where(items: Optional[List[str]]):
    for item in items or []:
        key, sep, clause = item.partition("=")
        if not sep:
            raise FilterError(f"Expected KEY=EXPRESSION, got {item!r}")
        yield key, clause


def run_viewport(args, settings: AnalysisSettings) -> int:
    bbox = BoundingBox(*args.bbox)
    context = AnalysisContext(args.layer) if args.layer else AnalysisContext()
    analytics = ViewportAnalytics(context=context, settings=settings)

    for key, clause in _parse_where(args.where):
        context.set_filter(key, clause)
    if args.min_diameter is not None:
        context.set_filter("waterMains", diameter_where(args.min_diameter))

    analytics.on_viewport_change(bbox)
    result = analytics.refresh()
    if result is None:
        failure = analytics.store.last_failure()
        log.error(f"No result produced: {failure[1] if failure else 'pass did not complete'}")
        return 1

    labels = layer_labels()
    print("\nSummary (current view)")
    for key, km in result.length_by_network.items():
        print(f"  Total {labels[key]} length (km): {km:.2f}")
    for key, count in result.count_by_network.items():
        if key not in result.length_by_network:
            print(f"  {labels[key]}s (count): {count}")

    rows = top_bins(result.length_by_attribute_bin, settings.top_bins)
    print(f"\nLength by diameter (top {settings.top_bins})")
    if rows:
        for diameter, km in rows:
            print(f"  {diameter:g} mm: {km:.3f} km")
    else:
        print("  No water mains in view.")

    if result.failed_layers:
        print("\nFailed layers (not included above):")
        for key, message in result.failed_layers.items():
            print(f"  {labels[key]}: {message}")
        return 2
    return 0


def run_fields(args, settings: AnalysisSettings) -> int:
    analytics = ViewportAnalytics(settings=settings)
    for f in analytics.describe_fields(args.layer):
        print(f"{f['name']:<30} {f['type']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Utility network service readiness and viewport statistics")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("readiness", help="Score growth areas against local network GeoJSON")
    p.add_argument("--growth", required=True, help="Growth area polygons (GeoJSON)")
    p.add_argument("--wastewater", required=True, help="Wastewater mains (GeoJSON)")
    p.add_argument("--water", default="data/water_main.json", help="Water mains (GeoJSON, optional)")
    p.add_argument("--output", help="Write annotated areas to this GeoJSON file")
    p.set_defaults(handler=run_readiness)

    p = sub.add_parser("viewport", help="Aggregate remote network layers inside a bounding box")
    p.add_argument("--bbox", nargs=4, type=float, required=True, metavar=("WEST", "SOUTH", "EAST", "NORTH"))
    p.add_argument("--layer", action="append", help="Active layer key (repeatable)")
    p.add_argument("--where", action="append", help="KEY=EXPRESSION predicate (repeatable)")
    p.add_argument("--min-diameter", type=float, help="Minimum water main diameter in mm")
    p.set_defaults(handler=run_viewport)

    p = sub.add_parser("fields", help="List filterable fields of a layer")
    p.add_argument("--layer", required=True)
    p.set_defaults(handler=run_fields)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s │ %(name)-20s │ %(levelname)-8s │ %(message)s',
        datefmt='%H:%M:%S',
        handlers=[logging.StreamHandler()]
    )
    settings = AnalysisSettings.from_env()
    try:
        return args.handler(args, settings)
    except (FileNotFoundError, ValueError, KeyError) as e:
        log.error(f"Analysis failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
