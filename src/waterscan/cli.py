"""Command-line interface for the water mapping workflows.

Every command works on one AOI (a GeoJSON file, a bbox, or the configured
default) and one date range, initializes Earth Engine, runs a workflow and
prints a summary.
"""

import argparse
import asyncio
import logging
from datetime import date, timedelta

from waterscan import workflows
from waterscan.core import earthengine
from waterscan.core.aoi import AOI, load_aoi
from waterscan.core.config import get_output_dir, settings
from waterscan.core.earthengine import EarthEngineError, RetryableError
from waterscan.core.units import format_area
from waterscan.export import tasks as export_tasks
from waterscan.export.download import DownloadError, RetryableDownloadError, download_image
from waterscan.imagery.collections import NoImageryError, get_composite
from waterscan.indices.spectral import add_indices
from waterscan.render.charts import plot_timeseries
from waterscan.render.maps import MapLayer, build_map, save_map, vis_for

DEFAULT_DAYS = 90


def _fmt(value: float | None, spec: str = ".3f") -> str:
    return format(value, spec) if value is not None else "N/A"


def resolve_aoi(args: argparse.Namespace) -> AOI:
    """AOI from --bbox, then --aoi, then settings.aoi_path."""
    if getattr(args, "bbox", None):
        return AOI.from_bbox(*args.bbox)
    return load_aoi(getattr(args, "aoi", None))


def resolve_dates(args: argparse.Namespace) -> tuple[str, str]:
    """Date range from --start/--end, defaulting to the last --days days."""
    end = date.fromisoformat(args.end) if args.end else date.today()
    start = date.fromisoformat(args.start) if args.start else end - timedelta(days=args.days)
    return start.isoformat(), end.isoformat()


def _map_path(args: argparse.Namespace, name: str) -> str | None:
    if not getattr(args, "map", False):
        return None
    return str(get_output_dir() / f"{name}.html")


def _print_exports(exports: list[str]) -> None:
    if not exports:
        return
    print("\nExports started:")
    for location in exports:
        print(f"  {location}")
    print("Check progress with: waterscan tasks")


async def cmd_water(args: argparse.Namespace) -> None:
    """Map surface water extent."""
    aoi = resolve_aoi(args)
    start, end = resolve_dates(args)
    print(f"Mapping water over {aoi.name} from {start} to {end} ({args.index})...")

    result = workflows.run_water_extent(
        aoi,
        start,
        end,
        sensor=args.sensor,
        max_cloud_cover=args.max_cloud,
        scale=args.scale,
        index=args.index,
        threshold=args.threshold,
        vectorize=args.vectorize,
        export=None if args.export == "none" else args.export,
        destination=args.destination,
        map_path=_map_path(args, f"{aoi.name}_water_{start}_{end}"),
    )

    print("-" * 50)
    print(f"{'Scenes':<20} {result['scene_count']:>12}")
    print(f"{'Threshold':<20} {result['threshold']:>12.3f} ({result['threshold_method']})")
    print(f"{'Water area':<20} {format_area(result['water_area_m2']):>12}")
    if result["polygon_count"] is not None:
        print(f"{'Water polygons':<20} {result['polygon_count']:>12}")
    print("-" * 50)

    _print_exports(result["exports"])
    if result["map_path"]:
        print(f"\nMap saved to {result['map_path']}")


async def cmd_turbidity(args: argparse.Namespace) -> None:
    """Estimate turbidity and suspended sediment over water."""
    aoi = resolve_aoi(args)
    start, end = resolve_dates(args)
    print(f"Estimating turbidity over {aoi.name} from {start} to {end}...")

    result = workflows.run_turbidity(
        aoi,
        start,
        end,
        sensor=args.sensor,
        max_cloud_cover=args.max_cloud,
        scale=args.scale,
        threshold=args.threshold,
        export=None if args.export == "none" else args.export,
        destination=args.destination,
        map_path=_map_path(args, f"{aoi.name}_turbidity_{start}_{end}"),
    )
    stats = result["stats"]

    print("-" * 50)
    print(f"{'Scenes':<20} {result['scene_count']:>12}")
    print(f"{'Water area':<20} {format_area(result['water_area_m2']):>12}")
    print(f"{'Water pixels':<20} {stats['pixel_count']:>12}")
    print(f"{'NDTI mean':<20} {_fmt(stats['ndti_mean']):>12}")
    print(f"{'NDTI p90':<20} {_fmt(stats['ndti_p90']):>12}")
    print(f"{'TSS mean (mg/L)':<20} {_fmt(stats['tss_mean'], '.1f'):>12}")
    print(f"{'TSS p90 (mg/L)':<20} {_fmt(stats['tss_p90'], '.1f'):>12}")
    print(f"{'Class':<20} {stats['turbidity_class']:>12}")
    print("-" * 50)

    _print_exports(result["exports"])
    if result["map_path"]:
        print(f"\nMap saved to {result['map_path']}")


async def cmd_shoreline(args: argparse.Namespace) -> None:
    """Extract the land/water boundary as vectors."""
    aoi = resolve_aoi(args)
    start, end = resolve_dates(args)
    print(f"Extracting shoreline for {aoi.name} from {start} to {end}...")

    result = workflows.run_shoreline(
        aoi,
        start,
        end,
        sensor=args.sensor,
        max_cloud_cover=args.max_cloud,
        scale=args.scale,
        threshold=args.threshold if args.threshold is not None else workflows.AWEI_DEFAULT_THRESHOLD,
        min_area_m2=args.min_area,
        export=not args.no_export,
        destination=args.destination,
        file_format=args.format,
        map_path=_map_path(args, f"{aoi.name}_shoreline_{start}_{end}"),
    )

    print(f"Scenes: {result['scene_count']}")
    print(f"Water polygons: {result['polygon_count']}")
    _print_exports(result["exports"])
    if result["map_path"]:
        print(f"\nMap saved to {result['map_path']}")


async def cmd_timeseries(args: argparse.Namespace) -> None:
    """Water area and turbidity per period, cached and charted."""
    aoi = resolve_aoi(args)
    start, end = resolve_dates(args)
    print(f"Building time series for {aoi.name} from {start} to {end}...")
    print("(One composite per period - this may take a few minutes)\n")

    records = workflows.run_timeseries(
        aoi,
        start,
        end,
        months_step=args.months_step,
        sensor=args.sensor,
        max_cloud_cover=args.max_cloud,
        scale=args.scale,
        threshold=args.threshold,
    )

    print(f"{'Period':<12} {'Scenes':>7} {'Water area':>14} {'NDTI':>8} {'TSS':>8} {'Class':<10}")
    print("-" * 64)
    for r in records:
        print(
            f"{r['date']:<12} {r['scene_count']:>7} {format_area(r['water_area_m2']):>14} "
            f"{_fmt(r['ndti_mean']):>8} {_fmt(r['tss_mean'], '.1f'):>8} {r['turbidity_class']:<10}"
        )

    valid = [r for r in records if r["water_area_m2"] is not None]
    print(f"\nPeriods with data: {len(valid)}/{len(records)}")
    print(f"Results saved to {workflows.timeseries_cache_path(aoi)}")

    if args.chart and valid:
        chart = plot_timeseries(records, get_output_dir() / f"{aoi.name}_timeseries.png", title=aoi.name)
        print(f"Chart saved to {chart}")


async def cmd_map(args: argparse.Namespace) -> None:
    """Render a composite and its indices to an HTML map, without thresholding."""
    aoi = resolve_aoi(args)
    start, end = resolve_dates(args)
    print(f"Rendering {aoi.name} from {start} to {end}...")

    composite, count = get_composite(aoi, start, end, args.sensor, args.max_cloud)

    names = ["NDWI", "MNDWI", "AWEI_NSH", "NDTI", "TSS"]
    image = add_indices(composite, names)
    layers = [MapLayer(composite, "True colour", vis_for("RGB"))]
    layers += [MapLayer(image.select(n), n, vis_for(n), shown=(n == "NDWI")) for n in names]

    path = save_map(build_map(aoi, layers), get_output_dir() / f"{aoi.name}_{start}_{end}.html")
    print(f"Composite of {count} scenes saved to {path}")


async def cmd_tasks(args: argparse.Namespace) -> None:
    """List recent export tasks."""
    statuses = export_tasks.list_tasks(limit=args.limit)
    if not statuses:
        print("No export tasks found.")
        return

    print(f"{'State':<12} {'Description':<60}")
    print("-" * 72)
    for status in statuses:
        print(f"{status.get('state', 'UNKNOWN'):<12} {status.get('description', ''):<60}")
        if status.get("error_message"):
            print(f"{'':<12} {status['error_message']}")


async def cmd_download(args: argparse.Namespace) -> None:
    """Download a water mask or index GeoTIFF for a small AOI."""
    aoi = resolve_aoi(args)
    start, end = resolve_dates(args)
    scale = workflows.resolve_scale(args.sensor, args.scale)

    composite, _ = get_composite(aoi, start, end, args.sensor, args.max_cloud)
    mask, index_image, threshold, method = workflows.build_water_mask(
        composite, aoi, scale, args.index, args.threshold
    )
    print(f"Threshold: {threshold:.3f} ({method})")

    image = mask.toByte() if args.layer == "mask" else index_image.toFloat()
    filename = f"{aoi.name}_{args.index.upper()}_{args.layer}_{start}_{end}.tif"
    path = await download_image(image, aoi, scale, filename)
    print(f"Saved {path}")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """AOI, date range and imagery options shared by all workflow commands."""
    parser.add_argument("--aoi", help="GeoJSON file with the area of interest (default: configured AOI)")
    parser.add_argument(
        "--bbox",
        type=float,
        nargs=4,
        metavar=("WEST", "SOUTH", "EAST", "NORTH"),
        help="Rectangular AOI in lon/lat instead of --aoi",
    )
    parser.add_argument("--start", help="Start date YYYY-MM-DD (inclusive)")
    parser.add_argument("--end", help="End date YYYY-MM-DD (exclusive, default: today)")
    parser.add_argument(
        "--days", type=int, default=DEFAULT_DAYS, help=f"Days before --end when --start is omitted (default: {DEFAULT_DAYS})"
    )
    parser.add_argument("--sensor", choices=["sentinel2", "landsat8", "landsat9"], help="Imagery source")
    parser.add_argument("--max-cloud", type=float, help="Maximum scene cloud cover in %%")
    parser.add_argument("--scale", type=int, help="Working resolution in metres (default: sensor native)")
    parser.add_argument("--threshold", type=float, help="Fixed index threshold (default: Otsu)")


def _add_export_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--export",
        choices=["none", "raster", "vector", "both"],
        default="none",
        help="Start batch exports (default: none)",
    )
    parser.add_argument("--destination", choices=["gcs", "drive"], help="Export destination (default: configured)")
    parser.add_argument("--map", action="store_true", help="Write an HTML map to the outputs directory")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Surface water and turbidity mapping with Google Earth Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  waterscan water --aoi lake.geojson --map            Water extent with Otsu threshold
  waterscan water --bbox 30.0 -1.2 30.4 -0.8 --export both
  waterscan turbidity --start 2024-06-01 --end 2024-09-01
  waterscan shoreline --destination drive --format SHP
  waterscan timeseries --start 2022-01-01 --chart     Monthly area and NDTI
  waterscan map                                       Composite and index layers
  waterscan tasks                                     Recent export tasks
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--project", help="Earth Engine project (default: configured)")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # water - Water extent
    water_parser = subparsers.add_parser("water", help="Map surface water extent")
    _add_common_arguments(water_parser)
    _add_export_arguments(water_parser)
    water_parser.add_argument(
        "--index", default="NDWI", choices=["NDWI", "MNDWI", "AWEI_NSH", "AWEI_SH"], help="Water index (default: NDWI)"
    )
    water_parser.add_argument("--vectorize", action="store_true", help="Count water polygons")

    # turbidity - NDTI and TSS over water
    turbidity_parser = subparsers.add_parser("turbidity", help="Estimate turbidity and suspended sediment")
    _add_common_arguments(turbidity_parser)
    _add_export_arguments(turbidity_parser)

    # shoreline - Land/water boundary vectors
    shoreline_parser = subparsers.add_parser("shoreline", help="Extract the land/water boundary")
    _add_common_arguments(shoreline_parser)
    shoreline_parser.add_argument("--destination", choices=["gcs", "drive"], help="Export destination")
    shoreline_parser.add_argument(
        "--format", default="GeoJSON", choices=list(export_tasks.VECTOR_FORMATS), help="Vector format (default: GeoJSON)"
    )
    shoreline_parser.add_argument("--min-area", type=float, default=0, help="Drop polygons smaller than this (m²)")
    shoreline_parser.add_argument("--no-export", action="store_true", help="Count polygons without exporting")
    shoreline_parser.add_argument("--map", action="store_true", help="Write an HTML map to the outputs directory")

    # timeseries - Per-period area and turbidity
    timeseries_parser = subparsers.add_parser("timeseries", help="Water area and turbidity over time")
    _add_common_arguments(timeseries_parser)
    timeseries_parser.add_argument("--months-step", type=int, default=1, help="Months per period (default: 1)")
    timeseries_parser.add_argument("--chart", action="store_true", help="Save a PNG chart to the outputs directory")

    # map - Composite and indices
    map_parser = subparsers.add_parser("map", help="Render composite and index layers to HTML")
    _add_common_arguments(map_parser)

    # tasks - Export task status
    tasks_parser = subparsers.add_parser("tasks", help="List recent export tasks")
    tasks_parser.add_argument("--limit", type=int, default=20, help="Number of tasks to show (default: 20)")

    # download - Local GeoTIFF
    download_parser = subparsers.add_parser("download", help="Download a GeoTIFF for a small AOI")
    _add_common_arguments(download_parser)
    download_parser.add_argument(
        "--index", default="NDWI", choices=["NDWI", "MNDWI", "AWEI_NSH", "AWEI_SH"], help="Water index (default: NDWI)"
    )
    download_parser.add_argument("--layer", choices=["mask", "index"], default="mask", help="What to download")

    return parser


COMMANDS = {
    "water": cmd_water,
    "turbidity": cmd_turbidity,
    "shoreline": cmd_shoreline,
    "timeseries": cmd_timeseries,
    "map": cmd_map,
    "tasks": cmd_tasks,
    "download": cmd_download,
}


async def cli_main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        print("Initializing Google Earth Engine...")
        earthengine.initialize(project=args.project or settings.gee_project_id)
        await COMMANDS[args.command](args)
    except (
        NoImageryError,
        EarthEngineError,
        RetryableError,
        export_tasks.ExportError,
        DownloadError,
        RetryableDownloadError,
        ValueError,
    ) as e:
        print(f"Error: {e}")
        raise SystemExit(1) from e


def cli() -> None:
    """CLI entry point."""
    asyncio.run(cli_main())


if __name__ == "__main__":
    cli()
