"""
End-to-end workflows over an AOI.

Each workflow is a straight pipeline:

    filter -> mask clouds -> composite -> index -> threshold -> clean
           -> (vectorize) -> (map) -> (export)

and returns a plain dict summary. The CLI prints these; nothing here prints.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Literal, TypedDict

import ee

from waterscan.core.aoi import AOI
from waterscan.core.config import get_cache_dir, settings
from waterscan.core.earthengine import EarthEngineError, RetryableError, get_info
from waterscan.export.tasks import Destination, ExportTask, export_image, export_vectors
from waterscan.imagery.collections import NoImageryError, get_composite, validate_dates
from waterscan.imagery.sensors import get_sensor
from waterscan.indices.spectral import WATER_INDICES, awei_nsh, compute_index
from waterscan.quality.turbidity import TurbidityStats, turbidity_layers, turbidity_stats
from waterscan.render.maps import MapLayer, build_map, save_map, vis_for
from waterscan.water.boundary import min_area_filter, shoreline, vectorize_mask
from waterscan.water.mask import clean_mask, water_area_m2, water_mask
from waterscan.water.threshold import otsu_threshold

logger = logging.getLogger(__name__)

ExportKind = Literal["raster", "vector", "both"]

# AWEI_nsh separates water at 0 for most scenes (Feyisa et al. 2014)
AWEI_DEFAULT_THRESHOLD = 0.0


class WaterExtentResult(TypedDict):
    """Summary of a water extent run."""

    aoi: str
    sensor: str
    date_start: str
    date_end: str
    scene_count: int
    index: str
    threshold: float
    threshold_method: str  # "otsu" or "fixed"
    water_area_m2: float
    polygon_count: int | None
    exports: list[str]
    map_path: str | None


class TurbidityResult(TypedDict):
    """Summary of a turbidity run."""

    aoi: str
    sensor: str
    date_start: str
    date_end: str
    scene_count: int
    threshold: float
    water_area_m2: float
    stats: TurbidityStats
    exports: list[str]
    map_path: str | None


class ShorelineResult(TypedDict):
    """Summary of a shoreline run."""

    aoi: str
    sensor: str
    date_start: str
    date_end: str
    scene_count: int
    threshold: float
    polygon_count: int
    exports: list[str]
    map_path: str | None


class TimeseriesRecord(TypedDict, total=False):
    """One period of a water/turbidity time series."""

    date: str
    date_end: str
    scene_count: int
    threshold: float | None
    water_area_m2: float | None
    ndti_mean: float | None
    tss_mean: float | None
    turbidity_class: str
    error: str


# =============================================================================
# Shared steps
# =============================================================================


def resolve_scale(sensor: str | None = None, scale: int | None = None) -> int:
    """Working scale: explicit, then settings, then sensor native resolution."""
    return scale or settings.scale or get_sensor(sensor or settings.sensor).native_scale


def build_water_mask(
    composite: ee.Image,
    aoi: AOI,
    scale: int,
    index: str = "NDWI",
    threshold: float | None = None,
    min_waterbody_pixels: int | None = None,
    max_island_pixels: int | None = None,
) -> tuple[ee.Image, ee.Image, float, str]:
    """
    Threshold a water index and clean the result.

    Without an explicit threshold, Otsu's method picks one from the index
    histogram over the AOI.

    Returns:
        Tuple of (clean mask, index image, threshold, method)
    """
    index = index.upper()
    if index not in WATER_INDICES:
        raise ValueError(f"{index} is not a water index; expected one of {', '.join(WATER_INDICES)}")

    index_image = compute_index(composite, index)
    if threshold is None:
        threshold = otsu_threshold(index_image, index, aoi, scale)
        method = "otsu"
    else:
        method = "fixed"

    mask = water_mask(index_image, threshold)
    mask = clean_mask(
        mask,
        settings.min_waterbody_pixels if min_waterbody_pixels is None else min_waterbody_pixels,
        settings.max_island_pixels if max_island_pixels is None else max_island_pixels,
    )
    return mask, index_image, threshold, method


def _run_name(aoi: AOI, label: str, start: str, end: str) -> str:
    return f"{aoi.name}_{label}_{start}_{end}"


def _wants(export: ExportKind | None, kind: str) -> bool:
    return export is not None and export in (kind, "both")


def _export_locations(tasks: list[ExportTask]) -> list[str]:
    return [t.location for t in tasks]


# =============================================================================
# Workflows
# =============================================================================


def run_water_extent(
    aoi: AOI,
    start_date: str | date,
    end_date: str | date,
    sensor: str | None = None,
    max_cloud_cover: float | None = None,
    scale: int | None = None,
    index: str = "NDWI",
    threshold: float | None = None,
    vectorize: bool = False,
    export: ExportKind | None = None,
    destination: Destination | None = None,
    map_path: str | Path | None = None,
) -> WaterExtentResult:
    """
    Map surface water over the AOI.

    Args:
        aoi: Area of interest
        start_date: Start date (inclusive)
        end_date: End date (exclusive)
        sensor: Sensor name (default: settings.sensor)
        max_cloud_cover: Scene cloud cover limit in %
        scale: Working resolution in metres
        index: Water index (NDWI, MNDWI, AWEI_NSH, AWEI_SH)
        threshold: Fixed threshold; None uses Otsu
        vectorize: Convert the mask to polygons (implied by vector export)
        export: 'raster', 'vector' or 'both' to start batch exports
        destination: 'gcs' or 'drive'
        map_path: Write an HTML map here

    Raises:
        NoImageryError: If no scenes match
    """
    sensor = sensor or settings.sensor
    start, end = validate_dates(start_date, end_date)
    scale = resolve_scale(sensor, scale)

    composite, count = get_composite(aoi, start, end, sensor, max_cloud_cover)
    mask, index_image, threshold, method = build_water_mask(composite, aoi, scale, index, threshold)
    area = water_area_m2(mask, aoi, scale)

    vectors = None
    polygon_count = None
    if vectorize or _wants(export, "vector"):
        vectors = vectorize_mask(mask, aoi, scale, settings.simplify_tolerance_m)
        polygon_count = int(get_info(vectors.size()))

    name = _run_name(aoi, index.upper(), start, end)
    tasks: list[ExportTask] = []
    if _wants(export, "raster"):
        tasks.append(export_image(mask.toByte(), f"{name}_mask", aoi, scale, destination))
        tasks.append(export_image(index_image.toFloat(), f"{name}_index", aoi, scale, destination))
    if _wants(export, "vector"):
        tasks.append(export_vectors(vectors, f"{name}_polygons", destination))

    written_map = None
    if map_path:
        layers = [
            MapLayer(composite, "True colour", vis_for("RGB")),
            MapLayer(index_image, index.upper(), vis_for(index.upper()), shown=False),
            MapLayer(mask.selfMask(), "Water", vis_for("water"), opacity=0.7),
        ]
        if vectors is not None:
            layers.append(MapLayer(vectors, "Water polygons", vis_for("vectors"), shown=False))
        written_map = str(save_map(build_map(aoi, layers), map_path))

    return WaterExtentResult(
        aoi=aoi.name,
        sensor=sensor,
        date_start=start,
        date_end=end,
        scene_count=count,
        index=index.upper(),
        threshold=threshold,
        threshold_method=method,
        water_area_m2=area,
        polygon_count=polygon_count,
        exports=_export_locations(tasks),
        map_path=written_map,
    )


def run_turbidity(
    aoi: AOI,
    start_date: str | date,
    end_date: str | date,
    sensor: str | None = None,
    max_cloud_cover: float | None = None,
    scale: int | None = None,
    threshold: float | None = None,
    export: ExportKind | None = None,
    destination: Destination | None = None,
    map_path: str | Path | None = None,
) -> TurbidityResult:
    """
    Estimate turbidity (NDTI) and suspended sediment (TSS) over water.

    Water is detected with NDWI (Otsu threshold unless one is given);
    only water pixels contribute to the statistics and exports.

    Raises:
        NoImageryError: If no scenes match
    """
    sensor = sensor or settings.sensor
    start, end = validate_dates(start_date, end_date)
    scale = resolve_scale(sensor, scale)

    composite, count = get_composite(aoi, start, end, sensor, max_cloud_cover)
    mask, _, threshold, _ = build_water_mask(composite, aoi, scale, "NDWI", threshold)
    area = water_area_m2(mask, aoi, scale)

    layers = turbidity_layers(composite, mask)
    stats = turbidity_stats(layers, aoi, scale)

    name = _run_name(aoi, "turbidity", start, end)
    tasks: list[ExportTask] = []
    if _wants(export, "raster"):
        tasks.append(export_image(layers.toFloat(), name, aoi, scale, destination))
    if _wants(export, "vector"):
        vectors = vectorize_mask(mask, aoi, scale, settings.simplify_tolerance_m)
        tasks.append(export_vectors(vectors, f"{name}_water", destination))

    written_map = None
    if map_path:
        map_layers = [
            MapLayer(composite, "True colour", vis_for("RGB")),
            MapLayer(layers.select("NDTI"), "NDTI", vis_for("NDTI")),
            MapLayer(layers.select("TSS"), "TSS (mg/L)", vis_for("TSS"), shown=False),
        ]
        written_map = str(save_map(build_map(aoi, map_layers), map_path))

    return TurbidityResult(
        aoi=aoi.name,
        sensor=sensor,
        date_start=start,
        date_end=end,
        scene_count=count,
        threshold=threshold,
        water_area_m2=area,
        stats=stats,
        exports=_export_locations(tasks),
        map_path=written_map,
    )


def run_shoreline(
    aoi: AOI,
    start_date: str | date,
    end_date: str | date,
    sensor: str | None = None,
    max_cloud_cover: float | None = None,
    scale: int | None = None,
    threshold: float = AWEI_DEFAULT_THRESHOLD,
    min_area_m2: float = 0,
    export: bool = True,
    destination: Destination | None = None,
    file_format: str = "GeoJSON",
    map_path: str | Path | None = None,
) -> ShorelineResult:
    """
    Extract the land/water boundary as lines using AWEI_nsh.

    Raises:
        NoImageryError: If no scenes match
    """
    sensor = sensor or settings.sensor
    start, end = validate_dates(start_date, end_date)
    scale = resolve_scale(sensor, scale)

    composite, count = get_composite(aoi, start, end, sensor, max_cloud_cover)
    mask, _, threshold, _ = build_water_mask(composite, aoi, scale, "AWEI_NSH", threshold)

    polygons = min_area_filter(vectorize_mask(mask, aoi, scale, settings.simplify_tolerance_m), min_area_m2)
    lines = shoreline(polygons)
    polygon_count = int(get_info(polygons.size()))

    tasks: list[ExportTask] = []
    if export:
        name = _run_name(aoi, "shoreline", start, end)
        tasks.append(export_vectors(lines, name, destination, file_format=file_format))

    written_map = None
    if map_path:
        map_layers = [
            MapLayer(composite, "True colour", vis_for("RGB")),
            MapLayer(awei_nsh(composite), "AWEI_NSH", vis_for("AWEI_NSH"), shown=False),
            MapLayer(lines, "Shoreline", vis_for("vectors")),
        ]
        written_map = str(save_map(build_map(aoi, map_layers), map_path))

    return ShorelineResult(
        aoi=aoi.name,
        sensor=sensor,
        date_start=start,
        date_end=end,
        scene_count=count,
        threshold=threshold,
        polygon_count=polygon_count,
        exports=_export_locations(tasks),
        map_path=written_map,
    )


# =============================================================================
# Time series
# =============================================================================


def month_ranges(start_date: str | date, end_date: str | date, months_step: int = 1) -> list[tuple[str, str]]:
    """
    Split a date range into consecutive periods of months_step months.

    The first period starts at start_date and runs to the next period
    boundary (the first of a month); the last period is cut at end_date.
    """
    if months_step < 1:
        raise ValueError("months_step must be at least 1")
    start, end = (date.fromisoformat(d) for d in validate_dates(start_date, end_date))

    periods = []
    current = start
    month_start = start.replace(day=1)
    while current < end:
        month_index = month_start.month - 1 + months_step
        next_start = date(month_start.year + month_index // 12, month_index % 12 + 1, 1)
        periods.append((current.isoformat(), min(next_start, end).isoformat()))
        current = month_start = next_start
    return periods


def timeseries_cache_path(aoi: AOI) -> Path:
    """Cache file for an AOI's time series."""
    return get_cache_dir() / f"timeseries_{aoi.name}.json"


def load_timeseries(aoi: AOI) -> list[TimeseriesRecord]:
    """Load a cached time series (empty list if none)."""
    path = timeseries_cache_path(aoi)
    if not path.exists():
        return []
    with open(path) as f:
        return json.load(f).get("records", [])


def run_timeseries(
    aoi: AOI,
    start_date: str | date,
    end_date: str | date,
    months_step: int = 1,
    sensor: str | None = None,
    max_cloud_cover: float | None = None,
    scale: int | None = None,
    threshold: float | None = None,
    save: bool = True,
) -> list[TimeseriesRecord]:
    """
    Water area and turbidity per period.

    Periods without usable imagery are kept with None values and an
    'error' message, so gaps are visible in the output.
    """
    sensor = sensor or settings.sensor
    scale = resolve_scale(sensor, scale)
    records: list[TimeseriesRecord] = []

    for period_start, period_end in month_ranges(start_date, end_date, months_step):
        logger.info("Processing %s to %s", period_start, period_end)
        try:
            composite, count = get_composite(aoi, period_start, period_end, sensor, max_cloud_cover)
            mask, _, period_threshold, _ = build_water_mask(composite, aoi, scale, "NDWI", threshold)
            area = water_area_m2(mask, aoi, scale)
            stats = turbidity_stats(turbidity_layers(composite, mask), aoi, scale)
            records.append(
                TimeseriesRecord(
                    date=period_start,
                    date_end=period_end,
                    scene_count=count,
                    threshold=period_threshold,
                    water_area_m2=area,
                    ndti_mean=stats["ndti_mean"],
                    tss_mean=stats["tss_mean"],
                    turbidity_class=stats["turbidity_class"],
                )
            )
        except (NoImageryError, EarthEngineError, RetryableError, ValueError) as e:
            logger.warning("No result for %s: %s", period_start, e)
            records.append(
                TimeseriesRecord(
                    date=period_start,
                    date_end=period_end,
                    scene_count=0,
                    threshold=None,
                    water_area_m2=None,
                    ndti_mean=None,
                    tss_mean=None,
                    turbidity_class="unknown",
                    error=str(e),
                )
            )

    if save:
        path = timeseries_cache_path(aoi)
        with open(path, "w") as f:
            json.dump(
                {
                    "aoi": aoi.name,
                    "sensor": sensor,
                    "fetched_at": date.today().isoformat(),
                    "records": records,
                },
                f,
                indent=2,
            )
        logger.info("Saved time series to %s", path)

    return records
