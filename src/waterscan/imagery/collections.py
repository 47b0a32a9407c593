"""
Image collection loading and compositing.

Collections are filtered by AOI bounds, date range and scene cloud cover,
then cloud-masked, scaled to surface reflectance and renamed to common
band names (see imagery.sensors).
"""

import logging
from datetime import date

import ee

from waterscan.core.aoi import AOI
from waterscan.core.config import settings
from waterscan.core.earthengine import get_info
from waterscan.imagery.sensors import COMMON_BANDS, SensorSpec, get_sensor

logger = logging.getLogger(__name__)


class NoImageryError(Exception):
    """Raised when no scenes match the AOI, date range and cloud filter."""

    pass


def validate_dates(start_date: str | date, end_date: str | date) -> tuple[str, str]:
    """
    Validate a date range and return it as ISO strings.

    The end date is exclusive, matching ee.ImageCollection.filterDate.

    Raises:
        ValueError: If a date is malformed or start is not before end
    """
    start = start_date if isinstance(start_date, date) else date.fromisoformat(start_date)
    end = end_date if isinstance(end_date, date) else date.fromisoformat(end_date)
    if start >= end:
        raise ValueError(f"Start date {start} must be before end date {end}")
    return start.isoformat(), end.isoformat()


def _prepare_image(image: ee.Image, spec: SensorSpec) -> ee.Image:
    """Cloud-mask, scale to reflectance and rename bands to common names."""
    masked = spec.cloud_mask(image)
    reflectance = (
        masked.select(spec.native_bands, list(COMMON_BANDS))
        .multiply(spec.reflectance_scale)
        .add(spec.reflectance_offset)
    )
    return ee.Image(reflectance.copyProperties(image, ["system:time_start", spec.cloud_property]))


def load_collection(
    aoi: AOI,
    start_date: str | date,
    end_date: str | date,
    sensor: str | None = None,
    max_cloud_cover: float | None = None,
) -> ee.ImageCollection:
    """
    Get a cloud-masked reflectance collection for an AOI and date range.

    Args:
        aoi: Area of interest
        start_date: Start date (YYYY-MM-DD, inclusive)
        end_date: End date (YYYY-MM-DD, exclusive)
        sensor: Sensor name (default: settings.sensor)
        max_cloud_cover: Maximum scene cloud cover in % (default: settings.max_cloud_cover)

    Returns:
        Image collection with bands blue, green, red, nir, swir1, swir2
    """
    spec = get_sensor(sensor or settings.sensor)
    if max_cloud_cover is None:
        max_cloud_cover = settings.max_cloud_cover
    start, end = validate_dates(start_date, end_date)

    logger.debug(
        "Loading %s over %s from %s to %s (cloud <= %s%%)",
        spec.collection_id,
        aoi.name,
        start,
        end,
        max_cloud_cover,
    )

    collection = (
        ee.ImageCollection(spec.collection_id)
        .filterBounds(aoi.to_ee())
        .filterDate(start, end)
        .filter(ee.Filter.lte(spec.cloud_property, max_cloud_cover))
    )

    return collection.map(lambda image: _prepare_image(image, spec))


def collection_size(collection: ee.ImageCollection) -> int:
    """Number of scenes in a collection."""
    return int(get_info(collection.size()))


def require_imagery(collection: ee.ImageCollection) -> int:
    """
    Check that a collection has at least one scene.

    Returns:
        The scene count

    Raises:
        NoImageryError: If the collection is empty
    """
    count = collection_size(collection)
    if count == 0:
        raise NoImageryError("No imagery found for the AOI, date range and cloud cover filter")
    return count


def median_composite(collection: ee.ImageCollection, aoi: AOI) -> ee.Image:
    """Median composite of a collection, clipped to the AOI."""
    return collection.median().clip(aoi.to_ee())


def get_composite(
    aoi: AOI,
    start_date: str | date,
    end_date: str | date,
    sensor: str | None = None,
    max_cloud_cover: float | None = None,
) -> tuple[ee.Image, int]:
    """
    Load, check and composite imagery in one step.

    Returns:
        Tuple of (median composite, scene count)

    Raises:
        NoImageryError: If no scenes match
    """
    collection = load_collection(aoi, start_date, end_date, sensor, max_cloud_cover)
    count = require_imagery(collection)
    logger.info("Compositing %d scenes for %s", count, aoi.name)
    return median_composite(collection, aoi), count
