"""
Turbidity and suspended-sediment layers over water.

NDTI is unitless (-1..1, higher = more turbid); TSS is a mg/L proxy from
red reflectance. Both are masked to water before statistics are taken, so
land never contributes.
"""

from typing import TypedDict

import ee

from waterscan.core.aoi import AOI
from waterscan.core.earthengine import get_info
from waterscan.indices.spectral import ndti, tss
from waterscan.water.mask import apply_water_mask

# NDTI class boundaries (Lacaux et al. 2007 ranges for inland water)
NDTI_CLEAR_MAX = -0.05
NDTI_TURBID_MIN = 0.05


class TurbidityStats(TypedDict):
    """Turbidity statistics over the water pixels of an AOI."""

    ndti_mean: float | None
    ndti_min: float | None
    ndti_max: float | None
    ndti_stddev: float | None
    ndti_p90: float | None
    tss_mean: float | None
    tss_max: float | None
    tss_p90: float | None
    pixel_count: int
    turbidity_class: str


def turbidity_layers(composite: ee.Image, mask: ee.Image) -> ee.Image:
    """NDTI and TSS bands, masked to water."""
    layers = ndti(composite).addBands(tss(composite))
    return apply_water_mask(layers, mask)


def classify_turbidity(ndti_mean: float | None) -> str:
    """
    Classify mean NDTI.

    Returns:
        'clear', 'moderate', 'turbid', or 'unknown' when there is no data
    """
    if ndti_mean is None:
        return "unknown"
    if ndti_mean < NDTI_CLEAR_MAX:
        return "clear"
    if ndti_mean < NDTI_TURBID_MIN:
        return "moderate"
    return "turbid"


def turbidity_stats(layers: ee.Image, aoi: AOI, scale: int) -> TurbidityStats:
    """
    Reduce turbidity layers over the AOI.

    Args:
        layers: Image with NDTI and TSS bands (already masked to water)
        aoi: Area of interest
        scale: Resolution in metres

    Returns:
        TurbidityStats; values are None when the AOI has no water pixels
    """
    reducer = (
        ee.Reducer.mean()
        .combine(ee.Reducer.minMax(), sharedInputs=True)
        .combine(ee.Reducer.stdDev(), sharedInputs=True)
        .combine(ee.Reducer.percentile([90]), sharedInputs=True)
        .combine(ee.Reducer.count(), sharedInputs=True)
    )
    stats = layers.reduceRegion(
        reducer=reducer,
        geometry=aoi.to_ee(),
        scale=scale,
        maxPixels=int(1e13),
        bestEffort=True,
    )
    stats_dict = get_info(stats) or {}

    ndti_mean = stats_dict.get("NDTI_mean")
    return TurbidityStats(
        ndti_mean=ndti_mean,
        ndti_min=stats_dict.get("NDTI_min"),
        ndti_max=stats_dict.get("NDTI_max"),
        ndti_stddev=stats_dict.get("NDTI_stdDev"),
        ndti_p90=stats_dict.get("NDTI_p90"),
        tss_mean=stats_dict.get("TSS_mean"),
        tss_max=stats_dict.get("TSS_max"),
        tss_p90=stats_dict.get("TSS_p90"),
        pixel_count=int(stats_dict.get("NDTI_count") or 0),
        turbidity_class=classify_turbidity(ndti_mean),
    )
