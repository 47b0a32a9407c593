"""
Otsu thresholding of index images.

The histogram is computed in Earth Engine; the threshold itself is picked
client-side with scikit-image, or server-side with ee_otsu_threshold when it
has to be mapped over a collection without a round trip per image.
"""

import logging

import ee
import numpy as np
from skimage.filters import threshold_otsu

from waterscan.core.aoi import AOI
from waterscan.core.earthengine import get_info

logger = logging.getLogger(__name__)

DEFAULT_BUCKETS = 255


def otsu_from_histogram(counts: list[float], means: list[float]) -> float:
    """
    Otsu threshold from a bucketed histogram.

    Args:
        counts: Pixel count per bucket
        means: Mean value per bucket (bucket centres)

    Returns:
        Threshold value: pixels above it belong to the upper class

    Raises:
        ValueError: If the histogram is empty or the arrays differ in length
    """
    counts_arr = np.asarray(counts, dtype=float)
    means_arr = np.asarray(means, dtype=float)

    if counts_arr.size == 0 or counts_arr.size != means_arr.size:
        raise ValueError("Histogram counts and means must be non-empty and the same length")
    if counts_arr.sum() <= 0:
        raise ValueError("Histogram has no pixels")

    populated = np.flatnonzero(counts_arr > 0)
    if populated.size == 1:
        # Single class: nothing to separate
        return float(means_arr[populated[0]])

    return float(threshold_otsu(hist=(counts_arr, means_arr)))


def index_histogram(
    image: ee.Image,
    band: str,
    aoi: AOI,
    scale: int,
    buckets: int = DEFAULT_BUCKETS,
) -> dict:
    """
    Histogram of one band over the AOI.

    Returns:
        Dict with 'histogram' (counts) and 'bucketMeans'

    Raises:
        ValueError: If the band has no valid pixels in the AOI
    """
    stats = image.select(band).reduceRegion(
        reducer=ee.Reducer.histogram(maxBuckets=buckets),
        geometry=aoi.to_ee(),
        scale=scale,
        maxPixels=int(1e13),
        bestEffort=True,
    )
    result = get_info(stats) or {}
    histogram = result.get(band)
    if not histogram or not histogram.get("histogram"):
        raise ValueError(f"No valid {band} pixels in {aoi.name}")
    return histogram


def otsu_threshold(image: ee.Image, band: str, aoi: AOI, scale: int) -> float:
    """Compute the Otsu threshold of a band over the AOI."""
    histogram = index_histogram(image, band, aoi, scale)
    threshold = otsu_from_histogram(histogram["histogram"], histogram["bucketMeans"])
    logger.info("Otsu threshold for %s over %s: %.4f", band, aoi.name, threshold)
    return threshold


def ee_otsu_threshold(histogram: ee.Dictionary) -> ee.Number:
    """
    Server-side Otsu threshold from an ee.Reducer.histogram() result.

    Maximizes between-class variance over every split of the buckets.
    """
    histogram = ee.Dictionary(histogram)
    counts = ee.Array(histogram.get("histogram"))
    means = ee.Array(histogram.get("bucketMeans"))
    size = means.length().get([0])
    total = counts.reduce(ee.Reducer.sum(), [0]).get([0])
    total_sum = means.multiply(counts).reduce(ee.Reducer.sum(), [0]).get([0])
    mean = total_sum.divide(total)

    def between_class_variance(i):
        a_counts = counts.slice(0, 0, i)
        a_count = a_counts.reduce(ee.Reducer.sum(), [0]).get([0])
        a_means = means.slice(0, 0, i)
        a_mean = a_means.multiply(a_counts).reduce(ee.Reducer.sum(), [0]).get([0]).divide(a_count)
        b_count = total.subtract(a_count)
        b_mean = total_sum.subtract(a_count.multiply(a_mean)).divide(b_count)
        return a_count.multiply(a_mean.subtract(mean).pow(2)).add(b_count.multiply(b_mean.subtract(mean).pow(2)))

    variances = ee.List.sequence(1, size).map(between_class_variance)
    return ee.Number(means.sort(variances).get([-1]))
