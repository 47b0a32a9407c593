"""Water masks - thresholding, cleanup and vectorization."""

from waterscan.water.boundary import shoreline, vectorize_mask
from waterscan.water.mask import clean_mask, water_area_m2, water_mask
from waterscan.water.threshold import ee_otsu_threshold, otsu_from_histogram, otsu_threshold

__all__ = [
    "otsu_threshold",
    "otsu_from_histogram",
    "ee_otsu_threshold",
    "water_mask",
    "clean_mask",
    "water_area_m2",
    "vectorize_mask",
    "shoreline",
]
