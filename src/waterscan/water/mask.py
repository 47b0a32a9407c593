"""
Binary water masks and connected-component cleanup.

Masks are single-band images named "water": 1 = water, 0 = land.
"""

import logging

import ee

from waterscan.core.aoi import AOI
from waterscan.core.earthengine import get_info

logger = logging.getLogger(__name__)

# ee.Image.connectedPixelCount() does not count beyond this size
MAX_CONNECTED_PIXELS = 1024


def _clamp_component_size(pixels: int) -> int:
    if pixels > MAX_CONNECTED_PIXELS:
        logger.warning(
            "Component size %d exceeds Earth Engine limit, clamping to %d",
            pixels,
            MAX_CONNECTED_PIXELS,
        )
        return MAX_CONNECTED_PIXELS
    return pixels


def water_mask(index_image: ee.Image, threshold: float, band: str | None = None) -> ee.Image:
    """Threshold an index image: pixels strictly above the threshold are water."""
    if band:
        index_image = index_image.select(band)
    return index_image.gt(threshold).rename("water")


def remove_small_waterbodies(mask: ee.Image, min_pixels: int) -> ee.Image:
    """
    Turn water components smaller than min_pixels into land.

    Connectivity is 8-connected.
    """
    if min_pixels <= 0:
        return mask
    min_pixels = _clamp_component_size(min_pixels)

    water = mask.selfMask()
    size = water.connectedPixelCount(maxSize=min_pixels, eightConnected=True)
    small = size.lt(min_pixels).unmask(0)
    return mask.where(small, 0).rename("water")


def fill_islands(mask: ee.Image, max_pixels: int) -> ee.Image:
    """
    Turn land components smaller than max_pixels into water.

    Removes speckle and small islands inside water bodies.
    """
    if max_pixels <= 0:
        return mask
    max_pixels = _clamp_component_size(max_pixels)

    land = mask.Not().selfMask()
    size = land.connectedPixelCount(maxSize=max_pixels, eightConnected=True)
    small = size.lt(max_pixels).unmask(0)
    return mask.where(small, 1).rename("water")


def clean_mask(mask: ee.Image, min_waterbody_pixels: int, max_island_pixels: int) -> ee.Image:
    """Remove small waterbodies, then fill small islands. 0 disables a step."""
    mask = remove_small_waterbodies(mask, min_waterbody_pixels)
    return fill_islands(mask, max_island_pixels)


def apply_water_mask(image: ee.Image, mask: ee.Image) -> ee.Image:
    """Keep only water pixels of an image."""
    return image.updateMask(mask.eq(1))


def water_area_m2(mask: ee.Image, aoi: AOI, scale: int) -> float:
    """Total water area inside the AOI in square metres."""
    area = ee.Image.pixelArea().multiply(mask).rename("area")
    stats = area.reduceRegion(
        reducer=ee.Reducer.sum(),
        geometry=aoi.to_ee(),
        scale=scale,
        maxPixels=int(1e13),
        bestEffort=True,
    )
    result = get_info(stats) or {}
    return float(result.get("area") or 0.0)
