"""Vectorization of water masks into polygons and land/water boundary lines."""

import ee

from waterscan.core.aoi import AOI

# Projection error tolerance when computing areas and simplifying (metres)
ERROR_MARGIN_M = 1


def vectorize_mask(mask: ee.Image, aoi: AOI, scale: int, simplify_m: float = 0) -> ee.FeatureCollection:
    """
    Convert water pixels to polygons.

    Args:
        mask: Binary water mask (1 = water)
        aoi: Area of interest bounding the vectorization
        scale: Pixel size in metres
        simplify_m: Douglas-Peucker tolerance in metres (0 disables)

    Returns:
        FeatureCollection of water polygons, each with an 'area_m2' property
    """
    vectors = mask.selfMask().reduceToVectors(
        geometry=aoi.to_ee(),
        scale=scale,
        geometryType="polygon",
        eightConnected=True,
        labelProperty="water",
        maxPixels=int(1e13),
        bestEffort=True,
    )

    def _finish(feature):
        feature = ee.Feature(feature)
        if simplify_m > 0:
            feature = feature.simplify(maxError=simplify_m)
        return feature.set("area_m2", feature.geometry().area(ERROR_MARGIN_M))

    return vectors.map(_finish)


def min_area_filter(vectors: ee.FeatureCollection, min_area_m2: float) -> ee.FeatureCollection:
    """Drop polygons smaller than min_area_m2."""
    if min_area_m2 <= 0:
        return vectors
    return vectors.filter(ee.Filter.gte("area_m2", min_area_m2))


def shoreline(vectors: ee.FeatureCollection) -> ee.FeatureCollection:
    """
    Land/water boundary lines from water polygons.

    Each polygon's rings become a MultiLineString feature keeping its properties.
    """

    def _to_lines(feature):
        feature = ee.Feature(feature)
        rings = feature.geometry().coordinates()
        lines = ee.Geometry.MultiLineString(rings)
        return ee.Feature(lines, feature.toDictionary())

    return vectors.map(_to_lines)
