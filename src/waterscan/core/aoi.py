"""
Area of interest handling.

An AOI is a named polygon boundary kept as plain GeoJSON so it can be
validated and inspected without an Earth Engine session, and converted to
an ee.Geometry when a workflow runs.
"""

import json
from dataclasses import dataclass
from pathlib import Path

import ee

from waterscan.core.config import settings

SUPPORTED_TYPES = ("Polygon", "MultiPolygon")


@dataclass(frozen=True)
class AOI:
    """A named polygon area of interest in WGS84 lon/lat."""

    name: str
    geometry: dict

    def __post_init__(self):
        geom_type = self.geometry.get("type")
        if geom_type not in SUPPORTED_TYPES:
            raise ValueError(f"Unsupported geometry type: {geom_type}")
        if not self.geometry.get("coordinates"):
            raise ValueError(f"AOI {self.name!r} has no coordinates")

    @classmethod
    def from_geojson(cls, obj: dict, name: str = "aoi") -> "AOI":
        """Build an AOI from a GeoJSON Geometry, Feature or FeatureCollection.

        Polygons from a FeatureCollection are merged into one MultiPolygon.
        """
        obj_type = obj.get("type")

        if obj_type == "FeatureCollection":
            polygons = []
            for feature in obj.get("features", []):
                geom = feature.get("geometry") or {}
                if geom.get("type") == "Polygon":
                    polygons.append(geom["coordinates"])
                elif geom.get("type") == "MultiPolygon":
                    polygons.extend(geom["coordinates"])
            if not polygons:
                raise ValueError("FeatureCollection contains no polygon features")
            if len(polygons) == 1:
                return cls(name, {"type": "Polygon", "coordinates": polygons[0]})
            return cls(name, {"type": "MultiPolygon", "coordinates": polygons})

        if obj_type == "Feature":
            props = obj.get("properties") or {}
            return cls(props.get("name", name), obj.get("geometry") or {})

        return cls(name, obj)

    @classmethod
    def from_file(cls, path: str | Path) -> "AOI":
        """Load an AOI from a GeoJSON file. The file stem is the default name."""
        path = Path(path)
        with open(path) as f:
            data = json.load(f)
        return cls.from_geojson(data, name=path.stem)

    @classmethod
    def from_bbox(cls, west: float, south: float, east: float, north: float, name: str = "bbox") -> "AOI":
        """Build a rectangular AOI from lon/lat bounds."""
        if west >= east:
            raise ValueError(f"west ({west}) must be less than east ({east})")
        if south >= north:
            raise ValueError(f"south ({south}) must be less than north ({north})")
        if not (-90 <= south <= 90 and -90 <= north <= 90):
            raise ValueError("Latitude must be between -90 and 90")

        ring = [[west, south], [east, south], [east, north], [west, north], [west, south]]
        return cls(name, {"type": "Polygon", "coordinates": [ring]})

    def _points(self) -> list[list[float]]:
        if self.geometry["type"] == "Polygon":
            rings = self.geometry["coordinates"]
        else:
            rings = [ring for polygon in self.geometry["coordinates"] for ring in polygon]
        return [point for ring in rings for point in ring]

    def bounds(self) -> tuple[float, float, float, float]:
        """Return (west, south, east, north)."""
        points = self._points()
        lons = [p[0] for p in points]
        lats = [p[1] for p in points]
        return min(lons), min(lats), max(lons), max(lats)

    def centroid(self) -> tuple[float, float]:
        """Return (lat, lon) of the bounding box centre, for map centring."""
        west, south, east, north = self.bounds()
        return (south + north) / 2, (west + east) / 2

    def to_ee(self) -> ee.Geometry:
        """Convert to an Earth Engine geometry."""
        if self.geometry["type"] == "Polygon":
            return ee.Geometry.Polygon(self.geometry["coordinates"])
        return ee.Geometry.MultiPolygon(self.geometry["coordinates"])


def load_aoi(path: str | Path | None = None) -> AOI:
    """Load the AOI from an explicit path or settings.aoi_path."""
    path = path or settings.aoi_path
    if not path:
        raise ValueError(
            "No AOI configured. Either:\n"
            "  1. Pass --aoi path/to/aoi.geojson (or --bbox), or\n"
            "  2. Set WATERSCAN_AOI_PATH in .env"
        )
    path = Path(path)
    if not path.is_file():
        raise ValueError(f"AOI file not found: {path}")
    return AOI.from_file(path)
