"""
Interactive maps of Earth Engine layers with folium.

Earth Engine renders tiles server-side; each layer is added to the folium
map as a tile layer pointing at the URL returned by getMapId().
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import ee
import folium

from waterscan.core.aoi import AOI

logger = logging.getLogger(__name__)

EE_ATTRIBUTION = "Map data &copy; Google Earth Engine"

# Visualization presets keyed by band / layer name
VIS_PARAMS: dict[str, dict] = {
    "RGB": {"bands": ["red", "green", "blue"], "min": 0.0, "max": 0.3, "gamma": 1.2},
    "NDWI": {"min": -0.5, "max": 0.5, "palette": ["#a6611a", "#f5f5f5", "#0571b0"]},
    "MNDWI": {"min": -0.5, "max": 0.5, "palette": ["#a6611a", "#f5f5f5", "#0571b0"]},
    "AWEI_NSH": {"min": -1.0, "max": 0.5, "palette": ["#a6611a", "#f5f5f5", "#0571b0"]},
    "AWEI_SH": {"min": -0.5, "max": 0.5, "palette": ["#a6611a", "#f5f5f5", "#0571b0"]},
    "NDTI": {"min": -0.3, "max": 0.3, "palette": ["#2166ac", "#67a9cf", "#fddbc7", "#b2182b"]},
    "TSS": {"min": 0, "max": 60, "palette": ["#2166ac", "#92c5de", "#f4a582", "#8c510a"]},
    "water": {"min": 0, "max": 1, "palette": ["#1f78b4"]},
    "vectors": {"color": "#e31a1c"},
}


@dataclass
class MapLayer:
    """An Earth Engine object to draw on the map."""

    obj: ee.Image | ee.FeatureCollection
    name: str
    vis_params: dict = field(default_factory=dict)
    shown: bool = True
    opacity: float = 1.0


def vis_for(name: str) -> dict:
    """Visualization preset for a band name (empty dict if none)."""
    return dict(VIS_PARAMS.get(name, {}))


def tile_url(obj: ee.Image | ee.FeatureCollection, vis_params: dict) -> str:
    """Request a tile URL template for an Earth Engine object."""
    map_id = obj.getMapId(vis_params)
    return map_id["tile_fetcher"].url_format


def add_ee_layer(m: folium.Map, layer: MapLayer) -> folium.Map:
    """Add an Earth Engine layer to a folium map."""
    folium.raster_layers.TileLayer(
        tiles=tile_url(layer.obj, layer.vis_params),
        attr=EE_ATTRIBUTION,
        name=layer.name,
        overlay=True,
        control=True,
        show=layer.shown,
        opacity=layer.opacity,
    ).add_to(m)
    return m


def build_map(aoi: AOI, layers: list[MapLayer], zoom_start: int = 11) -> folium.Map:
    """
    Build a map centred on the AOI with the given layers and an AOI outline.

    Layers are drawn in order, so put base imagery first.
    """
    lat, lon = aoi.centroid()
    m = folium.Map(location=[lat, lon], zoom_start=zoom_start, tiles="OpenStreetMap")

    for layer in layers:
        logger.debug("Adding map layer %s", layer.name)
        add_ee_layer(m, layer)

    folium.GeoJson(
        aoi.geometry,
        name=f"AOI: {aoi.name}",
        style_function=lambda _: {"color": "#ff7f00", "weight": 2, "fillOpacity": 0},
    ).add_to(m)

    west, south, east, north = aoi.bounds()
    m.fit_bounds([[south, west], [north, east]])
    folium.LayerControl(collapsed=False).add_to(m)
    return m


def save_map(m: folium.Map, path: str | Path) -> Path:
    """Write a map to an HTML file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    m.save(str(path))
    return path
