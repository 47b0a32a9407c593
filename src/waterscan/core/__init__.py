"""Core module - configuration, Earth Engine session, AOI and units."""

from waterscan.core import units
from waterscan.core.aoi import AOI, load_aoi
from waterscan.core.config import get_cache_dir, get_output_dir, settings
from waterscan.core.earthengine import (
    EarthEngineError,
    RetryableError,
    get_info,
    initialize,
)
from waterscan.core.units import (
    area_m2_to_display,
    format_area,
    m2_to_hectares,
    m2_to_km2,
)

__all__ = [
    "units",
    "settings",
    "get_cache_dir",
    "get_output_dir",
    "AOI",
    "load_aoi",
    "initialize",
    "get_info",
    "EarthEngineError",
    "RetryableError",
    # Unit conversion helpers
    "area_m2_to_display",
    "format_area",
    "m2_to_hectares",
    "m2_to_km2",
]
