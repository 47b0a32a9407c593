"""Surface water and turbidity mapping with Google Earth Engine.

This package loads satellite imagery over an area of interest, computes
water and turbidity indices, thresholds and cleans water masks, vectorizes
land/water boundaries, renders maps and exports results to cloud storage.

Subpackages:
- waterscan.core: Configuration, Earth Engine session, AOI, units
- waterscan.imagery: Sensor definitions and image collections
- waterscan.indices: Spectral index formulas
- waterscan.water: Thresholding, masks and vectorization
- waterscan.quality: Turbidity and suspended sediment
- waterscan.render: Maps and charts
- waterscan.export: Batch exports and direct downloads
"""

# Re-export common items for convenience
from waterscan.core import (
    AOI,
    initialize,
    load_aoi,
    settings,
)

__all__ = [
    "AOI",
    "initialize",
    "load_aoi",
    "settings",
]

__version__ = "0.1.0"
