"""
Sensor definitions for the Earth Engine collections used by the workflows.

Each sensor maps its native band names onto common names so the index
formulas can be written once:

    blue, green, red, nir, swir1, swir2
"""

from collections.abc import Callable
from dataclasses import dataclass

import ee

COMMON_BANDS = ("blue", "green", "red", "nir", "swir1", "swir2")


def _mask_clouds_s2(image: ee.Image) -> ee.Image:
    """
    Apply cloud mask to a Sentinel-2 L2A image using the Scene Classification Layer.

    SCL classes masked out:
        3 = Cloud shadow
        8 = Cloud medium probability
        9 = Cloud high probability
        10 = Thin cirrus
        11 = Snow/ice
    """
    scl = image.select("SCL")
    clear_mask = (
        scl.neq(3)
        .And(scl.neq(8))
        .And(scl.neq(9))
        .And(scl.neq(10))
        .And(scl.neq(11))
    )
    return image.updateMask(clear_mask)


def _mask_clouds_landsat(image: ee.Image) -> ee.Image:
    """
    Apply cloud mask to a Landsat Collection 2 L2 image using QA_PIXEL.

    QA_PIXEL is a bitmask:
        Bit 1: Dilated cloud
        Bit 3: Cloud
        Bit 4: Cloud shadow
        Bit 5: Snow

    We mask out any pixel with one of those bits set.
    """
    qa = image.select("QA_PIXEL")
    mask_bits = (1 << 1) | (1 << 3) | (1 << 4) | (1 << 5)
    return image.updateMask(qa.bitwiseAnd(mask_bits).eq(0))


@dataclass(frozen=True)
class SensorSpec:
    """Everything needed to turn a raw collection into reflectance with common band names."""

    name: str
    collection_id: str
    bands: dict[str, str]  # common name -> native band name
    reflectance_scale: float
    reflectance_offset: float
    cloud_property: str  # scene-level cloud cover metadata (%)
    native_scale: int  # metres
    cloud_mask: Callable[[ee.Image], ee.Image]

    @property
    def native_bands(self) -> list[str]:
        return [self.bands[b] for b in COMMON_BANDS]


SENSORS: dict[str, SensorSpec] = {
    "sentinel2": SensorSpec(
        name="sentinel2",
        collection_id="COPERNICUS/S2_SR_HARMONIZED",
        bands={
            "blue": "B2",
            "green": "B3",
            "red": "B4",
            "nir": "B8",
            "swir1": "B11",
            "swir2": "B12",
        },
        reflectance_scale=0.0001,
        reflectance_offset=0.0,
        cloud_property="CLOUDY_PIXEL_PERCENTAGE",
        native_scale=10,
        cloud_mask=_mask_clouds_s2,
    ),
    "landsat8": SensorSpec(
        name="landsat8",
        collection_id="LANDSAT/LC08/C02/T1_L2",
        bands={
            "blue": "SR_B2",
            "green": "SR_B3",
            "red": "SR_B4",
            "nir": "SR_B5",
            "swir1": "SR_B6",
            "swir2": "SR_B7",
        },
        reflectance_scale=0.0000275,
        reflectance_offset=-0.2,
        cloud_property="CLOUD_COVER",
        native_scale=30,
        cloud_mask=_mask_clouds_landsat,
    ),
    "landsat9": SensorSpec(
        name="landsat9",
        collection_id="LANDSAT/LC09/C02/T1_L2",
        bands={
            "blue": "SR_B2",
            "green": "SR_B3",
            "red": "SR_B4",
            "nir": "SR_B5",
            "swir1": "SR_B6",
            "swir2": "SR_B7",
        },
        reflectance_scale=0.0000275,
        reflectance_offset=-0.2,
        cloud_property="CLOUD_COVER",
        native_scale=30,
        cloud_mask=_mask_clouds_landsat,
    ),
}


def get_sensor(name: str) -> SensorSpec:
    """Look up a sensor by name (case-insensitive)."""
    try:
        return SENSORS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown sensor {name!r}; expected one of {', '.join(SENSORS)}") from None
