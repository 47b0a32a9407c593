"""
Spectral indices for water detection and turbidity.

All functions expect reflectance images with common band names
(blue, green, red, nir, swir1, swir2) and return a single named band.

Water:
    NDWI  (McFeeters 1996)  = (green - nir) / (green + nir)
    MNDWI (Xu 2006)         = (green - swir1) / (green + swir1)
    AWEI_nsh (Feyisa 2014)  = 4 (green - swir1) - (0.25 nir + 2.75 swir2)
    AWEI_sh  (Feyisa 2014)  = blue + 2.5 green - 1.5 (nir + swir1) - 0.25 swir2

Turbidity / sediment:
    NDTI (Lacaux 2007)      = (red - green) / (red + green)
    TSS  (Nechad 2010)      = A rho / (1 - rho / C), red band
"""

from collections.abc import Callable

import ee

# Nechad et al. (2010) calibration for the 665 nm band
NECHAD_A = 355.85  # g/m³ (= mg/L)
NECHAD_C = 0.1728

WATER_INDICES = ("NDWI", "MNDWI", "AWEI_NSH", "AWEI_SH")
TURBIDITY_INDICES = ("NDTI", "TSS")


def ndwi(image: ee.Image) -> ee.Image:
    """Normalized Difference Water Index (green vs NIR)."""
    return image.normalizedDifference(["green", "nir"]).rename("NDWI")


def mndwi(image: ee.Image) -> ee.Image:
    """Modified NDWI (green vs SWIR1); less sensitive to built-up land."""
    return image.normalizedDifference(["green", "swir1"]).rename("MNDWI")


def ndti(image: ee.Image) -> ee.Image:
    """Normalized Difference Turbidity Index (red vs green)."""
    return image.normalizedDifference(["red", "green"]).rename("NDTI")


def awei_nsh(image: ee.Image) -> ee.Image:
    """Automated Water Extraction Index, no-shadow variant."""
    return image.expression(
        "4 * (GREEN - SWIR1) - (0.25 * NIR + 2.75 * SWIR2)",
        {
            "GREEN": image.select("green"),
            "SWIR1": image.select("swir1"),
            "NIR": image.select("nir"),
            "SWIR2": image.select("swir2"),
        },
    ).rename("AWEI_NSH")


def awei_sh(image: ee.Image) -> ee.Image:
    """Automated Water Extraction Index, shadow variant."""
    return image.expression(
        "BLUE + 2.5 * GREEN - 1.5 * (NIR + SWIR1) - 0.25 * SWIR2",
        {
            "BLUE": image.select("blue"),
            "GREEN": image.select("green"),
            "NIR": image.select("nir"),
            "SWIR1": image.select("swir1"),
            "SWIR2": image.select("swir2"),
        },
    ).rename("AWEI_SH")


def tss(image: ee.Image) -> ee.Image:
    """
    Total suspended solids proxy (mg/L) from red reflectance.

    Single-band semi-analytical model of Nechad et al. (2010). Only
    meaningful over water; mask with a water mask before use.
    """
    return image.expression(
        "A * RED / (1 - RED / C)",
        {
            "A": NECHAD_A,
            "C": NECHAD_C,
            "RED": image.select("red"),
        },
    ).rename("TSS")


def tss_from_reflectance(rho: float) -> float:
    """Client-side TSS (mg/L) for a single red reflectance value."""
    if rho >= NECHAD_C:
        raise ValueError(f"Reflectance {rho} is outside the model range (< {NECHAD_C})")
    return NECHAD_A * rho / (1 - rho / NECHAD_C)


INDEX_FUNCTIONS: dict[str, Callable[[ee.Image], ee.Image]] = {
    "NDWI": ndwi,
    "MNDWI": mndwi,
    "NDTI": ndti,
    "AWEI_NSH": awei_nsh,
    "AWEI_SH": awei_sh,
    "TSS": tss,
}


def compute_index(image: ee.Image, name: str) -> ee.Image:
    """Compute an index by name (case-insensitive)."""
    try:
        func = INDEX_FUNCTIONS[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown index {name!r}; expected one of {', '.join(INDEX_FUNCTIONS)}") from None
    return func(image)


def add_indices(image: ee.Image, names: list[str]) -> ee.Image:
    """Add index bands to an image."""
    for name in names:
        image = image.addBands(compute_index(image, name))
    return image
