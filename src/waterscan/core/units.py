"""Unit conversion utilities using pint.

All internal data is stored in SI units:
- Area: square metres (m²), as returned by ee.Image.pixelArea()
- Length: metres (m)
- Concentration: milligrams per litre (mg/L)

Display units are controlled by settings.display_units:
- "metric": areas in km², small areas in ha
- "imperial": areas in mi², small areas in acres
"""

import pint

from waterscan.core.config import settings

# Create a unit registry (lazily initialized)
_ureg: pint.UnitRegistry | None = None

# Below this area (m²) hectares/acres read better than km²/mi²
SMALL_AREA_M2 = 1_000_000


def get_ureg() -> pint.UnitRegistry:
    """Get the pint unit registry (lazily initialized)."""
    global _ureg
    if _ureg is None:
        _ureg = pint.UnitRegistry()
    return _ureg


# =============================================================================
# Area Conversions
# =============================================================================


def m2_to_hectares(m2: float) -> float:
    """Convert square metres to hectares."""
    ureg = get_ureg()
    return (m2 * ureg.meter**2).to(ureg.hectare).magnitude


def m2_to_km2(m2: float) -> float:
    """Convert square metres to square kilometres."""
    ureg = get_ureg()
    return (m2 * ureg.meter**2).to(ureg.kilometer**2).magnitude


def area_m2_to_display(m2: float) -> tuple[float, str]:
    """Convert square metres to display units.

    Args:
        m2: Area in square metres

    Returns:
        Tuple of (value, unit_symbol) in display units
    """
    ureg = get_ureg()
    area = m2 * ureg.meter**2
    small = m2 < SMALL_AREA_M2

    if settings.display_units == "imperial":
        if small:
            return (area.to(ureg.acre).magnitude, "ac")
        return (area.to(ureg.mile**2).magnitude, "mi²")
    if small:
        return (area.to(ureg.hectare).magnitude, "ha")
    return (area.to(ureg.kilometer**2).magnitude, "km²")


def format_area(m2: float | None, decimals: int = 2) -> str:
    """Format an area for display.

    Args:
        m2: Area in square metres (None for missing data)
        decimals: Number of decimal places

    Returns:
        Formatted string like "12.35 km²" or "4.10 ha"
    """
    if m2 is None:
        return "—"
    value, unit = area_m2_to_display(m2)
    return f"{value:,.{decimals}f} {unit}"


def is_imperial() -> bool:
    """Check if display units are imperial."""
    return settings.display_units == "imperial"
