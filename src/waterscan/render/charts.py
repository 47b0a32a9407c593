"""Time-series charts of water area and turbidity."""

from datetime import date
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from waterscan.core.units import area_m2_to_display  # noqa: E402


def plot_timeseries(records: list[dict], path: str | Path, title: str = "Water extent and turbidity") -> Path:
    """
    Plot water area and mean NDTI over time.

    Records without data (None values) are left as gaps.

    Args:
        records: Time-series records with 'date', 'water_area_m2', 'ndti_mean'
        path: Output PNG path
        title: Figure title

    Returns:
        Path of the written image
    """
    if not records:
        raise ValueError("No time-series records to plot")

    dates = [date.fromisoformat(r["date"]) for r in records]

    # Use the display unit of the largest area so the axis is consistent
    areas_m2 = [r.get("water_area_m2") for r in records]
    largest = max((a for a in areas_m2 if a is not None), default=0.0)
    value, unit = area_m2_to_display(largest)
    factor = value / largest if largest else 1.0
    areas = [a * factor if a is not None else float("nan") for a in areas_m2]

    ndti_values = [r["ndti_mean"] if r.get("ndti_mean") is not None else float("nan") for r in records]

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)
    fig.suptitle(title, fontsize=14, fontweight="bold")

    ax1.plot(dates, areas, marker="o", color="#1f78b4")
    ax1.set_ylabel(f"Water area ({unit})")
    ax1.grid(alpha=0.3)

    ax2.plot(dates, ndti_values, marker="o", color="#b2182b")
    ax2.axhline(0, color="gray", linewidth=0.8, linestyle="--")
    ax2.set_ylabel("Mean NDTI")
    ax2.set_xlabel("Date")
    ax2.grid(alpha=0.3)

    fig.autofmt_xdate()
    fig.tight_layout()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path
