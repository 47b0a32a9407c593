"""Shared test fixtures."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import ee
import pytest
import respx

# Add src/ to path so tests can import waterscan
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from waterscan.core.aoi import AOI  # noqa: E402

# Modules that reference the ee package at call time
EE_MODULES = [
    "waterscan.core.aoi",
    "waterscan.core.earthengine",
    "waterscan.imagery.collections",
    "waterscan.water.threshold",
    "waterscan.water.mask",
    "waterscan.water.boundary",
    "waterscan.quality.turbidity",
    "waterscan.export.tasks",
]


@pytest.fixture
def mock_ee(monkeypatch):
    """Replace the Earth Engine package with a MagicMock in every module.

    EEException stays the real class so except clauses still match.
    """
    fake = MagicMock(name="ee")
    fake.EEException = ee.EEException
    for module in EE_MODULES:
        monkeypatch.setattr(f"{module}.ee", fake)
    return fake


@pytest.fixture
def mock_download():
    """Mock Earth Engine download URL responses."""
    with respx.mock(base_url="https://earthengine.googleapis.com") as mock:
        yield mock


@pytest.fixture
def aoi():
    """Small rectangular AOI around a lake shore."""
    return AOI.from_bbox(30.0, -1.2, 30.4, -0.8, name="test_lake")


@pytest.fixture
def sample_feature_collection():
    """GeoJSON FeatureCollection with two polygons and a point."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": "north"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[0, 1], [1, 1], [1, 2], [0, 2], [0, 1]]],
                },
            },
            {
                "type": "Feature",
                "properties": {"name": "south"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[0, -2], [1, -2], [1, -1], [0, -1], [0, -2]]],
                },
            },
            {
                "type": "Feature",
                "properties": {"name": "gauge"},
                "geometry": {"type": "Point", "coordinates": [0.5, 0.0]},
            },
        ],
    }


@pytest.fixture
def sample_ndwi_histogram():
    """Bimodal NDWI histogram as returned by ee.Reducer.histogram()."""
    import numpy as np

    means = np.linspace(-0.6, 0.6, 25)
    land = 1000 * np.exp(-(((means + 0.3) / 0.08) ** 2))
    water = 400 * np.exp(-(((means - 0.35) / 0.06) ** 2))
    counts = np.round(land + water)
    return {
        "histogram": counts.tolist(),
        "bucketMeans": means.tolist(),
        "bucketMin": -0.625,
        "bucketWidth": 0.05,
    }


@pytest.fixture
def sample_stats_response():
    """reduceRegion result for NDTI/TSS layers."""
    return {
        "NDTI_mean": 0.08,
        "NDTI_min": -0.12,
        "NDTI_max": 0.31,
        "NDTI_stdDev": 0.05,
        "NDTI_p90": 0.15,
        "NDTI_count": 5321,
        "TSS_mean": 24.6,
        "TSS_min": 2.1,
        "TSS_max": 88.0,
        "TSS_stdDev": 9.3,
        "TSS_p90": 38.2,
        "TSS_count": 5321,
    }
