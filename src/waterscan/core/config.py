from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env file is in the repository root (parent of src/)
# Only use if it exists (CI uses environment variables directly)
# Path: core/config.py -> waterscan -> src -> repo root -> .env
_ENV_FILE = Path(__file__).parent.parent.parent.parent / ".env"
_ENV_FILE = _ENV_FILE if _ENV_FILE.exists() else None

KNOWN_SENSORS = ("sentinel2", "landsat8", "landsat9")


def _find_project_root() -> Path:
    """Find the project root by looking for .git or pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / ".git").exists() or (parent / "pyproject.toml").exists():
            return parent
    return Path.cwd()


@lru_cache
def get_cache_dir() -> Path:
    """Get the cache directory (.cache/ in the project root)."""
    cache_dir = _find_project_root() / ".cache"
    cache_dir.mkdir(exist_ok=True)
    return cache_dir


@lru_cache
def get_output_dir() -> Path:
    """Get the directory for local outputs (maps, charts, downloads)."""
    output_dir = _find_project_root() / "outputs"
    output_dir.mkdir(exist_ok=True)
    return output_dir


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="WATERSCAN_",
        extra="ignore",
    )

    # Google Earth Engine
    gee_project_id: str | None = None  # GEE Cloud Project ID
    gee_service_account_key: str | None = None  # Service account JSON as a string

    # Area of interest (GeoJSON file: Geometry, Feature or FeatureCollection)
    aoi_path: Path | None = None

    # Imagery selection
    sensor: str = "sentinel2"
    max_cloud_cover: float = Field(default=20.0, ge=0, le=100)  # scene-level %
    scale: int | None = None  # metres; None = sensor native resolution

    # Exports
    export_destination: Literal["gcs", "drive"] = "gcs"
    gcs_bucket: str | None = None
    drive_folder: str = "waterscan"
    export_prefix: str = "waterscan"
    export_crs: str = "EPSG:4326"

    # Mask cleanup (pixels at working scale, 0 disables)
    min_waterbody_pixels: int = Field(default=50, ge=0)
    max_island_pixels: int = Field(default=50, ge=0)

    # Vector simplification tolerance (metres, 0 disables)
    simplify_tolerance_m: float = Field(default=15.0, ge=0)

    # Display units for CLI output ("metric" = km², "imperial" = mi²)
    display_units: Literal["imperial", "metric"] = "metric"

    @field_validator("sensor")
    @classmethod
    def _known_sensor(cls, value: str) -> str:
        value = value.lower()
        if value not in KNOWN_SENSORS:
            raise ValueError(f"Unknown sensor {value!r}; expected one of {', '.join(KNOWN_SENSORS)}")
        return value


settings = Settings()
