"""
Direct download of small rasters.

Earth Engine serves images up to ~50 MB through getDownloadURL(); larger
areas must go through the batch exports in export.tasks.
"""

import logging
from pathlib import Path

import ee
import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from waterscan.core.aoi import AOI
from waterscan.core.config import get_output_dir, settings

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 10
TIMEOUT_SECONDS = 300


class RetryableDownloadError(Exception):
    """Transient download failure (timeouts, connection errors, 5xx)."""

    pass


class DownloadError(Exception):
    """Non-retryable download failure."""

    pass


def download_url(image: ee.Image, aoi: AOI, scale: int, crs: str | None = None) -> str:
    """Request a GeoTIFF download URL for an image clipped to the AOI.

    Raises:
        DownloadError: If Earth Engine refuses the request (usually too large)
    """
    try:
        return image.getDownloadURL(
            {
                "region": aoi.to_ee(),
                "scale": scale,
                "crs": crs or settings.export_crs,
                "format": "GEO_TIFF",
            }
        )
    except ee.EEException as e:
        raise DownloadError(f"Download refused: {e}. Use a batch export for large areas.") from e


async def fetch_file(url: str, path: Path) -> Path:
    """Stream a URL to a file. Single attempt, no retry.

    Data goes to a .part file that is renamed once complete, so a failed
    transfer never leaves a truncated file at path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".part")
    try:
        async with httpx.AsyncClient(timeout=TIMEOUT_SECONDS, follow_redirects=True) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(partial, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
    partial.replace(path)
    return path


@retry(
    retry=retry_if_exception_type(RetryableDownloadError),
    stop=stop_after_attempt(MAX_RETRIES),
    wait=wait_exponential_jitter(MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS, jitter=2),
    reraise=True,
)
async def fetch_file_with_retry(url: str, path: Path) -> Path:
    """Stream a URL to a file, retrying transient failures.

    Raises:
        DownloadError: On 4xx responses (e.g. request too large)
        RetryableDownloadError: If all retries fail
    """
    try:
        return await fetch_file(url, path)
    except httpx.TimeoutException as e:
        raise RetryableDownloadError(f"Download timed out: {e}") from e
    except httpx.TransportError as e:
        raise RetryableDownloadError(f"Connection failed: {e}") from e
    except httpx.HTTPStatusError as e:
        if e.response.status_code >= 500:
            raise RetryableDownloadError(f"HTTP {e.response.status_code}") from e
        raise DownloadError(f"HTTP {e.response.status_code} downloading {path.name}") from e


async def download_image(
    image: ee.Image,
    aoi: AOI,
    scale: int,
    filename: str,
    output_dir: Path | None = None,
) -> Path:
    """
    Download an image as GeoTIFF into the output directory.

    Returns:
        Path of the written file
    """
    url = download_url(image, aoi, scale)
    path = (output_dir or get_output_dir()) / filename
    logger.info("Downloading %s", path.name)
    return await fetch_file_with_retry(url, path)
