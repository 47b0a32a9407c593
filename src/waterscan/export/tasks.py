"""
Batch exports to Cloud Storage or Google Drive.

Exports run as Earth Engine batch tasks. They are started here and can be
polled with wait_for_task(); nothing is downloaded locally.
"""

import logging
import re
from dataclasses import dataclass
from typing import Literal

import ee
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from waterscan.core.aoi import AOI
from waterscan.core.config import settings

logger = logging.getLogger(__name__)

Destination = Literal["gcs", "drive"]

TERMINAL_STATES = ("COMPLETED", "FAILED", "CANCELLED")
VECTOR_FORMATS = ("GeoJSON", "SHP", "KML", "KMZ", "CSV")

MAX_DESCRIPTION_LENGTH = 100
DEFAULT_TIMEOUT_SECONDS = 60 * 60
DEFAULT_POLL_SECONDS = 15
MAX_PIXELS = int(1e13)


class ExportError(Exception):
    """Raised when an export cannot be configured, fails, or times out."""

    pass


@dataclass
class ExportTask:
    """A started export and where its output will land."""

    task: ee.batch.Task
    description: str
    kind: Literal["image", "table"]
    destination: Destination
    location: str

    @property
    def id(self) -> str | None:
        return getattr(self.task, "id", None)


def sanitize_description(text: str) -> str:
    """
    Make a string valid as an Earth Engine task description.

    Allowed characters are letters, digits and . , : ; _ - (max 100 chars).
    Anything else becomes an underscore.
    """
    cleaned = re.sub(r"[^A-Za-z0-9.,:;_\-]", "_", text.strip())
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    if not cleaned:
        raise ExportError(f"Cannot build a task description from {text!r}")
    return cleaned[:MAX_DESCRIPTION_LENGTH]


def _resolve_destination(destination: Destination | None, bucket: str | None) -> tuple[Destination, str | None]:
    destination = destination or settings.export_destination
    if destination == "gcs":
        bucket = bucket or settings.gcs_bucket
        if not bucket:
            raise ExportError(
                "No Cloud Storage bucket configured. Either:\n"
                "  1. Set WATERSCAN_GCS_BUCKET in .env, or\n"
                "  2. Export to Drive with --destination drive"
            )
        return destination, bucket
    if destination == "drive":
        return destination, None
    raise ExportError(f"Unknown export destination: {destination}")


def _file_prefix(description: str) -> str:
    prefix = settings.export_prefix.strip("/")
    return f"{prefix}/{description}" if prefix else description


def export_image(
    image: ee.Image,
    description: str,
    aoi: AOI,
    scale: int,
    destination: Destination | None = None,
    bucket: str | None = None,
    crs: str | None = None,
    start: bool = True,
) -> ExportTask:
    """
    Export an image as Cloud-Optimized GeoTIFF.

    Args:
        image: Image to export
        description: Task description (sanitized)
        aoi: Export region
        scale: Pixel size in metres
        destination: 'gcs' or 'drive' (default: settings.export_destination)
        bucket: Cloud Storage bucket (default: settings.gcs_bucket)
        crs: Output CRS (default: settings.export_crs)
        start: Start the task immediately

    Raises:
        ExportError: If the destination is not configured
    """
    description = sanitize_description(description)
    destination, bucket = _resolve_destination(destination, bucket)
    common = {
        "image": image,
        "description": description,
        "region": aoi.to_ee(),
        "scale": scale,
        "crs": crs or settings.export_crs,
        "maxPixels": MAX_PIXELS,
        "fileFormat": "GeoTIFF",
        "formatOptions": {"cloudOptimized": True},
    }

    if destination == "gcs":
        prefix = _file_prefix(description)
        task = ee.batch.Export.image.toCloudStorage(bucket=bucket, fileNamePrefix=prefix, **common)
        location = f"gs://{bucket}/{prefix}.tif"
    else:
        task = ee.batch.Export.image.toDrive(
            folder=settings.drive_folder, fileNamePrefix=description, **common
        )
        location = f"Drive:{settings.drive_folder}/{description}.tif"

    if start:
        task.start()
        logger.info("Started image export %s -> %s", description, location)
    return ExportTask(task, description, "image", destination, location)


def export_vectors(
    collection: ee.FeatureCollection,
    description: str,
    destination: Destination | None = None,
    bucket: str | None = None,
    file_format: str = "GeoJSON",
    start: bool = True,
) -> ExportTask:
    """
    Export a FeatureCollection as a table.

    Raises:
        ExportError: If the destination is not configured or the format is unsupported
    """
    if file_format not in VECTOR_FORMATS:
        raise ExportError(f"Unsupported vector format {file_format!r}; expected one of {', '.join(VECTOR_FORMATS)}")
    description = sanitize_description(description)
    destination, bucket = _resolve_destination(destination, bucket)
    extension = file_format.lower() if file_format != "SHP" else "zip"

    if destination == "gcs":
        prefix = _file_prefix(description)
        task = ee.batch.Export.table.toCloudStorage(
            collection=collection,
            description=description,
            bucket=bucket,
            fileNamePrefix=prefix,
            fileFormat=file_format,
        )
        location = f"gs://{bucket}/{prefix}.{extension}"
    else:
        task = ee.batch.Export.table.toDrive(
            collection=collection,
            description=description,
            folder=settings.drive_folder,
            fileNamePrefix=description,
            fileFormat=file_format,
        )
        location = f"Drive:{settings.drive_folder}/{description}.{extension}"

    if start:
        task.start()
        logger.info("Started table export %s -> %s", description, location)
    return ExportTask(task, description, "table", destination, location)


def task_status(task: ee.batch.Task) -> dict:
    """Current status dict of a task ('state', 'description', 'error_message', ...)."""
    return task.status()


def _is_running(status: dict) -> bool:
    return status.get("state") not in TERMINAL_STATES


def wait_for_task(
    task: ee.batch.Task,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    poll_interval: float = DEFAULT_POLL_SECONDS,
) -> dict:
    """
    Poll a task until it finishes.

    Returns:
        Final status dict of a COMPLETED task

    Raises:
        ExportError: If the task fails, is cancelled, or does not finish within timeout
    """
    poll = retry(
        retry=retry_if_result(_is_running),
        stop=stop_after_delay(timeout),
        wait=wait_fixed(poll_interval),
    )(task_status)

    try:
        status = poll(task)
    except RetryError as e:
        raise ExportError(f"Export did not finish within {timeout:.0f}s") from e

    state = status.get("state")
    if state != "COMPLETED":
        message = status.get("error_message", "no error message")
        raise ExportError(f"Export {status.get('description', '')} {state}: {message}")
    return status


def list_tasks(limit: int = 20) -> list[dict]:
    """Status dicts of the most recent tasks for the current account."""
    return [task.status() for task in ee.batch.Task.list()[:limit]]
