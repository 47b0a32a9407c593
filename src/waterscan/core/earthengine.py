"""Earth Engine session setup and client-side fetches with retry."""

import json
import logging
import os
from pathlib import Path
from typing import Any

import ee
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from waterscan.core.config import settings

logger = logging.getLogger(__name__)

# =============================================================================
# Retry Configuration
# =============================================================================

MAX_RETRIES = 4
MIN_WAIT_SECONDS = 2
MAX_WAIT_SECONDS = 30

# Substrings of EEException messages that indicate a transient failure
TRANSIENT_MESSAGES = (
    "Too many concurrent",
    "timed out",
    "Internal error",
    "Service Unavailable",
    "503",
    "429",
)

# __file__ is src/waterscan/core/earthengine.py -> repository root
_SERVICE_ACCOUNT_FILE = Path(__file__).parent.parent.parent.parent / "service-account.json"


# =============================================================================
# Exceptions
# =============================================================================


class EarthEngineError(Exception):
    """Non-retryable error from Earth Engine."""

    pass


class RetryableError(Exception):
    """Transient Earth Engine error that should be retried (quota, timeouts, 5xx)."""

    pass


# =============================================================================
# Session
# =============================================================================


def _load_service_account_key() -> str | None:
    """Find service account JSON: env var, then settings, then local file."""
    key_json = os.environ.get("GEE_SERVICE_ACCOUNT_KEY") or settings.gee_service_account_key
    if not key_json and _SERVICE_ACCOUNT_FILE.exists():
        key_json = _SERVICE_ACCOUNT_FILE.read_text()
    return key_json


def initialize(project: str | None = None) -> None:
    """
    Initialize Earth Engine.

    Looks for credentials in order:
    1. GEE_SERVICE_ACCOUNT_KEY env var or settings (JSON string, for CI)
    2. service-account.json file in the repository root
    3. Persistent user credentials from `earthengine authenticate`

    Project ID is determined by:
    1. Explicit project parameter
    2. settings.gee_project_id
    3. project_id from service account JSON

    Args:
        project: GEE project ID (optional if configured elsewhere).

    Raises:
        EarthEngineError: If no project can be determined or the key is malformed.
    """
    key_json = _load_service_account_key()
    effective_project = project or settings.gee_project_id

    if key_json:
        try:
            key_data = json.loads(key_json)
        except json.JSONDecodeError as e:
            raise EarthEngineError(f"Service account key is not valid JSON: {e}") from e

        effective_project = effective_project or key_data.get("project_id")
        if not effective_project:
            raise EarthEngineError(
                "No GEE project ID found. Either:\n"
                "  1. Set WATERSCAN_GEE_PROJECT_ID in .env, or\n"
                "  2. Ensure the service account key contains project_id"
            )

        credentials = ee.ServiceAccountCredentials(
            email=key_data["client_email"],
            key_data=key_json,
        )
        logger.debug("Initializing Earth Engine with service account %s", key_data["client_email"])
        ee.Initialize(credentials=credentials, project=effective_project)
        return

    if not effective_project:
        raise EarthEngineError(
            "No GEE project ID found. Either:\n"
            "  1. Set WATERSCAN_GEE_PROJECT_ID in .env, or\n"
            "  2. Set GEE_SERVICE_ACCOUNT_KEY to a service account key"
        )

    logger.debug("Initializing Earth Engine with user credentials for project %s", effective_project)
    ee.Initialize(project=effective_project)


# =============================================================================
# Client-side fetches
# =============================================================================


def is_transient(error: Exception) -> bool:
    """Whether an Earth Engine error message looks like a transient failure."""
    message = str(error)
    return any(marker in message for marker in TRANSIENT_MESSAGES)


@retry(
    retry=retry_if_exception_type(RetryableError),
    stop=stop_after_attempt(MAX_RETRIES),
    wait=wait_exponential_jitter(MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS, jitter=2),
    reraise=True,
)
def get_info(obj: Any) -> Any:
    """Evaluate a computed Earth Engine object client-side.

    Retries on quota errors, timeouts and server errors. After MAX_RETRIES
    failures the last RetryableError is raised.

    Raises:
        EarthEngineError: For non-retryable Earth Engine errors
        RetryableError: If all retries fail
    """
    try:
        return obj.getInfo()
    except ee.EEException as e:
        if is_transient(e):
            logger.warning("Transient Earth Engine error, retrying: %s", e)
            raise RetryableError(str(e)) from e
        raise EarthEngineError(str(e)) from e
