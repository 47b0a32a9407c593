"""Tests for batch exports and direct downloads."""

from unittest.mock import MagicMock

import ee
import httpx
import pytest
from tenacity import wait_none

from waterscan.export import download, tasks
from waterscan.export.download import DownloadError, RetryableDownloadError
from waterscan.export.tasks import ExportError, sanitize_description

DOWNLOAD_PATH = "/v1/projects/lake-monitoring/thumbnails/abc123:getPixels"
DOWNLOAD_URL = f"https://earthengine.googleapis.com{DOWNLOAD_PATH}"


@pytest.fixture
def gcs_settings(monkeypatch):
    monkeypatch.setattr(tasks.settings, "export_destination", "gcs")
    monkeypatch.setattr(tasks.settings, "gcs_bucket", "lake-exports")
    monkeypatch.setattr(tasks.settings, "export_prefix", "waterscan")


class TestSanitizeDescription:
    def test_keeps_allowed_characters(self):
        assert sanitize_description("lake_NDWI_2024-06-01") == "lake_NDWI_2024-06-01"

    def test_replaces_spaces_and_slashes(self):
        assert sanitize_description("Lake Victoria / NDWI") == "Lake_Victoria_NDWI"

    def test_truncates_to_limit(self):
        assert len(sanitize_description("x" * 250)) == tasks.MAX_DESCRIPTION_LENGTH

    def test_rejects_unusable_text(self):
        with pytest.raises(ExportError):
            sanitize_description("///")


class TestExportImage:
    def test_cloud_storage(self, mock_ee, aoi, gcs_settings):
        image = MagicMock()

        result = tasks.export_image(image, "lake mask", aoi, scale=10)

        call = mock_ee.batch.Export.image.toCloudStorage.call_args.kwargs
        assert call["bucket"] == "lake-exports"
        assert call["fileNamePrefix"] == "waterscan/lake_mask"
        assert call["scale"] == 10
        assert call["fileFormat"] == "GeoTIFF"
        mock_ee.batch.Export.image.toCloudStorage.return_value.start.assert_called_once()
        assert result.location == "gs://lake-exports/waterscan/lake_mask.tif"
        assert result.kind == "image"

    def test_drive(self, mock_ee, aoi, gcs_settings, monkeypatch):
        monkeypatch.setattr(tasks.settings, "drive_folder", "exports")

        result = tasks.export_image(MagicMock(), "lake_mask", aoi, scale=10, destination="drive")

        call = mock_ee.batch.Export.image.toDrive.call_args.kwargs
        assert call["folder"] == "exports"
        assert result.destination == "drive"
        assert result.location == "Drive:exports/lake_mask.tif"

    def test_missing_bucket(self, mock_ee, aoi, monkeypatch):
        monkeypatch.setattr(tasks.settings, "gcs_bucket", None)
        with pytest.raises(ExportError, match="No Cloud Storage bucket"):
            tasks.export_image(MagicMock(), "lake_mask", aoi, scale=10, destination="gcs")
        mock_ee.batch.Export.image.toCloudStorage.assert_not_called()

    def test_not_started_when_requested(self, mock_ee, aoi, gcs_settings):
        tasks.export_image(MagicMock(), "lake_mask", aoi, scale=10, start=False)
        mock_ee.batch.Export.image.toCloudStorage.return_value.start.assert_not_called()


class TestExportVectors:
    def test_geojson_to_cloud_storage(self, mock_ee, gcs_settings):
        result = tasks.export_vectors(MagicMock(), "shoreline")

        call = mock_ee.batch.Export.table.toCloudStorage.call_args.kwargs
        assert call["fileFormat"] == "GeoJSON"
        assert result.location == "gs://lake-exports/waterscan/shoreline.geojson"

    def test_shapefile_extension(self, mock_ee, gcs_settings):
        result = tasks.export_vectors(MagicMock(), "shoreline", file_format="SHP")
        assert result.location.endswith(".zip")

    def test_unsupported_format(self, mock_ee, gcs_settings):
        with pytest.raises(ExportError, match="Unsupported vector format"):
            tasks.export_vectors(MagicMock(), "shoreline", file_format="GPKG")


class TestWaitForTask:
    def _task(self, *states):
        task = MagicMock()
        task.status.side_effect = [{"state": s, "description": "lake_mask"} for s in states]
        return task

    def test_returns_completed_status(self):
        task = self._task("READY", "RUNNING", "COMPLETED")
        status = tasks.wait_for_task(task, timeout=60, poll_interval=0)
        assert status["state"] == "COMPLETED"
        assert task.status.call_count == 3

    def test_failed_task_raises(self):
        task = MagicMock()
        task.status.return_value = {"state": "FAILED", "description": "lake_mask", "error_message": "Too many pixels"}
        with pytest.raises(ExportError, match="Too many pixels"):
            tasks.wait_for_task(task, timeout=60, poll_interval=0)

    def test_cancelled_task_raises(self):
        task = self._task("RUNNING", "CANCELLED")
        with pytest.raises(ExportError, match="CANCELLED"):
            tasks.wait_for_task(task, timeout=60, poll_interval=0)

    def test_timeout_raises(self):
        task = MagicMock()
        task.status.return_value = {"state": "RUNNING"}
        with pytest.raises(ExportError, match="did not finish"):
            tasks.wait_for_task(task, timeout=0, poll_interval=0)


class TestListTasks:
    def test_limits_results(self, mock_ee):
        listed = [MagicMock() for _ in range(5)]
        for i, task in enumerate(listed):
            task.status.return_value = {"state": "COMPLETED", "description": f"task_{i}"}
        mock_ee.batch.Task.list.return_value = listed

        statuses = tasks.list_tasks(limit=3)

        assert [s["description"] for s in statuses] == ["task_0", "task_1", "task_2"]


class TestDownload:
    """Tests for direct GeoTIFF downloads."""

    async def test_writes_file(self, mock_download, tmp_path):
        mock_download.get(DOWNLOAD_PATH).mock(return_value=httpx.Response(200, content=b"II*\x00tiff-bytes"))

        path = await download.fetch_file_with_retry(DOWNLOAD_URL, tmp_path / "mask.tif")

        assert path.read_bytes() == b"II*\x00tiff-bytes"
        assert not (tmp_path / "mask.tif.part").exists()

    async def test_interrupted_transfer_leaves_no_file(self, mock_download, tmp_path):
        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"II*\x00partial"
                raise httpx.ReadError("Connection reset by peer")

        mock_download.get(DOWNLOAD_PATH).mock(return_value=httpx.Response(200, stream=BrokenStream()))

        with pytest.raises(httpx.ReadError):
            await download.fetch_file(DOWNLOAD_URL, tmp_path / "mask.tif")

        assert list(tmp_path.iterdir()) == []

    async def test_client_error_not_retried(self, mock_download, tmp_path):
        route = mock_download.get(DOWNLOAD_PATH).mock(return_value=httpx.Response(400))

        with pytest.raises(DownloadError, match="HTTP 400"):
            await download.fetch_file_with_retry.retry_with(wait=wait_none())(DOWNLOAD_URL, tmp_path / "mask.tif")
        assert route.call_count == 1

    async def test_server_error_retried(self, mock_download, tmp_path):
        route = mock_download.get(DOWNLOAD_PATH).mock(
            side_effect=[httpx.Response(503), httpx.Response(200, content=b"tiff")]
        )

        path = await download.fetch_file_with_retry.retry_with(wait=wait_none())(DOWNLOAD_URL, tmp_path / "mask.tif")

        assert path.read_bytes() == b"tiff"
        assert route.call_count == 2

    async def test_server_error_gives_up(self, mock_download, tmp_path):
        mock_download.get(DOWNLOAD_PATH).mock(return_value=httpx.Response(500))

        with pytest.raises(RetryableDownloadError):
            await download.fetch_file_with_retry.retry_with(wait=wait_none())(DOWNLOAD_URL, tmp_path / "mask.tif")

    def test_download_url_refused(self, mock_ee, aoi, monkeypatch):
        monkeypatch.setattr(download, "ee", mock_ee)
        image = MagicMock()
        image.getDownloadURL.side_effect = ee.EEException("Total request size must be less than or equal to 50331648 bytes.")

        with pytest.raises(DownloadError, match="batch export"):
            download.download_url(image, aoi, scale=10)

    async def test_download_image_uses_output_dir(self, mock_download, mock_ee, aoi, tmp_path):
        mock_download.get(DOWNLOAD_PATH).mock(return_value=httpx.Response(200, content=b"tiff"))
        image = MagicMock()
        image.getDownloadURL.return_value = DOWNLOAD_URL

        path = await download.download_image(image, aoi, 10, "lake.tif", output_dir=tmp_path)

        assert path == tmp_path / "lake.tif"
        params = image.getDownloadURL.call_args.args[0]
        assert params["format"] == "GEO_TIFF"
        assert params["scale"] == 10
