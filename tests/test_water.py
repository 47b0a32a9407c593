"""Tests for thresholding, mask cleanup and vectorization."""

from unittest.mock import MagicMock

import pytest

from waterscan.water import boundary, mask, threshold
from waterscan.water.threshold import otsu_from_histogram


class TestOtsuFromHistogram:
    """Tests for the client-side Otsu threshold."""

    def test_bimodal_ndwi_splits_between_modes(self, sample_ndwi_histogram):
        """Threshold falls between the land (-0.3) and water (0.35) peaks."""
        t = otsu_from_histogram(sample_ndwi_histogram["histogram"], sample_ndwi_histogram["bucketMeans"])
        assert -0.2 < t < 0.3

    def test_two_separated_groups(self):
        t = otsu_from_histogram([10, 10, 0, 0, 10, 10], [0, 1, 2, 3, 4, 5])
        assert 1 <= t < 4

    def test_single_populated_bucket(self):
        assert otsu_from_histogram([0, 25, 0], [-0.5, 0.1, 0.5]) == pytest.approx(0.1)

    def test_empty_histogram(self):
        with pytest.raises(ValueError, match="non-empty"):
            otsu_from_histogram([], [])

    def test_mismatched_lengths(self):
        with pytest.raises(ValueError, match="same length"):
            otsu_from_histogram([1, 2, 3], [0.1, 0.2])

    def test_no_pixels(self):
        with pytest.raises(ValueError, match="no pixels"):
            otsu_from_histogram([0, 0, 0], [0.1, 0.2, 0.3])


class TestOtsuThreshold:
    """Tests for the Earth Engine histogram round trip."""

    def test_uses_histogram_from_earth_engine(self, mock_ee, aoi, monkeypatch, sample_ndwi_histogram):
        monkeypatch.setattr(threshold, "get_info", lambda obj: {"NDWI": sample_ndwi_histogram})
        image = MagicMock()

        t = threshold.otsu_threshold(image, "NDWI", aoi, scale=10)

        assert -0.2 < t < 0.3
        image.select.assert_called_once_with("NDWI")
        mock_ee.Reducer.histogram.assert_called_once_with(maxBuckets=threshold.DEFAULT_BUCKETS)
        kwargs = image.select.return_value.reduceRegion.call_args.kwargs
        assert kwargs["scale"] == 10

    def test_no_valid_pixels(self, mock_ee, aoi, monkeypatch):
        monkeypatch.setattr(threshold, "get_info", lambda obj: {"NDWI": None})
        with pytest.raises(ValueError, match="No valid NDWI pixels"):
            threshold.otsu_threshold(MagicMock(), "NDWI", aoi, scale=10)


class TestEeOtsuThreshold:
    """Tests for the server-side Otsu expression."""

    def test_picks_split_with_highest_variance(self, mock_ee):
        histogram = {"histogram": [4, 1, 6], "bucketMeans": [-0.4, 0.0, 0.4]}

        result = threshold.ee_otsu_threshold(histogram)

        mock_ee.Dictionary.assert_called_once_with(histogram)
        means = mock_ee.Array.return_value
        size = means.length.return_value.get.return_value
        mock_ee.List.sequence.assert_called_once_with(1, size)

        splits = mock_ee.List.sequence.return_value
        variances = splits.map.return_value
        means.sort.assert_called_once_with(variances)
        means.sort.return_value.get.assert_called_once_with([-1])
        mock_ee.Number.assert_called_once_with(means.sort.return_value.get.return_value)
        assert result is mock_ee.Number.return_value

    def test_between_class_variance_slices_lower_class(self, mock_ee):
        threshold.ee_otsu_threshold({"histogram": [1, 1], "bucketMeans": [0.0, 1.0]})

        between_class_variance = mock_ee.List.sequence.return_value.map.call_args.args[0]
        between_class_variance(2)

        arrays = mock_ee.Array.return_value
        arrays.slice.assert_any_call(0, 0, 2)


class TestWaterMask:
    def test_threshold_is_strictly_greater(self):
        index_image = MagicMock()
        mask.water_mask(index_image, 0.12)
        index_image.gt.assert_called_once_with(0.12)
        index_image.gt.return_value.rename.assert_called_once_with("water")

    def test_selects_band(self):
        index_image = MagicMock()
        mask.water_mask(index_image, 0.0, band="MNDWI")
        index_image.select.assert_called_once_with("MNDWI")


class TestCleanup:
    """Tests for connected-component filtering."""

    def test_remove_small_waterbodies_disabled(self):
        water = MagicMock()
        assert mask.remove_small_waterbodies(water, 0) is water
        water.selfMask.assert_not_called()

    def test_remove_small_waterbodies_sets_land(self):
        water = MagicMock()
        mask.remove_small_waterbodies(water, 40)

        count = water.selfMask.return_value.connectedPixelCount
        count.assert_called_once_with(maxSize=40, eightConnected=True)
        count.return_value.lt.assert_called_once_with(40)
        small = count.return_value.lt.return_value.unmask.return_value
        water.where.assert_called_once_with(small, 0)

    def test_fill_islands_sets_water(self):
        water = MagicMock()
        mask.fill_islands(water, 25)

        land = water.Not.return_value.selfMask.return_value
        land.connectedPixelCount.assert_called_once_with(maxSize=25, eightConnected=True)
        small = land.connectedPixelCount.return_value.lt.return_value.unmask.return_value
        water.where.assert_called_once_with(small, 1)

    def test_component_size_clamped_to_earth_engine_limit(self):
        water = MagicMock()
        mask.remove_small_waterbodies(water, 5000)
        kwargs = water.selfMask.return_value.connectedPixelCount.call_args.kwargs
        assert kwargs["maxSize"] == mask.MAX_CONNECTED_PIXELS

    def test_clean_mask_runs_both_steps(self):
        water = MagicMock()
        water.where.return_value.rename.return_value = water

        mask.clean_mask(water, 10, 10)

        assert water.where.call_count == 2

    def test_clean_mask_fully_disabled(self):
        water = MagicMock()
        assert mask.clean_mask(water, 0, 0) is water


class TestWaterArea:
    def test_sums_pixel_area(self, mock_ee, aoi, monkeypatch):
        monkeypatch.setattr(mask, "get_info", lambda obj: {"area": 1_250_000.0})
        assert mask.water_area_m2(MagicMock(), aoi, scale=10) == 1_250_000.0
        mock_ee.Reducer.sum.assert_called_once_with()

    def test_no_water_is_zero(self, mock_ee, aoi, monkeypatch):
        monkeypatch.setattr(mask, "get_info", lambda obj: {"area": None})
        assert mask.water_area_m2(MagicMock(), aoi, scale=10) == 0.0


class TestVectorize:
    def test_reduce_to_vectors_parameters(self, mock_ee, aoi):
        water = MagicMock()
        boundary.vectorize_mask(water, aoi, scale=30, simplify_m=15)

        kwargs = water.selfMask.return_value.reduceToVectors.call_args.kwargs
        assert kwargs["scale"] == 30
        assert kwargs["geometryType"] == "polygon"
        assert kwargs["eightConnected"] is True
        assert kwargs["labelProperty"] == "water"

    def test_min_area_filter_disabled(self):
        vectors = MagicMock()
        assert boundary.min_area_filter(vectors, 0) is vectors

    def test_min_area_filter(self, mock_ee):
        vectors = MagicMock()
        boundary.min_area_filter(vectors, 5000)
        mock_ee.Filter.gte.assert_called_once_with("area_m2", 5000)
        vectors.filter.assert_called_once_with(mock_ee.Filter.gte.return_value)

    def test_shoreline_maps_features(self, mock_ee):
        vectors = MagicMock()
        result = boundary.shoreline(vectors)
        vectors.map.assert_called_once()
        assert result is vectors.map.return_value
