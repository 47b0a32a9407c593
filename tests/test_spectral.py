"""Tests for spectral index formulas."""

from unittest.mock import MagicMock

import pytest

from waterscan.indices import spectral


@pytest.fixture
def image():
    return MagicMock(name="image")


class TestNormalizedDifferences:
    def test_ndwi_uses_green_and_nir(self, image):
        spectral.ndwi(image)
        image.normalizedDifference.assert_called_once_with(["green", "nir"])
        image.normalizedDifference.return_value.rename.assert_called_once_with("NDWI")

    def test_mndwi_uses_green_and_swir1(self, image):
        spectral.mndwi(image)
        image.normalizedDifference.assert_called_once_with(["green", "swir1"])

    def test_ndti_uses_red_and_green(self, image):
        """NDTI increases with red reflectance relative to green."""
        spectral.ndti(image)
        image.normalizedDifference.assert_called_once_with(["red", "green"])
        image.normalizedDifference.return_value.rename.assert_called_once_with("NDTI")


class TestExpressions:
    def test_awei_nsh_expression(self, image):
        spectral.awei_nsh(image)
        expression, bands = image.expression.call_args.args
        assert expression == "4 * (GREEN - SWIR1) - (0.25 * NIR + 2.75 * SWIR2)"
        assert set(bands) == {"GREEN", "SWIR1", "NIR", "SWIR2"}
        image.expression.return_value.rename.assert_called_once_with("AWEI_NSH")

    def test_awei_sh_expression(self, image):
        spectral.awei_sh(image)
        expression, bands = image.expression.call_args.args
        assert expression == "BLUE + 2.5 * GREEN - 1.5 * (NIR + SWIR1) - 0.25 * SWIR2"
        assert set(bands) == {"BLUE", "GREEN", "NIR", "SWIR1", "SWIR2"}

    def test_tss_uses_nechad_coefficients(self, image):
        spectral.tss(image)
        expression, bands = image.expression.call_args.args
        assert expression == "A * RED / (1 - RED / C)"
        assert bands["A"] == spectral.NECHAD_A
        assert bands["C"] == spectral.NECHAD_C
        image.select.assert_called_once_with("red")


class TestTssFromReflectance:
    def test_zero_reflectance(self):
        assert spectral.tss_from_reflectance(0.0) == 0.0

    def test_typical_turbid_water(self):
        assert spectral.tss_from_reflectance(0.05) == pytest.approx(25.04, abs=0.01)

    def test_increases_with_reflectance(self):
        assert spectral.tss_from_reflectance(0.08) > spectral.tss_from_reflectance(0.04)

    def test_saturation_rejected(self):
        with pytest.raises(ValueError, match="outside the model range"):
            spectral.tss_from_reflectance(spectral.NECHAD_C)


class TestDispatch:
    def test_compute_index_case_insensitive(self, image):
        spectral.compute_index(image, "ndwi")
        image.normalizedDifference.assert_called_once_with(["green", "nir"])

    def test_unknown_index(self, image):
        with pytest.raises(ValueError, match="Unknown index"):
            spectral.compute_index(image, "NDVI")

    def test_add_indices_adds_each_band(self, image):
        image.addBands.return_value = image
        spectral.add_indices(image, ["NDWI", "NDTI"])
        assert image.addBands.call_count == 2

    def test_every_water_and_turbidity_index_is_registered(self):
        for name in spectral.WATER_INDICES + spectral.TURBIDITY_INDICES:
            assert name in spectral.INDEX_FUNCTIONS
