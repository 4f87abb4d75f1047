"""Unit tests for cardprint/color.py."""

import logging

import numpy as np
import pytest
from PIL import Image
from pydantic import ValidationError

import cardprint.color as color
from cardprint.color import (
    COLOR_PRESETS,
    PARAMETER_RANGES,
    apply_color_transformation,
    format_parameter_value,
    get_parameter,
    has_non_default_settings,
    hsl_to_rgb,
    rgb_to_hsl,
    set_parameter,
    transform_pixels,
)
from cardprint.errors import ColorTransformFailure
from cardprint.validation import PARAMETER_LIMITS, ColorParameter, ColorTransformation


def pixel(rgb: tuple[int, int, int], transformation: ColorTransformation) -> tuple[int, ...]:
    """Transform a single pixel."""
    result = transform_pixels(np.array([[rgb]], dtype=np.uint8), transformation)
    return tuple(int(v) for v in result[0, 0])


class TestHSL:
    """Tests for RGB ↔ HSL conversion."""

    def test_pure_red(self) -> None:
        """Test that pure red is hue 0, fully saturated, half lightness."""
        h, s, l = rgb_to_hsl(np.array([1.0, 0.0, 0.0]))
        assert (float(h), float(s), float(l)) == pytest.approx((0.0, 1.0, 0.5))

    def test_grey_has_no_saturation(self) -> None:
        """Test that greys are achromatic."""
        h, s, l = rgb_to_hsl(np.array([0.4, 0.4, 0.4]))
        assert float(s) == 0
        assert float(l) == pytest.approx(0.4)

    def test_roundtrip(self) -> None:
        """Test that RGB→HSL→RGB preserves values."""
        rng = np.random.default_rng(7)
        rgb = rng.random((50, 3))
        assert hsl_to_rgb(*rgb_to_hsl(rgb)) == pytest.approx(rgb, abs=1e-9)


class TestTransformPixels:
    """Tests for the per-pixel colour pipeline."""

    def test_default_is_identity(self) -> None:
        """Test that the default transformation leaves every pixel unchanged."""
        rng = np.random.default_rng(42)
        pixels = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
        result = transform_pixels(pixels, ColorTransformation())
        assert np.array_equal(result, pixels)

    def test_default_is_idempotent(self) -> None:
        """Test that applying the default twice equals applying it once."""
        rng = np.random.default_rng(3)
        pixels = rng.integers(0, 256, size=(16, 16, 3), dtype=np.uint8)
        once = transform_pixels(pixels, ColorTransformation())
        twice = transform_pixels(once, ColorTransformation())
        assert np.array_equal(once, twice)

    def test_brightness_ten_percent(self) -> None:
        """Test that +10 brightness adds about 25.5 to a mid grey."""
        result = pixel((100, 100, 100), ColorTransformation(brightness=10))
        assert len(set(result)) == 1
        assert result[0] in (125, 126)

    def test_hue_half_turn_red_to_cyan(self) -> None:
        """Test that a 180° hue shift turns red into cyan."""
        assert pixel((255, 0, 0), ColorTransformation(hue=180)) == (0, 255, 255)

    def test_full_desaturation_gives_lightness(self) -> None:
        """Test that -100 saturation collapses to the HSL lightness."""
        assert pixel((200, 100, 50), ColorTransformation(saturation=-100)) == (125, 125, 125)

    def test_red_multiplier(self) -> None:
        """Test that the red multiplier scales only the red channel."""
        assert pixel((200, 100, 50), ColorTransformation(red_multiplier=0.5)) == (100, 100, 50)

    def test_contrast_clamps(self) -> None:
        """Test that contrast keeps black and white at the extremes."""
        t = ColorTransformation(contrast=2.0)
        assert pixel((0, 0, 0), t) == (0, 0, 0)
        assert pixel((255, 255, 255), t) == (255, 255, 255)

    def test_shadows_lift_black(self) -> None:
        """Test that +50 shadows lifts black by 30%."""
        result = pixel((0, 0, 0), ColorTransformation(shadows=50))
        assert all(76 <= v <= 77 for v in result)

    def test_output_levels(self) -> None:
        """Test that output levels compress the range."""
        t = ColorTransformation(output_black=20, output_white=235)
        assert pixel((0, 0, 0), t) == (20, 20, 20)
        assert pixel((255, 255, 255), t) == (235, 235, 235)

    def test_input_levels(self) -> None:
        """Test that input levels stretch black and white points to the extremes."""
        t = ColorTransformation(black_point=50, white_point=205)
        assert pixel((50, 50, 50), t) == (0, 0, 0)
        assert pixel((205, 205, 205), t) == (255, 255, 255)

    def test_wrong_shape_raises(self) -> None:
        """Test that non-RGB arrays raise ColorTransformFailure."""
        with pytest.raises(ColorTransformFailure):
            transform_pixels(np.zeros((4, 4, 2), dtype=np.uint8), ColorTransformation())


class TestApplyColorTransformation:
    """Tests for the image-level entry point."""

    def test_alpha_preserved(self, small_image: Image.Image) -> None:
        """Test that alpha is untouched while colour changes."""
        rgba = small_image.convert("RGBA")
        alpha = np.linspace(0, 255, rgba.width * rgba.height).astype(np.uint8).reshape(rgba.height, rgba.width)
        rgba.putalpha(Image.fromarray(alpha))

        result = apply_color_transformation(rgba, ColorTransformation(brightness=20))

        assert result.mode == "RGBA"
        assert result.size == rgba.size
        assert np.array_equal(np.asarray(result)[..., 3], alpha)
        assert not np.array_equal(np.asarray(result)[..., :3], np.asarray(rgba)[..., :3])

    def test_greyscale_converted(self) -> None:
        """Test that non-RGB modes are converted to RGBA."""
        image = Image.new("L", (10, 5), 128)
        result = apply_color_transformation(image, ColorTransformation(brightness=10))
        assert result.mode == "RGBA"
        assert result.size == (10, 5)

    def test_failure_passes_original_through(
        self, small_image: Image.Image, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that failures return the original image and log a warning."""

        def boom(*args: object) -> None:
            raise ColorTransformFailure("boom")

        monkeypatch.setattr(color, "transform_pixels", boom)
        with caplog.at_level(logging.WARNING, logger="cardprint.color"):
            result = apply_color_transformation(small_image, ColorTransformation(brightness=5))

        assert result is small_image
        assert "Color transformation failed" in caplog.text

    def test_failure_raises_when_strict(self, small_image: Image.Image, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that strict mode re-raises failures."""

        def boom(*args: object) -> None:
            raise ColorTransformFailure("boom")

        monkeypatch.setattr(color, "transform_pixels", boom)
        with pytest.raises(ColorTransformFailure, match="boom"):
            apply_color_transformation(small_image, ColorTransformation(brightness=5), strict=True)


class TestSetParameter:
    """Tests for typed parameter access."""

    def test_returns_copy(self) -> None:
        """Test that set_parameter leaves the original unchanged."""
        original = ColorTransformation()
        updated = set_parameter(original, ColorParameter.BRIGHTNESS, 15)
        assert updated.brightness == 15
        assert original.brightness == 0

    def test_camel_case_name(self) -> None:
        """Test that camelCase names are accepted."""
        updated = set_parameter(ColorTransformation(), "greenMultiplier", 1.2)
        assert updated.green_multiplier == pytest.approx(1.2)

    @pytest.mark.parametrize("parameter", list(ColorParameter))
    def test_every_parameter_settable(self, parameter: ColorParameter) -> None:
        """Test that every parameter can be set to its lower limit."""
        low, _ = PARAMETER_LIMITS[parameter]
        updated = set_parameter(ColorTransformation(), parameter, low)
        assert get_parameter(updated, parameter) == low

    def test_out_of_range_raises(self) -> None:
        """Test that set_parameter re-validates the result."""
        with pytest.raises(ValidationError):
            set_parameter(ColorTransformation(), "gamma", 3.0)

    def test_unknown_parameter_raises(self) -> None:
        """Test that unknown parameters raise ValueError."""
        with pytest.raises(ValueError, match="Unknown colour parameter"):
            set_parameter(ColorTransformation(), "sharpness", 1)


class TestHelpers:
    """Tests for defaults, ranges, labels and presets."""

    def test_has_non_default_settings(self) -> None:
        """Test detection of non-identity transformations."""
        assert not has_non_default_settings(ColorTransformation())
        assert has_non_default_settings(ColorTransformation(hue=1))

    def test_ranges_within_limits(self) -> None:
        """Test that every slider range and sweep lies inside the limits."""
        assert set(PARAMETER_RANGES) == set(ColorParameter)
        for parameter, rng in PARAMETER_RANGES.items():
            low, high = PARAMETER_LIMITS[parameter]
            assert (rng.min, rng.max) == (low, high)
            assert low <= rng.default_min < rng.default_max <= high

    @pytest.mark.parametrize(
        "parameter,value,expected",
        [
            ("brightness", 5, "+5"),
            ("brightness", -5, "-5"),
            ("hue", 0, "+0"),
            ("brightness", -0.4, "+0"),
            ("brightness", -0.6, "-1"),
            ("contrast", 1.05, "1.05x"),
            ("red_multiplier", 0.9, "0.90x"),
            ("white_point", 250, "250"),
        ],
    )
    def test_format_parameter_value(self, parameter: str, value: float, expected: str) -> None:
        """Test axis label formatting."""
        assert format_parameter_value(parameter, value) == expected

    def test_presets(self) -> None:
        """Test that 'none' is the identity and every other preset changes something."""
        assert not has_non_default_settings(COLOR_PRESETS["none"].transformation)
        for key, preset in COLOR_PRESETS.items():
            if key != "none":
                assert has_non_default_settings(preset.transformation), key
