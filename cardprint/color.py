"""Colour transformation engine for print colour calibration.

This module provides:
- The 16-parameter per-pixel colour pipeline, vectorised with numpy
- RGB ↔ HSL conversions (hue stored as a [0, 1) fraction of a turn)
- Typed parameter access (``set_parameter``) for calibration sweeps
- Slider ranges, axis label formatting and printer/media presets

Pipeline order (per pixel, all channels normalised to [0, 1]):
gamma → brightness → contrast → HSL (saturation, hue, vibrance) →
channel multipliers → shadows/highlights/midtones → levels (0-255 space) →
round and clamp. Alpha is never touched.
"""

import logging
from typing import NamedTuple

import numpy as np
from PIL import Image

from cardprint.errors import ColorTransformFailure
from cardprint.validation import ColorParameter, ColorTransformation

logger = logging.getLogger(__name__)

# Rec. 601 luma weights used for the shadows/highlights mask
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

SHADOW_HIGHLIGHT_STRENGTH = 0.3
MIDTONE_STRENGTH = 0.2


def rgb_to_hsl(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Convert RGB to HSL.

    Args:
        rgb: Float array [..., 3] with channels in [0, 1]

    Returns:
        Tuple of (h, s, l) arrays; h is a fraction of a full turn in [0, 1)

    Note:
        When several channels share the maximum, red wins over green and
        green over blue when choosing the hue sector.
    """
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    c_max = rgb.max(axis=-1)
    c_min = rgb.min(axis=-1)
    diff = c_max - c_min
    total = c_max + c_min
    lightness = total / 2

    chromatic = diff > 0
    denom = np.where(lightness > 0.5, 2.0 - total, total)
    saturation = np.divide(diff, denom, out=np.zeros_like(diff), where=chromatic & (denom > 0))

    safe_diff = np.where(chromatic, diff, 1.0)
    hue_r = ((g - b) / safe_diff + np.where(g < b, 6.0, 0.0)) / 6
    hue_g = ((b - r) / safe_diff + 2) / 6
    hue_b = ((r - g) / safe_diff + 4) / 6
    hue = np.where(c_max == r, hue_r, np.where(c_max == g, hue_g, hue_b))
    hue = np.where(chromatic, hue, 0.0)

    return hue, saturation, lightness


def _hue_to_channel(p: np.ndarray, q: np.ndarray, t: np.ndarray) -> np.ndarray:
    t = np.where(t < 0, t + 1, t)
    t = np.where(t > 1, t - 1, t)
    return np.select(
        [t < 1 / 6, t < 1 / 2, t < 2 / 3],
        [p + (q - p) * 6 * t, q, p + (q - p) * (2 / 3 - t) * 6],
        default=p,
    )


def hsl_to_rgb(hue: np.ndarray, saturation: np.ndarray, lightness: np.ndarray) -> np.ndarray:
    """Convert HSL back to RGB.

    Args:
        hue: Hue as a fraction of a turn
        saturation: Saturation in [0, 1]
        lightness: Lightness in [0, 1]

    Returns:
        Float array [..., 3] with channels in [0, 1]
    """
    q = np.where(lightness < 0.5, lightness * (1 + saturation), lightness + saturation - lightness * saturation)
    p = 2 * lightness - q

    rgb = np.stack(
        [
            _hue_to_channel(p, q, hue + 1 / 3),
            _hue_to_channel(p, q, hue),
            _hue_to_channel(p, q, hue - 1 / 3),
        ],
        axis=-1,
    )
    achromatic = (saturation == 0)[..., None]
    return np.where(achromatic, lightness[..., None], rgb)


def _apply_basic(rgb: np.ndarray, t: ColorTransformation) -> np.ndarray:
    """Gamma, brightness, contrast, then saturation/hue/vibrance in HSL."""
    rgb = np.power(rgb, 1.0 / t.gamma)
    rgb = np.clip(rgb + t.brightness / 100, 0, 1)
    rgb = np.clip((rgb - 0.5) * t.contrast + 0.5, 0, 1)

    hue, saturation, lightness = rgb_to_hsl(rgb)
    saturation = np.clip(saturation * (1 + t.saturation / 100), 0, 1)

    hue = np.mod(hue + t.hue / 360, 1.0)
    hue = np.where(hue >= 1.0, hue - 1.0, hue)

    if t.vibrance != 0:
        # Boost less saturated colours more
        saturation = np.clip(saturation + (t.vibrance / 100) * (1 - saturation), 0, 1)

    return hsl_to_rgb(hue, saturation, lightness)


def _apply_channel_multipliers(rgb: np.ndarray, t: ColorTransformation) -> np.ndarray:
    gains = np.array([t.red_multiplier, t.green_multiplier, t.blue_multiplier])
    return np.clip(rgb * gains, 0, 1)


def _apply_shadows_highlights(rgb: np.ndarray, t: ColorTransformation) -> np.ndarray:
    """Luminance-weighted lift of shadows and highlights plus a global midtone shift."""
    luminance = rgb @ LUMA_WEIGHTS
    shadow_adj = (t.shadows / 50) * (1 - luminance) * SHADOW_HIGHLIGHT_STRENGTH
    highlight_adj = (t.highlights / 50) * luminance * SHADOW_HIGHLIGHT_STRENGTH
    midtone_adj = (t.midtone_balance / 100) * MIDTONE_STRENGTH
    total = shadow_adj + highlight_adj + midtone_adj
    return np.clip(rgb + total[..., None], 0, 1)


def _apply_levels(values: np.ndarray, t: ColorTransformation) -> np.ndarray:
    """Input and output levels. Operates on 0-255 values."""
    input_range = t.white_point - t.black_point
    if input_range > 0:
        values = np.clip((values - t.black_point) * (255 / input_range), 0, 255)
    return t.output_black + (values / 255) * (t.output_white - t.output_black)


def transform_pixels(rgb: np.ndarray, transformation: ColorTransformation) -> np.ndarray:
    """Run the colour pipeline over an RGB pixel array.

    Args:
        rgb: uint8 array [..., 3]
        transformation: Parameters to apply

    Returns:
        New uint8 array with the same shape

    Raises:
        ColorTransformFailure: If the maths produces non-finite values or
            the input is not an RGB array
    """
    if rgb.ndim < 1 or rgb.shape[-1] != 3:
        raise ColorTransformFailure(f"Expected RGB pixels, got array of shape {rgb.shape}")

    try:
        with np.errstate(divide="raise", invalid="raise", over="raise"):
            working = rgb.astype(np.float64) / 255
            working = _apply_basic(working, transformation)
            working = _apply_channel_multipliers(working, transformation)
            working = _apply_shadows_highlights(working, transformation)
            values = _apply_levels(working * 255, transformation)
    except FloatingPointError as e:
        raise ColorTransformFailure(f"Numeric failure in colour pipeline: {e}") from e

    if not np.all(np.isfinite(values)):
        raise ColorTransformFailure("Colour pipeline produced non-finite values")

    # Round half up, then clamp
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


def apply_color_transformation(
    image: Image.Image,
    transformation: ColorTransformation,
    strict: bool = False,
) -> Image.Image:
    """Apply a colour transformation to an image.

    Args:
        image: Source image (RGB or RGBA; other modes are converted to RGBA)
        transformation: Parameters to apply
        strict: Re-raise failures instead of passing the original through

    Returns:
        New image with the same size; alpha preserved. On failure in
        non-strict mode, the original image object is returned unchanged.

    Raises:
        ColorTransformFailure: Only when ``strict`` is True
    """
    try:
        working = image if image.mode in ("RGB", "RGBA") else image.convert("RGBA")
        pixels = np.asarray(working)
        rgb = transform_pixels(pixels[..., :3], transformation)
        if working.mode == "RGBA":
            rgb = np.dstack([rgb, pixels[..., 3]])
        return Image.fromarray(rgb)
    except ColorTransformFailure as e:
        if strict:
            raise
        logger.warning(f"Color transformation failed, using original image: {e}")
        return image
    except (ValueError, TypeError, OSError, MemoryError) as e:
        if strict:
            raise ColorTransformFailure(f"Color transformation failed: {e}") from e
        logger.warning(f"Color transformation failed, using original image: {e}")
        return image


def get_parameter(transformation: ColorTransformation, parameter: ColorParameter | str) -> float:
    """Read one parameter value from a transformation."""
    return getattr(transformation, ColorParameter.parse(parameter).value)


def set_parameter(
    transformation: ColorTransformation,
    parameter: ColorParameter | str,
    value: float,
) -> ColorTransformation:
    """Return a copy of ``transformation`` with one parameter replaced.

    The copy is re-validated, so out-of-range values raise ValidationError.
    """
    parameter = ColorParameter.parse(parameter)
    return ColorTransformation.model_validate({**transformation.model_dump(), parameter.value: value})


def has_non_default_settings(transformation: ColorTransformation) -> bool:
    """Check whether any parameter differs from the identity default."""
    return transformation != ColorTransformation()


class ParameterRange(NamedTuple):
    """Slider range and sensible calibration sweep for one parameter."""

    min: float
    max: float
    default_min: float
    default_max: float
    step: float
    unit: str


_MULTIPLIER_RANGE = ParameterRange(0.5, 1.5, 0.9, 1.1, 0.05, "x")
_SHADOW_HIGHLIGHT_RANGE = ParameterRange(-50, 50, -15, 15, 1, "")

PARAMETER_RANGES: dict[ColorParameter, ParameterRange] = {
    ColorParameter.BRIGHTNESS: ParameterRange(-100, 100, -20, 20, 1, "%"),
    ColorParameter.CONTRAST: ParameterRange(0.5, 2.0, 0.8, 1.3, 0.05, "x"),
    ColorParameter.SATURATION: ParameterRange(-100, 100, -30, 30, 1, "%"),
    ColorParameter.HUE: ParameterRange(-180, 180, -20, 20, 1, "°"),
    ColorParameter.GAMMA: ParameterRange(0.5, 2.0, 0.8, 1.2, 0.05, ""),
    ColorParameter.VIBRANCE: ParameterRange(-100, 100, -25, 25, 1, "%"),
    ColorParameter.RED_MULTIPLIER: _MULTIPLIER_RANGE,
    ColorParameter.GREEN_MULTIPLIER: _MULTIPLIER_RANGE,
    ColorParameter.BLUE_MULTIPLIER: _MULTIPLIER_RANGE,
    ColorParameter.SHADOWS: _SHADOW_HIGHLIGHT_RANGE,
    ColorParameter.HIGHLIGHTS: _SHADOW_HIGHLIGHT_RANGE,
    ColorParameter.MIDTONE_BALANCE: ParameterRange(-100, 100, -20, 20, 1, ""),
    ColorParameter.BLACK_POINT: ParameterRange(0, 50, 0, 15, 1, ""),
    ColorParameter.WHITE_POINT: ParameterRange(205, 255, 235, 255, 1, ""),
    ColorParameter.OUTPUT_BLACK: ParameterRange(0, 30, 0, 10, 1, ""),
    ColorParameter.OUTPUT_WHITE: ParameterRange(225, 255, 245, 255, 1, ""),
}

_SIGNED_PARAMETERS = {
    ColorParameter.BRIGHTNESS,
    ColorParameter.SATURATION,
    ColorParameter.HUE,
    ColorParameter.VIBRANCE,
    ColorParameter.SHADOWS,
    ColorParameter.HIGHLIGHTS,
    ColorParameter.MIDTONE_BALANCE,
}
_MULTIPLIER_PARAMETERS = {
    ColorParameter.CONTRAST,
    ColorParameter.GAMMA,
    ColorParameter.RED_MULTIPLIER,
    ColorParameter.GREEN_MULTIPLIER,
    ColorParameter.BLUE_MULTIPLIER,
}


def format_parameter_value(parameter: ColorParameter | str, value: float) -> str:
    """Format a parameter value for calibration axis labels.

    Signed adjustments render as ``+12``/``-5``, multipliers as ``1.05x``
    and levels as plain integers.
    """
    parameter = ColorParameter.parse(parameter)
    if parameter in _SIGNED_PARAMETERS:
        rounded = round(value)
        return f"+{rounded}" if rounded >= 0 else f"{rounded}"
    if parameter in _MULTIPLIER_PARAMETERS:
        return f"{value:.2f}x"
    return f"{round(value)}"


class ColorPreset(NamedTuple):
    """Named starting point for a printer/media combination."""

    name: str
    description: str
    transformation: ColorTransformation


COLOR_PRESETS: dict[str, ColorPreset] = {
    "none": ColorPreset(
        "Custom",
        "Use your own custom color adjustments",
        ColorTransformation(),
    ),
    "inkjet-glossy": ColorPreset(
        "Inkjet Glossy Photo Paper",
        "Enhanced contrast, slight blue reduction for glossy prints",
        ColorTransformation(contrast=1.1, blue_multiplier=0.95, highlights=-5),
    ),
    "laser-standard": ColorPreset(
        "Laser Printer Standard Paper",
        "Increased brightness, shadow lift for laser printing",
        ColorTransformation(brightness=10, shadows=15, contrast=1.05),
    ),
    "inkjet-matte": ColorPreset(
        "Inkjet Matte Card Stock",
        "Saturation boost, highlight compression for matte surfaces",
        ColorTransformation(saturation=15, highlights=-10, contrast=1.15),
    ),
    "photo-lab": ColorPreset(
        "Professional Photo Lab",
        "Minimal adjustments for professional lab printing",
        ColorTransformation(gamma=1.05, shadows=2),
    ),
    "home-inkjet-fix": ColorPreset(
        "Home Inkjet Color Bias Fix",
        "Common adjustments for home inkjet color balance",
        ColorTransformation(red_multiplier=1.05, green_multiplier=0.98, blue_multiplier=0.92, brightness=5),
    ),
}
