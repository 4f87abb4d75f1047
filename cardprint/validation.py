"""Typed configuration structs using Pydantic models.

This module defines:
- Pydantic models for every component boundary (output settings, colour
  transformation, calibration grid, selected region)
- Result value types produced by the geometry pipeline
- Page boundary checks for resolved card placements

All models are frozen: they are value types passed into every operation and
never mutated in place. Output settings are validated once, here, so the
geometry pipeline can trust them.
"""

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cardprint.config import (
    DEFAULT_GRID_COLUMNS,
    DEFAULT_GRID_ROWS,
    DEFAULT_SIZING_MODE,
    MAX_BLEED_INCHES,
    MAX_SCALE_PERCENT,
)
from cardprint.errors import InvalidSettingsError


class SizingMode(str, Enum):
    """How an extracted image maps onto the card container."""

    ACTUAL_SIZE = "actual-size"
    FIT_TO_CARD = "fit-to-card"
    FILL_CARD = "fill-card"


class CardType(str, Enum):
    """Card face, used to look up the per-face rotation."""

    FRONT = "front"
    BACK = "back"


class ColorParameter(str, Enum):
    """Closed set of colour transformation parameters."""

    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    SATURATION = "saturation"
    HUE = "hue"
    GAMMA = "gamma"
    VIBRANCE = "vibrance"
    RED_MULTIPLIER = "red_multiplier"
    GREEN_MULTIPLIER = "green_multiplier"
    BLUE_MULTIPLIER = "blue_multiplier"
    SHADOWS = "shadows"
    HIGHLIGHTS = "highlights"
    MIDTONE_BALANCE = "midtone_balance"
    BLACK_POINT = "black_point"
    WHITE_POINT = "white_point"
    OUTPUT_BLACK = "output_black"
    OUTPUT_WHITE = "output_white"

    @classmethod
    def parse(cls, name: "str | ColorParameter") -> "ColorParameter":
        """Resolve a parameter from its snake_case or camelCase name.

        Raises:
            ValueError: If the name is not a known parameter
        """
        if isinstance(name, cls):
            return name
        snake = "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in name).lstrip("_")
        try:
            return cls(snake)
        except ValueError:
            raise ValueError(f"Unknown colour parameter: {name}") from None


# Valid (min, max) per parameter, inclusive
PARAMETER_LIMITS: dict[ColorParameter, tuple[float, float]] = {
    ColorParameter.BRIGHTNESS: (-100, 100),
    ColorParameter.CONTRAST: (0.5, 2.0),
    ColorParameter.SATURATION: (-100, 100),
    ColorParameter.HUE: (-180, 180),
    ColorParameter.GAMMA: (0.5, 2.0),
    ColorParameter.VIBRANCE: (-100, 100),
    ColorParameter.RED_MULTIPLIER: (0.5, 1.5),
    ColorParameter.GREEN_MULTIPLIER: (0.5, 1.5),
    ColorParameter.BLUE_MULTIPLIER: (0.5, 1.5),
    ColorParameter.SHADOWS: (-50, 50),
    ColorParameter.HIGHLIGHTS: (-50, 50),
    ColorParameter.MIDTONE_BALANCE: (-100, 100),
    ColorParameter.BLACK_POINT: (0, 50),
    ColorParameter.WHITE_POINT: (205, 255),
    ColorParameter.OUTPUT_BLACK: (0, 30),
    ColorParameter.OUTPUT_WHITE: (225, 255),
}


def _limit(parameter: ColorParameter) -> dict[str, float]:
    low, high = PARAMETER_LIMITS[parameter]
    return {"ge": low, "le": high}


class ColorTransformation(BaseModel):
    """Sixteen-parameter colour transformation. All defaults form the identity."""

    model_config = ConfigDict(frozen=True)

    # Basic adjustments
    brightness: float = Field(0, **_limit(ColorParameter.BRIGHTNESS), description="Additive brightness (%)")
    contrast: float = Field(1.0, **_limit(ColorParameter.CONTRAST), description="Contrast around mid-grey (x)")
    saturation: float = Field(0, **_limit(ColorParameter.SATURATION), description="Saturation scale (%)")
    hue: float = Field(0, **_limit(ColorParameter.HUE), description="Hue rotation (degrees)")
    gamma: float = Field(1.0, **_limit(ColorParameter.GAMMA), description="Gamma exponent divisor")
    vibrance: float = Field(0, **_limit(ColorParameter.VIBRANCE), description="Low-saturation boost (%)")

    # Per-channel control
    red_multiplier: float = Field(1.0, **_limit(ColorParameter.RED_MULTIPLIER))
    green_multiplier: float = Field(1.0, **_limit(ColorParameter.GREEN_MULTIPLIER))
    blue_multiplier: float = Field(1.0, **_limit(ColorParameter.BLUE_MULTIPLIER))

    # Shadows/highlights
    shadows: float = Field(0, **_limit(ColorParameter.SHADOWS))
    highlights: float = Field(0, **_limit(ColorParameter.HIGHLIGHTS))
    midtone_balance: float = Field(0, **_limit(ColorParameter.MIDTONE_BALANCE))

    # Levels (0-255 space)
    black_point: float = Field(0, **_limit(ColorParameter.BLACK_POINT))
    white_point: float = Field(255, **_limit(ColorParameter.WHITE_POINT))
    output_black: float = Field(0, **_limit(ColorParameter.OUTPUT_BLACK))
    output_white: float = Field(255, **_limit(ColorParameter.OUTPUT_WHITE))


class PageSize(BaseModel):
    """Output page dimensions in inches."""

    model_config = ConfigDict(frozen=True)

    width: float = Field(3.5, gt=0, description="Page width (inches)")
    height: float = Field(3.5, gt=0, description="Page height (inches)")


class CardSize(BaseModel):
    """Nominal card dimensions in inches, before bleed and scale."""

    model_config = ConfigDict(frozen=True)

    width: float = Field(2.5, description="Card width (inches)")
    height: float = Field(3.5, description="Card height (inches)")


class CardOffset(BaseModel):
    """Offset from page centre in inches (positive = right / down). Unconstrained."""

    model_config = ConfigDict(frozen=True)

    horizontal: float = 0.0
    vertical: float = 0.0


class CardRotation(BaseModel):
    """Rotation in degrees applied to each card face."""

    model_config = ConfigDict(frozen=True)

    front: float = 0.0
    back: float = 0.0

    def for_card_type(self, card_type: CardType) -> float:
        return self.front if CardType(card_type) is CardType.FRONT else self.back


class OutputSettings(BaseModel):
    """Complete output configuration for one card placement."""

    model_config = ConfigDict(frozen=True)

    page_size: PageSize = Field(default_factory=PageSize)
    card_size: CardSize = Field(default_factory=CardSize)
    bleed_inches: float = Field(0.0, description="Bleed added to every card edge (inches)")
    scale_percent: float = Field(100.0, description="Scale applied to card and image (%)")
    sizing_mode: SizingMode = Field(SizingMode(DEFAULT_SIZING_MODE))
    rotation: CardRotation = Field(default_factory=CardRotation)
    offset: CardOffset = Field(default_factory=CardOffset)

    @field_validator("sizing_mode", mode="before")
    @classmethod
    def check_sizing_mode(cls, v: object) -> SizingMode:
        """Reject unknown sizing modes with InvalidSettingsError."""
        try:
            return SizingMode(v)
        except ValueError:
            raise InvalidSettingsError(f"Invalid sizing mode: {v}") from None

    @model_validator(mode="after")
    def check_ranges(self) -> "OutputSettings":
        """Validate card size, bleed and scale ranges."""
        if not all(math.isfinite(side) and side > 0 for side in (self.card_size.width, self.card_size.height)):
            raise InvalidSettingsError(
                f'Invalid card dimensions: {self.card_size.width}" x {self.card_size.height}"'
            )
        if not 0 <= self.bleed_inches <= MAX_BLEED_INCHES:
            raise InvalidSettingsError(
                f'Invalid bleed margin: {self.bleed_inches}" '
                f"(must be between 0 and {MAX_BLEED_INCHES:g} inches)"
            )
        if not 0 < self.scale_percent <= MAX_SCALE_PERCENT:
            raise InvalidSettingsError(
                f"Invalid scale percentage: {self.scale_percent}% "
                f"(must be greater than 0 and at most {MAX_SCALE_PERCENT:g}%)"
            )
        return self


class CalibrationGridConfig(BaseModel):
    """Calibration grid size."""

    model_config = ConfigDict(frozen=True)

    columns: int = Field(DEFAULT_GRID_COLUMNS, ge=2, description="Number of grid columns")
    rows: int = Field(DEFAULT_GRID_ROWS, ge=2, description="Number of grid rows")


class TransformationAxis(BaseModel):
    """One parameter swept across a calibration grid axis."""

    model_config = ConfigDict(frozen=True)

    parameter: ColorParameter
    min: float
    max: float

    @field_validator("parameter", mode="before")
    @classmethod
    def parse_parameter(cls, v: object) -> ColorParameter:
        """Accept snake_case or camelCase parameter names."""
        if isinstance(v, str):
            return ColorParameter.parse(v)
        return v  # type: ignore[return-value]

    @model_validator(mode="after")
    def check_bounds(self) -> "TransformationAxis":
        """Validate that the swept range lies within the parameter's limits."""
        low, high = PARAMETER_LIMITS[self.parameter]
        if self.min > self.max:
            raise ValueError(f"Axis min {self.min} is greater than max {self.max}")
        if self.min < low or self.max > high:
            raise ValueError(
                f"Axis range [{self.min}, {self.max}] outside {self.parameter.value} limits [{low}, {high}]"
            )
        return self


class SelectedRegion(BaseModel):
    """Calibration crop region in card-container inches (top-left origin).

    Inches are the only stored coordinates; preview pixels are derived from
    the current preview geometry whenever they are needed.
    """

    model_config = ConfigDict(frozen=True)

    center_x: float = Field(ge=0, description="Region centre X from card left (inches)")
    center_y: float = Field(ge=0, description="Region centre Y from card top (inches)")
    width: float = Field(gt=0, description="Region width (inches)")
    height: float = Field(gt=0, description="Region height (inches)")


class PrinterCalibration(BaseModel):
    """Measured printer offset and scale correction."""

    model_config = ConfigDict(frozen=True)

    printer_name: str = "default"
    offset_x: float = Field(0.0, description="X offset (inches, positive = right)")
    offset_y: float = Field(0.0, description="Y offset (inches, positive = down)")
    scale_x: float = Field(1.0, gt=0, description="X scale multiplier")
    scale_y: float = Field(1.0, gt=0, description="Y scale multiplier")
    notes: str = ""


class RenderDimensions(BaseModel):
    """Card container and image render sizes in inches."""

    model_config = ConfigDict(frozen=True)

    card_width: float = Field(gt=0, description="Container width incl. bleed and scale")
    card_height: float = Field(gt=0, description="Container height incl. bleed and scale")
    image_width: float = Field(gt=0, description="Rendered image width")
    image_height: float = Field(gt=0, description="Rendered image height")
    original_width: float = Field(gt=0, description="Extracted image width at extraction DPI")
    original_height: float = Field(gt=0, description="Extracted image height at extraction DPI")
    sizing_mode: SizingMode


class CardPositioning(BaseModel):
    """Card placement on the page in inches (top-left origin, post-rotation box)."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float
    rotation: float


class PreviewGeometry(BaseModel):
    """Screen-pixel preview geometry for a page and its card."""

    model_config = ConfigDict(frozen=True)

    scale: float
    page_width: float
    page_height: float
    card_width: float
    card_height: float
    card_x: float
    card_y: float


class PreviewRegion(BaseModel):
    """A SelectedRegion projected into preview pixels (page-relative)."""

    model_config = ConfigDict(frozen=True)

    center_x: float
    center_y: float
    width: float
    height: float


def check_card_within_page(positioning: CardPositioning, page_size: PageSize) -> bool:
    """Check if a placed card is fully within page boundaries.

    Args:
        positioning: Resolved card placement
        page_size: Page dimensions

    Returns:
        True if the card is fully on the page, False otherwise
    """
    return (
        positioning.x >= 0
        and positioning.y >= 0
        and positioning.x + positioning.width <= page_size.width
        and positioning.y + positioning.height <= page_size.height
    )
