"""Colour calibration grids and printer measurement helpers.

This module handles:
- Evenly spaced parameter sweeps for the two grid axes
- Per-cell transformations built from a baseline plus the two axis values
- Pixel-perfect extraction of the crop that feeds the grid
- Offset/scale corrections from a printed calibration card
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TypedDict

from PIL import Image

from cardprint.color import apply_color_transformation, format_parameter_value, set_parameter
from cardprint.config import CROSSHAIR_LENGTH_INCHES, PRINT_DPI
from cardprint.coordinates import inches_to_px
from cardprint.validation import (
    CalibrationGridConfig,
    CardPositioning,
    ColorTransformation,
    SelectedRegion,
    TransformationAxis,
)

logger = logging.getLogger(__name__)

# Shifts below this are reported as centred (inches)
CENTERING_TOLERANCE_INCHES = 0.01
# Crosshair deviations below this are reported as accurate (inches)
SCALE_TOLERANCE_INCHES = 0.01


class CalibrationGrid(TypedDict):
    """Finished grid handed to the calibration-sheet renderer."""

    horizontal: TransformationAxis
    vertical: TransformationAxis
    horizontal_values: list[float]
    vertical_values: list[float]
    horizontal_labels: list[str]
    vertical_labels: list[str]
    cells: list[list[Image.Image]]  # cells[row][col]


class PixelCrop(TypedDict):
    """Source-pixel rectangle for a calibration crop."""

    x: int
    y: int
    width: int
    height: int
    cell_width_px: int  # One grid cell at print resolution
    cell_height_px: int
    source_to_final_scale: float


class CalibrationAdjustment(TypedDict):
    """Corrected printer settings derived from calibration card measurements."""

    new_horizontal_offset: float
    new_vertical_offset: float
    new_scale_percent: int
    horizontal_offset_change: float
    vertical_offset_change: float
    scale_percent_change: int
    horizontal_centering: str
    vertical_centering: str
    scale_accuracy: str


def generate_transformation_values(minimum: float, maximum: float, count: int) -> list[float]:
    """Evenly spaced values from ``minimum`` to ``maximum`` inclusive.

    A single value is the midpoint of the range.

    Raises:
        ValueError: If count < 1
    """
    if count < 1:
        raise ValueError(f"Value count must be at least 1, got {count}")
    if count == 1:
        return [(minimum + maximum) / 2]

    step = (maximum - minimum) / (count - 1)
    values = [minimum + i * step for i in range(count)]
    # Pin the end point against accumulated float error
    values[-1] = maximum
    return values


def build_cell_transformation(
    baseline: ColorTransformation,
    horizontal: TransformationAxis,
    vertical: TransformationAxis,
    horizontal_value: float,
    vertical_value: float,
) -> ColorTransformation:
    """Baseline with the horizontal then the vertical axis parameter overwritten.

    If both axes name the same parameter the vertical value wins.
    """
    transformation = set_parameter(baseline, horizontal.parameter, horizontal_value)
    return set_parameter(transformation, vertical.parameter, vertical_value)


def render_calibration_cell(
    crop_source: Image.Image,
    transformation: ColorTransformation,
    row: int,
    col: int,
) -> Image.Image:
    """Apply one cell's transformation; failures are fatal for the grid."""
    logger.debug(f"Rendering calibration cell ({row}, {col})")
    return apply_color_transformation(crop_source, transformation, strict=True)


def plan_calibration_grid(
    horizontal: TransformationAxis,
    vertical: TransformationAxis,
    grid: CalibrationGridConfig,
    baseline: ColorTransformation | None = None,
) -> tuple[list[float], list[float], dict[tuple[int, int], ColorTransformation]]:
    """Axis values and the per-cell transformations keyed by (row, col)."""
    baseline = baseline or ColorTransformation()
    horizontal_values = generate_transformation_values(horizontal.min, horizontal.max, grid.columns)
    vertical_values = generate_transformation_values(vertical.min, vertical.max, grid.rows)

    transformations = {
        (row, col): build_cell_transformation(
            baseline, horizontal, vertical, horizontal_values[col], vertical_values[row]
        )
        for row in range(grid.rows)
        for col in range(grid.columns)
    }
    return horizontal_values, vertical_values, transformations


def assemble_calibration_grid(
    horizontal: TransformationAxis,
    vertical: TransformationAxis,
    horizontal_values: list[float],
    vertical_values: list[float],
    rendered: dict[tuple[int, int], Image.Image],
) -> CalibrationGrid:
    """Reassemble rendered cells into row-major order with axis labels."""
    cells = [
        [rendered[(row, col)] for col in range(len(horizontal_values))]
        for row in range(len(vertical_values))
    ]
    return CalibrationGrid(
        horizontal=horizontal,
        vertical=vertical,
        horizontal_values=horizontal_values,
        vertical_values=vertical_values,
        horizontal_labels=[format_parameter_value(horizontal.parameter, v) for v in horizontal_values],
        vertical_labels=[format_parameter_value(vertical.parameter, v) for v in vertical_values],
        cells=cells,
    )


def generate_calibration_grid(
    crop_source: Image.Image,
    horizontal: TransformationAxis,
    vertical: TransformationAxis,
    grid: CalibrationGridConfig,
    baseline: ColorTransformation | None = None,
    max_workers: int = 1,
) -> CalibrationGrid:
    """Render every grid cell from the crop source.

    Args:
        crop_source: Pixel-perfect crop (see extract_pixel_perfect_crop)
        horizontal: Axis swept across columns
        vertical: Axis swept down rows
        grid: Grid size
        baseline: Starting transformation for every cell (identity if None)
        max_workers: Worker threads; 1 renders cells sequentially in row-major order

    Returns:
        CalibrationGrid with cells[row][col]

    Raises:
        ColorTransformFailure: If any cell fails; the whole grid is abandoned
    """
    horizontal_values, vertical_values, transformations = plan_calibration_grid(
        horizontal, vertical, grid, baseline
    )
    logger.info(
        f"Generating {grid.columns}x{grid.rows} calibration grid: "
        f"{horizontal.parameter.value} x {vertical.parameter.value}"
    )

    rendered: dict[tuple[int, int], Image.Image] = {}
    if max_workers <= 1:
        for (row, col), transformation in transformations.items():
            rendered[(row, col)] = render_calibration_cell(crop_source, transformation, row, col)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(render_calibration_cell, crop_source, transformation, row, col): (row, col)
                for (row, col), transformation in transformations.items()
            }
            for future in as_completed(futures):
                rendered[futures[future]] = future.result()

    return assemble_calibration_grid(horizontal, vertical, horizontal_values, vertical_values, rendered)


def calculate_pixel_perfect_crop(
    region: SelectedRegion,
    positioning: CardPositioning,
    source_width_px: int,
    source_height_px: int,
    grid: CalibrationGridConfig,
) -> PixelCrop:
    """Source-pixel rectangle that maps 1:1 onto one print-resolution grid cell.

    Args:
        region: Selected region in card inches
        positioning: Card placement; its box is the final printed card size
        source_width_px: Width of the image being cropped (covers the card box)
        source_height_px: Height of the image being cropped
        grid: Grid size

    Returns:
        PixelCrop clamped to the source bounds

    Note:
        Only the extraction rectangle is scaled; the crop itself is never resampled.
    """
    final_card_width_px = inches_to_px(positioning.width, PRINT_DPI)
    final_card_height_px = inches_to_px(positioning.height, PRINT_DPI)

    cell_width_px = max(1, round(final_card_width_px / grid.columns))
    cell_height_px = max(1, round(final_card_height_px / grid.rows))

    scale_x = source_width_px / final_card_width_px
    scale_y = source_height_px / final_card_height_px

    width = min(source_width_px, max(1, round(cell_width_px * scale_x)))
    height = min(source_height_px, max(1, round(cell_height_px * scale_y)))

    center_x = inches_to_px(region.center_x, PRINT_DPI) * scale_x
    center_y = inches_to_px(region.center_y, PRINT_DPI) * scale_y

    x = min(max(0, round(center_x - width / 2)), source_width_px - width)
    y = min(max(0, round(center_y - height / 2)), source_height_px - height)

    logger.debug(
        f"Pixel-perfect crop: {width}x{height}px at ({x}, {y}), "
        f"cell {cell_width_px}x{cell_height_px}px, scale {scale_x:.4f}"
    )

    return PixelCrop(
        x=x,
        y=y,
        width=width,
        height=height,
        cell_width_px=cell_width_px,
        cell_height_px=cell_height_px,
        source_to_final_scale=scale_x,
    )


def extract_pixel_perfect_crop(
    image: Image.Image,
    region: SelectedRegion,
    positioning: CardPositioning,
    grid: CalibrationGridConfig,
) -> Image.Image:
    """Crop the selected region from a composited card image without resampling."""
    crop = calculate_pixel_perfect_crop(region, positioning, image.width, image.height, grid)
    return image.crop((crop["x"], crop["y"], crop["x"] + crop["width"], crop["y"] + crop["height"]))


def calculate_calibration_settings(
    measured_right: float,
    measured_top: float,
    measured_crosshair: float,
    card_width: float = 2.5,
    card_height: float = 3.5,
    current_horizontal_offset: float = 0.0,
    current_vertical_offset: float = 0.0,
    current_scale_percent: float = 100.0,
) -> CalibrationAdjustment:
    """Derive corrected offsets and scale from a printed calibration card.

    Args:
        measured_right: Crosshair centre to the right edge of the cut card (inches)
        measured_top: Crosshair centre to the top edge of the cut card (inches)
        measured_crosshair: Printed length of one crosshair arm (inches), nominally 1.0
        card_width: Card width the calibration card was printed for
        card_height: Card height the calibration card was printed for
        current_horizontal_offset: Offset used when printing (inches, positive = right)
        current_vertical_offset: Offset used when printing (inches, positive = down)
        current_scale_percent: Scale used when printing

    Returns:
        CalibrationAdjustment with new settings, the changes and diagnostics

    Raises:
        ValueError: If measured_crosshair is not positive

    Note:
        Each shift is added to the current offset. The crosshair marks where the
        printer put the card centre, so a right distance longer than expected
        means the print landed left of centre and must move right (positive
        horizontal shift); a top distance shorter than expected means it landed
        high and must move down (positive vertical shift).
    """
    if measured_crosshair <= 0:
        raise ValueError(f"Measured crosshair length must be positive, got {measured_crosshair}")

    expected_right = card_width / 2
    expected_top = card_height / 2

    horizontal_shift = round(measured_right - expected_right, 3)
    vertical_shift = round(expected_top - measured_top, 3)

    new_horizontal_offset = round(current_horizontal_offset + horizontal_shift, 3)
    new_vertical_offset = round(current_vertical_offset + vertical_shift, 3)

    scale_correction = CROSSHAIR_LENGTH_INCHES / measured_crosshair
    new_scale_percent = math.floor(current_scale_percent * scale_correction + 0.5)

    if abs(horizontal_shift) < CENTERING_TOLERANCE_INCHES:
        horizontal_centering = "Well centered"
    else:
        direction = "left" if horizontal_shift > 0 else "right"
        horizontal_centering = f'Off by {abs(horizontal_shift):.3f}" {direction}'

    if abs(vertical_shift) < CENTERING_TOLERANCE_INCHES:
        vertical_centering = "Well centered"
    else:
        direction = "up" if vertical_shift > 0 else "down"
        vertical_centering = f'Off by {abs(vertical_shift):.3f}" {direction}'

    deviation = measured_crosshair - CROSSHAIR_LENGTH_INCHES
    if abs(deviation) < SCALE_TOLERANCE_INCHES:
        scale_accuracy = "Accurate scale"
    else:
        trend = "enlarges" if deviation > 0 else "shrinks"
        scale_accuracy = f"Printer {trend} by {abs(deviation) * 100:.1f}%"

    logger.info(
        f"Calibration: offset ({new_horizontal_offset:+.3f}\", {new_vertical_offset:+.3f}\"), "
        f"scale {new_scale_percent}%"
    )

    return CalibrationAdjustment(
        new_horizontal_offset=new_horizontal_offset,
        new_vertical_offset=new_vertical_offset,
        new_scale_percent=new_scale_percent,
        horizontal_offset_change=horizontal_shift,
        vertical_offset_change=vertical_shift,
        scale_percent_change=new_scale_percent - round(current_scale_percent),
        horizontal_centering=horizontal_centering,
        vertical_centering=vertical_centering,
        scale_accuracy=scale_accuracy,
    )
