"""Unit conversion utilities.

This module handles:
- DPI conversions (pixels ↔ inches) for the extraction, screen and print resolutions
- Coordinate system transforms (top-left inches → ReportLab bottom-left points)
"""

from cardprint.config import EXTRACTION_DPI, POINTS_PER_INCH, SCREEN_DPI


def px_to_inches(px: float, dpi: float = EXTRACTION_DPI) -> float:
    """Convert pixels to inches.

    Args:
        px: Size in pixels
        dpi: Dots per inch (resolution)

    Returns:
        Size in inches
    """
    return px / dpi


def inches_to_px(inches: float, dpi: float = EXTRACTION_DPI) -> float:
    """Convert inches to pixels.

    Args:
        inches: Size in inches
        dpi: Dots per inch (resolution)

    Returns:
        Size in pixels (unrounded)
    """
    return inches * dpi


def inches_to_screen_px(inches: float) -> float:
    """Convert print inches to screen preview pixels at SCREEN_DPI."""
    return inches * SCREEN_DPI


def inches_to_pdf_coords(x_in: float, y_in: float, page_height_in: float) -> tuple[float, float]:
    """Convert top-left inch coordinates to ReportLab bottom-left points.

    Args:
        x_in: X coordinate in inches from top-left
        y_in: Y coordinate in inches from top-left
        page_height_in: Total page height in inches

    Returns:
        Tuple of (x_pt, y_pt) in ReportLab points (1pt = 1/72 inch)

    Note:
        ReportLab uses bottom-left origin, so Y axis is flipped.
    """
    x_pt = x_in * POINTS_PER_INCH
    y_pt = (page_height_in - y_in) * POINTS_PER_INCH
    return x_pt, y_pt


def rect_to_pdf_coords(
    x_in: float, y_in: float, width_in: float, height_in: float, page_height_in: float
) -> tuple[float, float, float, float]:
    """Convert a top-left inch rectangle to a ReportLab (x, y, w, h) rectangle in points.

    The returned y is the rectangle's bottom edge, which is what
    ``canvas.rect`` and ``canvas.drawImage`` expect.
    """
    x_pt, y_top_pt = inches_to_pdf_coords(x_in, y_in, page_height_in)
    height_pt = height_in * POINTS_PER_INCH
    return x_pt, y_top_pt - height_pt, width_in * POINTS_PER_INCH, height_pt
