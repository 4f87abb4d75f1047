"""PDF rendering of finished card buffers and calibration sheets.

This module handles:
- Placing finished card images on print pages with ReportLab
- Applying printer calibration profiles (optional)
- Laying out colour calibration grids inside the card outline
- Printer calibration cards with a measurement crosshair
"""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TypedDict

from PIL import Image
from pydantic import ValidationError
from reportlab.lib.units import inch as reportlab_inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from cardprint.calibration import CalibrationGrid
from cardprint.config import CROSSHAIR_GAP_INCHES, CROSSHAIR_LENGTH_INCHES
from cardprint.coordinates import inches_to_pdf_coords, rect_to_pdf_coords
from cardprint.validation import (
    CardPositioning,
    OutputSettings,
    PageSize,
    PrinterCalibration,
    check_card_within_page,
)

logger = logging.getLogger(__name__)

# Calibration sheet layout inside the card (inches)
SHEET_HEADER_HEIGHT = 0.15
SHEET_LABEL_MARGIN = 0.1
SHEET_FOOTER_HEIGHT = 0.1


class PlacedCard(TypedDict):
    """A finished raster and where it goes on the page."""

    image: Image.Image
    positioning: CardPositioning


def load_printer_calibration(path: str | Path) -> PrinterCalibration | None:
    """Load a printer calibration profile if available.

    Args:
        path: JSON file with PrinterCalibration fields

    Returns:
        PrinterCalibration if the file exists and is valid, None otherwise

    Note:
        Example file content:
        {
            "printer_name": "office_inkjet",
            "offset_x": 0.03,
            "offset_y": -0.02,
            "scale_x": 1.0,
            "scale_y": 0.99,
            "notes": "Measured with calibration card, 100% scale"
        }
    """
    calib_path = Path(path)

    if not calib_path.exists():
        logger.debug(f"No calibration file found: {calib_path}")
        return None

    try:
        calibration = PrinterCalibration.model_validate_json(calib_path.read_text())
    except ValidationError as e:
        logger.warning(f"Invalid calibration file {calib_path}: {e}")
        return None

    logger.info(f"Loaded calibration from: {calib_path}")
    logger.info(f"  Scale factors: X={calibration.scale_x}, Y={calibration.scale_y}")
    logger.info(f'  Offsets: X={calibration.offset_x}", Y={calibration.offset_y}"')
    return calibration


def apply_printer_calibration(
    positioning: CardPositioning,
    calibration: PrinterCalibration,
) -> CardPositioning:
    """Apply a calibration profile to a card placement.

    Args:
        positioning: Card placement in inches
        calibration: Calibration profile to apply

    Returns:
        Calibrated placement (rotation unchanged)
    """
    return CardPositioning(
        x=positioning.x * calibration.scale_x + calibration.offset_x,
        y=positioning.y * calibration.scale_y + calibration.offset_y,
        width=positioning.width * calibration.scale_x,
        height=positioning.height * calibration.scale_y,
        rotation=positioning.rotation,
    )


def _new_canvas(output_path: str | Path, width_in: float, height_in: float) -> canvas.Canvas:
    output_path_obj = Path(output_path)
    output_path_obj.parent.mkdir(parents=True, exist_ok=True)
    return canvas.Canvas(
        str(output_path_obj),
        pagesize=(width_in * reportlab_inch, height_in * reportlab_inch),
    )


def render_card_pdf(
    cards: Iterable[PlacedCard],
    page_size: PageSize,
    output_path: str | Path,
    calibration: PrinterCalibration | None = None,
) -> int:
    """Generate a print-ready PDF with one card per page.

    Args:
        cards: Finished card images with their placements
        page_size: Page dimensions in inches
        output_path: Where to save the generated PDF
        calibration: Optional printer calibration profile

    Returns:
        Number of pages written

    Note:
        - Images are drawn exactly into their placement box; they are never
          re-scaled or re-rotated here
        - Transparent areas of the buffer stay unprinted
    """
    c = _new_canvas(output_path, page_size.width, page_size.height)

    pages = 0
    for card in cards:
        positioning = card["positioning"]
        if calibration:
            positioning = apply_printer_calibration(positioning, calibration)
            logger.debug(f'Applied calibration: x={positioning.x:.4f}", y={positioning.y:.4f}"')

        if not check_card_within_page(positioning, page_size):
            logger.warning(f"Card on page {pages + 1} extends beyond page boundaries")

        x_pt, y_pt, width_pt, height_pt = rect_to_pdf_coords(
            positioning.x, positioning.y, positioning.width, positioning.height, page_size.height
        )
        c.drawImage(
            ImageReader(card["image"]),
            x_pt,
            y_pt,
            width=width_pt,
            height=height_pt,
            mask="auto",
            preserveAspectRatio=False,
        )
        c.showPage()
        pages += 1

    c.save()
    logger.info(f"Wrote {pages} card page(s) to {output_path}")
    return pages


def calibration_sheet_card_box(settings: OutputSettings) -> tuple[float, float, float, float]:
    """Card outline (x, y, width, height) in inches for a calibration sheet.

    The card is scaled and centred with the configured offsets, without bleed.
    """
    scale = settings.scale_percent / 100
    width = settings.card_size.width * scale
    height = settings.card_size.height * scale
    x = (settings.page_size.width - width) / 2 + settings.offset.horizontal
    y = (settings.page_size.height - height) / 2 + settings.offset.vertical
    return x, y, width, height


def render_color_calibration_pdf(
    grid: CalibrationGrid,
    settings: OutputSettings,
    output_path: str | Path,
) -> None:
    """Lay out a colour calibration grid inside the card outline on one page.

    Args:
        grid: Output of generate_calibration_grid()
        settings: Output settings providing page, card, scale and offsets
        output_path: Where to save the generated PDF
    """
    page_height = settings.page_size.height
    c = _new_canvas(output_path, settings.page_size.width, page_height)

    card_x, card_y, card_width, card_height = calibration_sheet_card_box(settings)
    center_x = card_x + card_width / 2

    # Card outline
    c.setStrokeColorRGB(200 / 255, 200 / 255, 200 / 255)
    c.setLineWidth(0.01 * reportlab_inch)
    c.rect(*rect_to_pdf_coords(card_x, card_y, card_width, card_height, page_height), stroke=1, fill=0)

    rows = len(grid["cells"])
    columns = len(grid["cells"][0])
    grid_top = card_y + SHEET_HEADER_HEIGHT
    cell_width = (card_width - SHEET_LABEL_MARGIN) / columns
    cell_height = (card_height - SHEET_HEADER_HEIGHT - SHEET_LABEL_MARGIN - SHEET_FOOTER_HEIGHT) / rows

    # Header
    c.setFillColorRGB(0, 0, 0)
    c.setFont("Helvetica", 8)
    c.drawCentredString(*inches_to_pdf_coords(center_x, card_y + 0.08, page_height), "COLOR CALIBRATION TEST")
    c.setFont("Helvetica", 6)
    axes = f"{grid['horizontal'].parameter.value.upper()} × {grid['vertical'].parameter.value.upper()}"
    c.drawCentredString(*inches_to_pdf_coords(center_x, card_y + 0.13, page_height), axes)

    for row, cells in enumerate(grid["cells"]):
        for col, cell in enumerate(cells):
            cell_x = card_x + SHEET_LABEL_MARGIN + col * cell_width
            cell_y = grid_top + row * cell_height
            rect = rect_to_pdf_coords(cell_x, cell_y, cell_width, cell_height, page_height)

            c.drawImage(ImageReader(cell), *rect, mask="auto", preserveAspectRatio=False)

            c.setStrokeColorRGB(150 / 255, 150 / 255, 150 / 255)
            c.setLineWidth(0.005 * reportlab_inch)
            c.rect(*rect, stroke=1, fill=0)

            c.setFont("Helvetica", 5)
            c.setFillColorRGB(0, 0, 0)
            if row == 0:
                c.drawCentredString(
                    *inches_to_pdf_coords(cell_x + cell_width / 2, grid_top - 0.02, page_height),
                    grid["horizontal_labels"][col],
                )
            if col == 0:
                label_x, label_y = inches_to_pdf_coords(
                    card_x + SHEET_LABEL_MARGIN - 0.02, cell_y + cell_height / 2, page_height
                )
                c.saveState()
                c.translate(label_x, label_y)
                c.rotate(90)
                c.drawCentredString(0, 0, grid["vertical_labels"][row])
                c.restoreState()

    # Footer
    c.setFont("Helvetica", 4)
    c.setFillColorRGB(100 / 255, 100 / 255, 100 / 255)
    c.drawCentredString(
        *inches_to_pdf_coords(center_x, card_y + card_height - 0.08, page_height),
        "Print > Compare > Select best cell > Apply settings",
    )

    c.showPage()
    c.save()
    logger.info(f"Wrote {columns}x{rows} colour calibration sheet to {output_path}")


def render_printer_calibration_pdf(
    output_path: str | Path,
    card_width: float = 2.5,
    card_height: float = 3.5,
    media_width: float = 8.5,
    media_height: float = 11.0,
    offset_x: float = 0.0,
    offset_y: float = 0.0,
    scale_percent: float = 100.0,
) -> None:
    """Generate a printer calibration card.

    The page draws a light card outline and a crosshair whose arms are
    scaled by ``scale_percent`` so they measure exactly 1.0" when the printer
    applies that scale. Measure from the crosshair centre to the right and
    top edges of the cut card, plus one arm, and feed the numbers to
    calculate_calibration_settings().

    Args:
        output_path: Where to save the PDF
        card_width: Card width (inches)
        card_height: Card height (inches)
        media_width: Paper width (inches)
        media_height: Paper height (inches)
        offset_x: Horizontal offset (inches, positive = right)
        offset_y: Vertical offset (inches, positive = down)
        scale_percent: Scale applied to the crosshair
    """
    c = _new_canvas(output_path, media_width, media_height)

    card_x = (media_width - card_width) / 2 + offset_x
    card_y = (media_height - card_height) / 2 + offset_y
    logger.info(
        f'Generating calibration card: {card_width}" x {card_height}" at '
        f'({card_x:.3f}", {card_y:.3f}") on {media_width}" x {media_height}" media'
    )

    # Card outline for cutting reference
    c.setStrokeColorRGB(200 / 255, 200 / 255, 200 / 255)
    c.setLineWidth(0.01 * reportlab_inch)
    c.rect(*rect_to_pdf_coords(card_x, card_y, card_width, card_height, media_height), stroke=1, fill=0)

    # Crosshair with a gap at the centre
    arm = CROSSHAIR_LENGTH_INCHES * scale_percent / 100
    gap = CROSSHAIR_GAP_INCHES
    center_x = card_x + card_width / 2
    center_y = card_y + card_height / 2

    c.setStrokeColorRGB(0, 0, 0)
    c.setLineWidth(0.04 * reportlab_inch)
    segments = [
        (center_x - arm / 2, center_y, center_x - gap / 2, center_y),
        (center_x + gap / 2, center_y, center_x + arm / 2, center_y),
        (center_x, center_y - arm / 2, center_x, center_y - gap / 2),
        (center_x, center_y + gap / 2, center_x, center_y + arm / 2),
    ]
    for x1, y1, x2, y2 in segments:
        c.line(*inches_to_pdf_coords(x1, y1, media_height), *inches_to_pdf_coords(x2, y2, media_height))

    # Labels
    c.setFillColorRGB(0, 0, 0)
    c.setFont("Helvetica", 10)
    c.drawString(*inches_to_pdf_coords(center_x + arm / 2 + 0.05, center_y + 0.05, media_height), '1.0"')
    c.drawString(*inches_to_pdf_coords(center_x + 0.05, center_y - arm / 2 - 0.05, media_height), '1.0"')

    c.setFont("Helvetica-Bold", 12)
    c.drawCentredString(*inches_to_pdf_coords(center_x, card_y + 0.3, media_height), "CALIBRATION CARD")

    c.showPage()
    c.save()
    logger.info(f"Calibration card saved to: {output_path}")
