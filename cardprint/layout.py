"""Card sizing, placement and preview geometry.

This module handles:
- Card container and image render sizes per sizing mode
- Rotation-aware card placement on the page
- Mapping print-space placement into a bounded screen preview
- Calibration crop region sizing and preview ↔ inches conversion

Everything here is a pure function of its inputs; results are recomputed on
every image or settings change rather than cached.
"""

import logging

from cardprint.config import (
    EXTRACTION_DPI,
    MAX_IMAGE_DIMENSION_PX,
    PREVIEW_MAX_HEIGHT_PX,
    PREVIEW_MAX_WIDTH_PX,
)
from cardprint.coordinates import inches_to_screen_px, px_to_inches
from cardprint.errors import InvalidImageError
from cardprint.validation import (
    CalibrationGridConfig,
    CardPositioning,
    CardType,
    OutputSettings,
    PageSize,
    PreviewGeometry,
    PreviewRegion,
    RenderDimensions,
    SelectedRegion,
    SizingMode,
)

logger = logging.getLogger(__name__)


def validate_image_dimensions(width_px: int, height_px: int) -> None:
    """Check that source pixel dimensions are usable.

    Raises:
        InvalidImageError: If either side is zero, negative or above the cap
    """
    if width_px <= 0 or height_px <= 0:
        raise InvalidImageError(f"Invalid image dimensions: {width_px} x {height_px}")
    if width_px > MAX_IMAGE_DIMENSION_PX or height_px > MAX_IMAGE_DIMENSION_PX:
        raise InvalidImageError(
            f"Image too large: {width_px} x {height_px}. "
            f"Maximum allowed: {MAX_IMAGE_DIMENSION_PX} x {MAX_IMAGE_DIMENSION_PX}"
        )


def calculate_render_dimensions(
    source_width_px: int,
    source_height_px: int,
    settings: OutputSettings,
) -> RenderDimensions:
    """Calculate card container and image render sizes.

    Args:
        source_width_px: Extracted image width in pixels
        source_height_px: Extracted image height in pixels
        settings: Validated output settings

    Returns:
        RenderDimensions in inches

    Raises:
        InvalidImageError: If the pixel dimensions are unusable

    Note:
        - Source pixels are converted at EXTRACTION_DPI
        - Container = (card + 2 × bleed) × scale
        - Aspect comparison uses the pre-scale target; the scale is then
          applied to the image size as well as the container
        - "actual-size": original extracted size
        - "fit-to-card": whole image inside the container (may letterbox)
        - "fill-card": container fully covered (may crop)
    """
    validate_image_dimensions(source_width_px, source_height_px)

    original_width = px_to_inches(source_width_px, EXTRACTION_DPI)
    original_height = px_to_inches(source_height_px, EXTRACTION_DPI)

    target_width = settings.card_size.width + settings.bleed_inches * 2
    target_height = settings.card_size.height + settings.bleed_inches * 2

    scale = settings.scale_percent / 100
    card_width = target_width * scale
    card_height = target_height * scale

    mode = settings.sizing_mode
    image_aspect = original_width / original_height
    target_aspect = target_width / target_height

    if mode is SizingMode.ACTUAL_SIZE:
        image_width, image_height = original_width, original_height
    elif mode is SizingMode.FIT_TO_CARD:
        if image_aspect > target_aspect:
            # Image is wider - fit to width
            image_width = target_width
            image_height = target_width / image_aspect
        else:
            # Image is taller - fit to height
            image_height = target_height
            image_width = target_height * image_aspect
    else:
        if image_aspect > target_aspect:
            # Image is wider - fill height, crop width
            image_height = target_height
            image_width = target_height * image_aspect
        else:
            # Image is taller - fill width, crop height
            image_width = target_width
            image_height = target_width / image_aspect

    image_width *= scale
    image_height *= scale

    logger.debug(
        f"Render dimensions ({mode.value}): card {card_width:.4f}\" x {card_height:.4f}\", "
        f"image {image_width:.4f}\" x {image_height:.4f}\""
    )

    return RenderDimensions(
        card_width=card_width,
        card_height=card_height,
        image_width=image_width,
        image_height=image_height,
        original_width=original_width,
        original_height=original_height,
        sizing_mode=mode,
    )


def normalize_rotation(rotation: float) -> float:
    """Normalize a rotation in degrees to [0, 360)."""
    return ((rotation % 360) + 360) % 360


def is_quarter_turn(rotation: float) -> bool:
    """True for rotations that swap width and height (90° and 270°)."""
    return normalize_rotation(rotation) in (90, 270)


def calculate_card_positioning(
    dimensions: RenderDimensions,
    settings: OutputSettings,
    card_type: CardType | str,
) -> CardPositioning:
    """Resolve the card's placement on the page.

    Args:
        dimensions: Output of calculate_render_dimensions()
        settings: Output settings providing page size, offsets and rotation
        card_type: "front" or "back", selects the rotation

    Returns:
        CardPositioning with the post-rotation bounding box

    Note:
        Offsets are not range-checked; a card may end up partly off the page.
    """
    rotation = settings.rotation.for_card_type(CardType(card_type))

    width, height = dimensions.card_width, dimensions.card_height
    if is_quarter_turn(rotation):
        width, height = height, width

    x = (settings.page_size.width - width) / 2 + settings.offset.horizontal
    y = (settings.page_size.height - height) / 2 + settings.offset.vertical

    return CardPositioning(x=x, y=y, width=width, height=height, rotation=rotation)


def calculate_preview_scaling(
    positioning: CardPositioning,
    page_size: PageSize,
    max_width_px: float = PREVIEW_MAX_WIDTH_PX,
    max_height_px: float = PREVIEW_MAX_HEIGHT_PX,
) -> PreviewGeometry:
    """Convert print-space placement to screen preview pixels.

    Args:
        positioning: Card placement in inches
        page_size: Page dimensions in inches
        max_width_px: Preview width bound
        max_height_px: Preview height bound

    Returns:
        PreviewGeometry; a single uniform scale is applied to page, card
        size and card origin when the page exceeds either bound
    """
    page_width = inches_to_screen_px(page_size.width)
    page_height = inches_to_screen_px(page_size.height)

    scale = 1.0
    if page_width > max_width_px or page_height > max_height_px:
        scale = min(max_width_px / page_width, max_height_px / page_height)
        page_width *= scale
        page_height *= scale

    return PreviewGeometry(
        scale=scale,
        page_width=page_width,
        page_height=page_height,
        card_width=inches_to_screen_px(positioning.width) * scale,
        card_height=inches_to_screen_px(positioning.height) * scale,
        card_x=inches_to_screen_px(positioning.x) * scale,
        card_y=inches_to_screen_px(positioning.y) * scale,
    )


# Selected regions are expressed relative to the placed card box, i.e. the
# post-rotation rectangle described by CardPositioning. That is also the
# orientation of the composited card image they are cropped from.


def calculate_crop_region_size(
    positioning: CardPositioning,
    grid: CalibrationGridConfig,
) -> tuple[float, float]:
    """Size of one calibration cell in card inches: card box / grid count."""
    return positioning.width / grid.columns, positioning.height / grid.rows


def _clamp_center(
    center_x: float, center_y: float, width: float, height: float, positioning: CardPositioning
) -> tuple[float, float]:
    center_x = min(max(center_x, width / 2), positioning.width - width / 2)
    center_y = min(max(center_y, height / 2), positioning.height - height / 2)
    return center_x, center_y


def select_region(
    preview_x: float,
    preview_y: float,
    positioning: CardPositioning,
    preview: PreviewGeometry,
    grid: CalibrationGridConfig,
) -> SelectedRegion:
    """Turn a click in preview pixels into an inches-space SelectedRegion.

    The centre is clamped so the whole region stays on the card.

    Args:
        preview_x: Click X in preview pixels (page-relative)
        preview_y: Click Y in preview pixels (page-relative)
        positioning: Current card placement
        preview: Current preview geometry
        grid: Calibration grid, sets the region size

    Returns:
        SelectedRegion in card inches
    """
    width, height = calculate_crop_region_size(positioning, grid)

    normalized_x = (preview_x - preview.card_x) / preview.card_width
    normalized_y = (preview_y - preview.card_y) / preview.card_height

    center_x, center_y = _clamp_center(
        normalized_x * positioning.width, normalized_y * positioning.height, width, height, positioning
    )
    return SelectedRegion(center_x=center_x, center_y=center_y, width=width, height=height)


def resize_region(
    region: SelectedRegion,
    positioning: CardPositioning,
    grid: CalibrationGridConfig,
) -> SelectedRegion:
    """Recompute a region's size after a grid change, keeping its centre on the card."""
    width, height = calculate_crop_region_size(positioning, grid)
    center_x, center_y = _clamp_center(region.center_x, region.center_y, width, height, positioning)
    return SelectedRegion(center_x=center_x, center_y=center_y, width=width, height=height)


def region_to_preview(
    region: SelectedRegion,
    positioning: CardPositioning,
    preview: PreviewGeometry,
) -> PreviewRegion:
    """Project an inches-space region into preview pixels."""
    scale_x = preview.card_width / positioning.width
    scale_y = preview.card_height / positioning.height
    return PreviewRegion(
        center_x=preview.card_x + region.center_x * scale_x,
        center_y=preview.card_y + region.center_y * scale_y,
        width=region.width * scale_x,
        height=region.height * scale_y,
    )
