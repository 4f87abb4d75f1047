"""Card image compositing: sizing, rotation and clipping to the card container.

The output buffer has the card container's pixel size at EXTRACTION_DPI
(width and height swapped for quarter turns). Only the centred window of the
source that can land inside the buffer is resized to the image render
size, then rotated about its centre and pasted centred. This clips
fill-card images to the card without materialising the whole render size.
"""

import logging
import math
from typing import TypedDict

from PIL import Image

from cardprint.config import EXTRACTION_DPI, MAX_CANVAS_SIZE_PX
from cardprint.coordinates import inches_to_px
from cardprint.errors import CanvasAllocationError, InvalidImageError
from cardprint.layout import is_quarter_turn, normalize_rotation
from cardprint.validation import RenderDimensions

logger = logging.getLogger(__name__)

# Clockwise quarter turns in a y-down coordinate system
_TRANSPOSE_FOR_ROTATION = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}

_RESAMPLE_MARGIN_PX = 2


class CompositedImage(TypedDict):
    """Compositor output."""

    image: Image.Image
    width: float  # inches
    height: float  # inches
    fallback: bool  # True if the original image was passed through unprocessed


def rotate_image(image: Image.Image, rotation: float) -> Image.Image:
    """Rotate clockwise by ``rotation`` degrees, expanding to fit.

    Quarter turns are exact transposes; other angles are resampled bicubically.
    """
    normalized = normalize_rotation(rotation)
    if normalized == 0:
        return image
    if normalized in _TRANSPOSE_FOR_ROTATION:
        return image.transpose(_TRANSPOSE_FOR_ROTATION[normalized])
    # PIL rotates counter-clockwise for positive angles
    return image.rotate(-normalized, resample=Image.Resampling.BICUBIC, expand=True)


def visible_window(canvas_width: float, canvas_height: float, rotation: float) -> tuple[float, float]:
    """Size of the unrotated region that covers a canvas after rotation.

    This is the bounding box of the canvas rotated back by ``rotation``,
    padded by a few pixels for the resampling kernels.
    """
    theta = math.radians(normalize_rotation(rotation))
    cos, sin = abs(math.cos(theta)), abs(math.sin(theta))
    width = canvas_width * cos + canvas_height * sin
    height = canvas_width * sin + canvas_height * cos
    return width + 2 * _RESAMPLE_MARGIN_PX, height + 2 * _RESAMPLE_MARGIN_PX


def composite_card_image(
    image: Image.Image,
    dimensions: RenderDimensions,
    rotation: float,
) -> CompositedImage:
    """Size, rotate and clip a card image to its container.

    Args:
        image: Extracted card image
        dimensions: Output of calculate_render_dimensions()
        rotation: Rotation in degrees (any value, normalized to [0, 360))

    Returns:
        CompositedImage with an RGBA buffer sized to the (post-rotation)
        card container. If drawing fails for a non-critical reason, the
        original image is returned with the container size and
        ``fallback=True``.

    Raises:
        InvalidImageError: If the source has no pixels or the pixel sizes are invalid
        CanvasAllocationError: If the container exceeds MAX_CANVAS_SIZE_PX or
            the buffer cannot be allocated
    """
    normalized = normalize_rotation(rotation)

    if image.width <= 0 or image.height <= 0:
        raise InvalidImageError("Invalid image: no dimensions available")

    card_width_px = inches_to_px(dimensions.card_width, EXTRACTION_DPI)
    card_height_px = inches_to_px(dimensions.card_height, EXTRACTION_DPI)
    image_width_px = inches_to_px(dimensions.image_width, EXTRACTION_DPI)
    image_height_px = inches_to_px(dimensions.image_height, EXTRACTION_DPI)

    sizes = (card_width_px, card_height_px, image_width_px, image_height_px)
    if not all(math.isfinite(v) and v > 0 for v in sizes):
        raise InvalidImageError(
            f"Invalid pixel dimensions: card {card_width_px}x{card_height_px}, "
            f"image {image_width_px}x{image_height_px}"
        )

    if card_width_px > MAX_CANVAS_SIZE_PX or card_height_px > MAX_CANVAS_SIZE_PX:
        raise CanvasAllocationError(
            f"Canvas too large: {card_width_px:.0f}x{card_height_px:.0f}. "
            f"Maximum: {MAX_CANVAS_SIZE_PX}x{MAX_CANVAS_SIZE_PX}"
        )

    canvas_width = max(1, round(card_width_px))
    canvas_height = max(1, round(card_height_px))
    if is_quarter_turn(normalized):
        canvas_width, canvas_height = canvas_height, canvas_width

    try:
        canvas = Image.new("RGBA", (canvas_width, canvas_height), (0, 0, 0, 0))
    except MemoryError as e:
        raise CanvasAllocationError(f"Failed to allocate {canvas_width}x{canvas_height} canvas") from e

    try:
        # Clip to the visible window before resizing so fill-card never
        # allocates the full render size
        visible_width, visible_height = visible_window(canvas_width, canvas_height, normalized)
        window_width_px = min(image_width_px, visible_width)
        window_height_px = min(image_height_px, visible_height)
        target_size = (max(1, round(window_width_px)), max(1, round(window_height_px)))

        source = image.convert("RGBA")
        if window_width_px < image_width_px or window_height_px < image_height_px:
            half_width = window_width_px * source.width / image_width_px / 2
            half_height = window_height_px * source.height / image_height_px / 2
            box = (
                source.width / 2 - half_width,
                source.height / 2 - half_height,
                source.width / 2 + half_width,
                source.height / 2 + half_height,
            )
            source = source.resize(target_size, Image.Resampling.LANCZOS, box=box)
        elif source.size != target_size:
            source = source.resize(target_size, Image.Resampling.LANCZOS)

        rotated = rotate_image(source, normalized)

        left = round((canvas_width - rotated.width) / 2)
        top = round((canvas_height - rotated.height) / 2)
        canvas.paste(rotated, (left, top))
    except MemoryError as e:
        raise CanvasAllocationError(f"Out of memory while compositing: {e}") from e
    except (ValueError, OSError) as e:
        logger.error(f"Image processing failed (rotation: {normalized}°): {e}")
        logger.warning("Using fallback image due to processing error")
        return CompositedImage(
            image=image,
            width=dimensions.card_width,
            height=dimensions.card_height,
            fallback=True,
        )

    logger.debug(f"Composited {image.width}x{image.height} image into {canvas_width}x{canvas_height} canvas")

    return CompositedImage(
        image=canvas,
        width=canvas_width / EXTRACTION_DPI,
        height=canvas_height / EXTRACTION_DPI,
        fallback=False,
    )
