"""Async orchestration of card preparation, previews and calibration grids.

This module handles:
- Image decode and per-card processing with deadlines
- Explicit generation tokens so superseded work never reaches shared state
- Calibration cell rendering on a bounded worker pool

Blocking Pillow/numpy work runs in executor threads; every wait is bounded by
``asyncio.wait_for`` and a timeout surfaces as ProcessingTimeoutError.
"""

import asyncio
import functools
import io
import logging
from collections.abc import Awaitable, Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Generic, TypeVar

from PIL import Image, UnidentifiedImageError

from cardprint.calibration import (
    CalibrationGrid,
    assemble_calibration_grid,
    plan_calibration_grid,
    render_calibration_cell,
)
from cardprint.color import apply_color_transformation, has_non_default_settings
from cardprint.compositing import composite_card_image
from cardprint.config import (
    CARD_PROCESSING_TIMEOUT_S,
    DEFAULT_CALIBRATION_WORKERS,
    IMAGE_DECODE_TIMEOUT_S,
    PREVIEW_MAX_HEIGHT_PX,
    PREVIEW_MAX_WIDTH_PX,
)
from cardprint.errors import ImageDecodeError, ProcessingTimeoutError, StaleGenerationError
from cardprint.layout import (
    calculate_card_positioning,
    calculate_preview_scaling,
    calculate_render_dimensions,
    region_to_preview,
    validate_image_dimensions,
)
from cardprint.rendering import PlacedCard
from cardprint.validation import (
    CalibrationGridConfig,
    CardType,
    ColorTransformation,
    OutputSettings,
    PreviewGeometry,
    PreviewRegion,
    RenderDimensions,
    SelectedRegion,
    TransformationAxis,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PreparedCard(PlacedCard):
    """Finished card buffer ready for document assembly."""

    dimensions: RenderDimensions
    fallback: bool


class CardPreview(PlacedCard):
    """Screen preview of a card on its page."""

    dimensions: RenderDimensions
    preview: PreviewGeometry
    region: PreviewRegion | None
    png: bytes
    fallback: bool


class GenerationCounter:
    """Issues monotonically increasing generation tokens."""

    def __init__(self) -> None:
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def next(self) -> "GenerationToken":
        self._generation += 1
        return GenerationToken(self, self._generation)


class GenerationToken:
    """Identifies one generation of work issued by a GenerationCounter."""

    def __init__(self, counter: GenerationCounter, generation: int) -> None:
        self._counter = counter
        self.generation = generation

    @property
    def is_stale(self) -> bool:
        return self.generation != self._counter.generation

    def check(self) -> None:
        """Raise StaleGenerationError if a newer generation has been issued."""
        if self.is_stale:
            raise StaleGenerationError(
                f"Generation {self.generation} superseded by {self._counter.generation}"
            )

    def __repr__(self) -> str:
        return f"GenerationToken(generation={self.generation}, stale={self.is_stale})"


class LatestResult(Generic[T]):
    """Holds the result of the newest generation only.

    Each ``run`` issues a fresh token; results carrying an older token are
    discarded instead of overwriting newer state.
    """

    def __init__(self) -> None:
        self.counter = GenerationCounter()
        self.value: T | None = None
        self.generation = 0

    def begin(self) -> GenerationToken:
        return self.counter.next()

    def commit(self, token: GenerationToken, value: T) -> bool:
        """Store ``value`` if ``token`` is still current. Returns True if stored."""
        if token.is_stale:
            logger.warning(f"Discarding stale result from generation {token.generation}")
            return False
        self.value = value
        self.generation = token.generation
        return True

    async def run(self, operation: Callable[[GenerationToken], Awaitable[T]]) -> T | None:
        """Run ``operation`` under a new token and commit its result.

        Returns:
            The committed value, or None if the run was superseded
        """
        token = self.begin()
        try:
            value = await operation(token)
        except StaleGenerationError as e:
            logger.info(f"Abandoned superseded work: {e}")
            return None
        return value if self.commit(token, value) else None


async def run_blocking(
    func: Callable[..., T],
    *args: Any,
    timeout: float,
    description: str,
    executor: Executor | None = None,
) -> T:
    """Run a blocking call in an executor with a deadline.

    Raises:
        ProcessingTimeoutError: If the call does not finish within ``timeout`` seconds
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(executor, functools.partial(func, *args)),
            timeout,
        )
    except asyncio.TimeoutError as e:
        logger.error(f"{description} timed out after {timeout:g}s")
        raise ProcessingTimeoutError(f"{description} timed out after {timeout:g}s") from e


def decode_image(path: str | Path) -> Image.Image:
    """Load and fully decode an image file.

    Raises:
        ImageDecodeError: If the file is missing or not a decodable image
        InvalidImageError: If the decoded dimensions are unusable
    """
    image_path = Path(path)
    if not image_path.exists():
        raise ImageDecodeError(f"Image not found: {image_path}")

    try:
        with Image.open(image_path) as img:
            img.load()
            image = img.copy()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Failed to decode {image_path}: {e}") from e

    validate_image_dimensions(image.width, image.height)
    logger.debug(f"Decoded {image_path}: {image.width}x{image.height} {image.mode}")
    return image


async def load_card_image(path: str | Path, timeout: float = IMAGE_DECODE_TIMEOUT_S) -> Image.Image:
    """Decode a card image without blocking the event loop."""
    return await run_blocking(decode_image, path, timeout=timeout, description=f"Decoding {path}")


def prepare_card_sync(
    image: Image.Image,
    settings: OutputSettings,
    card_type: CardType | str = CardType.FRONT,
    transformation: ColorTransformation | None = None,
) -> PreparedCard:
    """Size, place, composite and colour-correct one card for print.

    Colour failures are fatal here: a print must not silently skip the
    requested correction.
    """
    dimensions = calculate_render_dimensions(image.width, image.height, settings)
    positioning = calculate_card_positioning(dimensions, settings, card_type)
    composited = composite_card_image(image, dimensions, positioning.rotation)

    card_image = composited["image"]
    if transformation is not None and has_non_default_settings(transformation):
        card_image = apply_color_transformation(card_image, transformation, strict=True)

    return PreparedCard(
        image=card_image,
        positioning=positioning,
        dimensions=dimensions,
        fallback=composited["fallback"],
    )


async def prepare_card(
    image: Image.Image,
    settings: OutputSettings,
    card_type: CardType | str = CardType.FRONT,
    transformation: ColorTransformation | None = None,
    timeout: float = CARD_PROCESSING_TIMEOUT_S,
    token: GenerationToken | None = None,
) -> PreparedCard:
    """Async prepare_card_sync() with a per-card deadline and optional generation token."""
    if token:
        token.check()
    card = await run_blocking(
        prepare_card_sync,
        image,
        settings,
        card_type,
        transformation,
        timeout=timeout,
        description="Card processing",
    )
    if token:
        token.check()
    return card


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as PNG bytes for display."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def prepare_preview_sync(
    image: Image.Image,
    settings: OutputSettings,
    card_type: CardType | str = CardType.FRONT,
    transformation: ColorTransformation | None = None,
    region: SelectedRegion | None = None,
    max_width_px: float = PREVIEW_MAX_WIDTH_PX,
    max_height_px: float = PREVIEW_MAX_HEIGHT_PX,
) -> CardPreview:
    """Build the screen preview of one card.

    Colour failures degrade to the uncorrected image with a logged warning.
    The selected region, if any, is projected into preview pixels here.
    """
    dimensions = calculate_render_dimensions(image.width, image.height, settings)
    positioning = calculate_card_positioning(dimensions, settings, card_type)
    composited = composite_card_image(image, dimensions, positioning.rotation)

    card_image = composited["image"]
    if transformation is not None and has_non_default_settings(transformation):
        card_image = apply_color_transformation(card_image, transformation)

    preview = calculate_preview_scaling(positioning, settings.page_size, max_width_px, max_height_px)

    display = card_image.resize(
        (max(1, round(preview.card_width)), max(1, round(preview.card_height))),
        Image.Resampling.LANCZOS,
    )

    return CardPreview(
        image=card_image,
        positioning=positioning,
        dimensions=dimensions,
        preview=preview,
        region=region_to_preview(region, positioning, preview) if region else None,
        png=encode_png(display),
        fallback=composited["fallback"],
    )


async def prepare_preview(
    image: Image.Image,
    settings: OutputSettings,
    card_type: CardType | str = CardType.FRONT,
    transformation: ColorTransformation | None = None,
    region: SelectedRegion | None = None,
    timeout: float = CARD_PROCESSING_TIMEOUT_S,
    token: GenerationToken | None = None,
) -> CardPreview:
    """Async prepare_preview_sync() with a deadline and optional generation token."""
    if token:
        token.check()
    preview = await run_blocking(
        prepare_preview_sync,
        image,
        settings,
        card_type,
        transformation,
        region,
        timeout=timeout,
        description="Preview rendering",
    )
    if token:
        token.check()
    return preview


def _render_cell_if_current(
    token: GenerationToken | None,
    crop_source: Image.Image,
    transformation: ColorTransformation,
    row: int,
    col: int,
) -> Image.Image:
    if token:
        token.check()
    return render_calibration_cell(crop_source, transformation, row, col)


async def generate_calibration_grid_async(
    crop_source: Image.Image,
    horizontal: TransformationAxis,
    vertical: TransformationAxis,
    grid: CalibrationGridConfig,
    baseline: ColorTransformation | None = None,
    max_workers: int = DEFAULT_CALIBRATION_WORKERS,
    timeout: float = CARD_PROCESSING_TIMEOUT_S,
    token: GenerationToken | None = None,
) -> CalibrationGrid:
    """Render calibration cells on a bounded thread pool.

    Cells are independent, so they run concurrently and are reassembled by
    (row, col). Each cell has its own deadline, counted from when a worker
    picks it up.

    Raises:
        ColorTransformFailure: If any cell fails
        ProcessingTimeoutError: If any cell exceeds ``timeout``
        StaleGenerationError: If ``token`` is superseded before the grid completes
    """
    horizontal_values, vertical_values, transformations = plan_calibration_grid(
        horizontal, vertical, grid, baseline
    )
    logger.info(
        f"Generating {grid.columns}x{grid.rows} calibration grid on {max_workers} worker(s): "
        f"{horizontal.parameter.value} x {vertical.parameter.value}"
    )

    semaphore = asyncio.Semaphore(max(1, max_workers))
    executor = ThreadPoolExecutor(max_workers=max(1, max_workers))

    async def render_cell(key: tuple[int, int]) -> Image.Image:
        # The deadline starts once a worker is free, not while queued
        async with semaphore:
            return await run_blocking(
                _render_cell_if_current,
                token,
                crop_source,
                transformations[key],
                *key,
                timeout=timeout,
                description=f"Calibration cell {key}",
                executor=executor,
            )

    try:
        keys = list(transformations)
        results = await asyncio.gather(*(render_cell(key) for key in keys))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if token:
        token.check()

    return assemble_calibration_grid(
        horizontal, vertical, horizontal_values, vertical_values, dict(zip(keys, results))
    )
