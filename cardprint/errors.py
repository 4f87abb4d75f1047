"""Error taxonomy for the card rendering and calibration pipeline.

Geometry, compositing, decode and timeout errors are fatal for the card or
grid cell being processed. ``ColorTransformFailure`` is the one error the
preview path recovers from locally by showing the untransformed image.

``CardPrintError`` derives from ``Exception`` rather than ``ValueError`` so
that raising one inside a pydantic validator propagates as-is instead of
being folded into a ``ValidationError``.
"""


class CardPrintError(Exception):
    """Base class for all cardprint errors."""


class InvalidImageError(CardPrintError):
    """Source image has zero, negative or oversized pixel dimensions."""


class InvalidSettingsError(CardPrintError):
    """Output settings are out of range or name an unknown sizing mode."""


class CanvasAllocationError(CardPrintError):
    """Requested output buffer exceeds the canvas size cap."""


class ProcessingTimeoutError(CardPrintError):
    """An image operation exceeded its deadline."""


class ColorTransformFailure(CardPrintError):
    """Colour transformation produced invalid numbers or could not run."""


class ImageDecodeError(CardPrintError):
    """Source image could not be loaded."""


class StaleGenerationError(CardPrintError):
    """A newer generation superseded the operation before it finished."""
