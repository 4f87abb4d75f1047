"""Centralized configuration constants for cardprint."""

# DPI settings
EXTRACTION_DPI = 300  # Resolution card images were rasterized at
PRINT_DPI = 300  # Final print resolution for calibration cells
SCREEN_DPI = 72  # Screen resolution used for preview geometry
POINTS_PER_INCH = 72  # PDF user space unit

# Raster limits
MAX_IMAGE_DIMENSION_PX = 20000  # Per side, rejects absurd source images
MAX_CANVAS_SIZE_PX = 10000  # Per side, caps compositor output buffers

# Output settings limits
MAX_BLEED_INCHES = 2.0
MAX_SCALE_PERCENT = 500.0

# Preview constraints
PREVIEW_MAX_WIDTH_PX = 400
PREVIEW_MAX_HEIGHT_PX = 500

# Timeouts (seconds)
IMAGE_DECODE_TIMEOUT_S = 10.0
CARD_PROCESSING_TIMEOUT_S = 15.0

# Calibration grid
DEFAULT_GRID_COLUMNS = 5
DEFAULT_GRID_ROWS = 4
DEFAULT_CALIBRATION_WORKERS = 4
CROSSHAIR_LENGTH_INCHES = 1.0
CROSSHAIR_GAP_INCHES = 0.04

# Sizing modes
SIZING_MODES = ("actual-size", "fit-to-card", "fill-card")
DEFAULT_SIZING_MODE = "actual-size"

# Page sizes in inches
PAGE_SIZES = {
    "letter": {"width": 8.5, "height": 11.0},
    "legal": {"width": 8.5, "height": 14.0},
    "a4": {"width": 8.27, "height": 11.69},
    "a3": {"width": 11.69, "height": 16.54},
    "tabloid": {"width": 11.0, "height": 17.0},
    "card": {"width": 3.5, "height": 3.5},
}

# Card sizes in inches
CARD_SIZES = {
    "poker": {"width": 2.5, "height": 3.5},
    "bridge": {"width": 2.25, "height": 3.5},
    "tarot": {"width": 2.75, "height": 4.75},
    "mini-american": {"width": 1.63, "height": 2.5},
    "mini-euro": {"width": 1.73, "height": 2.68},
    "square": {"width": 2.5, "height": 2.5},
}
