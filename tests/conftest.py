"""Shared fixtures: synthetic card images and settings."""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from cardprint.validation import OutputSettings


def make_gradient(width: int, height: int) -> Image.Image:
    """RGB image with a horizontal red ramp, vertical green ramp and constant blue."""
    xs = np.linspace(0, 255, width, dtype=np.float64)
    ys = np.linspace(0, 255, height, dtype=np.float64)
    red = np.tile(xs, (height, 1))
    green = np.tile(ys[:, None], (1, width))
    blue = np.full((height, width), 96.0)
    pixels = np.dstack([red, green, blue]).round().astype(np.uint8)
    return Image.fromarray(pixels)


@pytest.fixture
def poker_image() -> Image.Image:
    """750x1050 image: exactly 2.5 x 3.5 inches at 300 DPI."""
    return make_gradient(750, 1050)


@pytest.fixture
def small_image() -> Image.Image:
    """Small 60x40 image for fast colour tests."""
    return make_gradient(60, 40)


@pytest.fixture
def poker_image_file(tmp_path: Path, poker_image: Image.Image) -> Path:
    """PNG file of the poker-sized image."""
    path = tmp_path / "card.png"
    poker_image.save(path)
    return path


@pytest.fixture
def default_settings() -> OutputSettings:
    """Default output settings: 2.5 x 3.5 card on a 3.5 x 3.5 page."""
    return OutputSettings()
