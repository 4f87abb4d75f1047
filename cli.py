"""Command-line interface for cardprint card rendering and calibration.

Usage:
    # Inspect geometry for a card image
    python cli.py geometry card.png --card poker --sizing-mode fit-to-card

    # Print-ready PDF, one card per page
    python cli.py render cards.pdf front1.png front2.png --settings settings.json

    # Colour calibration sheet around the card centre
    python cli.py color-grid card.png grid.pdf --h-param brightness --v-param contrast

    # Printer calibration card, then turn the measurements into settings
    python cli.py printer-card calibration.pdf --page letter
    python cli.py measure --right 1.27 --top 1.74 --crosshair 1.01
"""

import asyncio
import functools
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from cardprint.calibration import calculate_calibration_settings, extract_pixel_perfect_crop
from cardprint.color import COLOR_PRESETS, PARAMETER_RANGES, format_parameter_value, set_parameter
from cardprint.config import CARD_SIZES, DEFAULT_CALIBRATION_WORKERS, PAGE_SIZES, SIZING_MODES
from cardprint.errors import CardPrintError
from cardprint.layout import (
    calculate_card_positioning,
    calculate_preview_scaling,
    calculate_render_dimensions,
    select_region,
)
from cardprint.pipeline import (
    generate_calibration_grid_async,
    load_card_image,
    prepare_card,
    prepare_preview,
)
from cardprint.rendering import (
    load_printer_calibration,
    render_card_pdf,
    render_color_calibration_pdf,
    render_printer_calibration_pdf,
)
from cardprint.validation import (
    CalibrationGridConfig,
    CardType,
    ColorParameter,
    ColorTransformation,
    OutputSettings,
    TransformationAxis,
    check_card_within_page,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure root logger
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

PARAMETER_NAMES = [p.value for p in ColorParameter]


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report pipeline and validation failures as click errors."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (CardPrintError, ValidationError) as e:
            logger.error(f"{func.__name__} failed: {e}")
            raise click.ClickException(str(e)) from e

    return wrapper


def settings_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Output settings options shared by the card commands."""
    options = [
        click.option("--settings", "settings_path", type=click.Path(exists=True), help="Output settings JSON"),
        click.option("--page", type=click.Choice(sorted(PAGE_SIZES)), help="Page size preset"),
        click.option("--card", type=click.Choice(sorted(CARD_SIZES)), help="Card size preset"),
        click.option("--sizing-mode", type=click.Choice(SIZING_MODES), help="Image sizing mode"),
        click.option("--bleed", type=float, help="Bleed in inches"),
        click.option("--scale", type=float, help="Scale percent"),
        click.option("--rotation", type=float, help="Rotation in degrees for the chosen card type"),
        click.option("--offset-x", type=float, help="Horizontal offset in inches (positive = right)"),
        click.option("--offset-y", type=float, help="Vertical offset in inches (positive = down)"),
        click.option("--card-type", type=click.Choice([t.value for t in CardType]), default="front"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_settings(
    settings_path: str | None,
    page: str | None,
    card: str | None,
    sizing_mode: str | None,
    bleed: float | None,
    scale: float | None,
    rotation: float | None,
    offset_x: float | None,
    offset_y: float | None,
    card_type: str,
) -> OutputSettings:
    """Load settings JSON (or defaults) and apply command-line overrides."""
    if settings_path:
        data = OutputSettings.model_validate_json(Path(settings_path).read_text()).model_dump()
    else:
        data = OutputSettings().model_dump()

    if page:
        data["page_size"] = PAGE_SIZES[page]
    if card:
        data["card_size"] = CARD_SIZES[card]
    if sizing_mode:
        data["sizing_mode"] = sizing_mode
    if bleed is not None:
        data["bleed_inches"] = bleed
    if scale is not None:
        data["scale_percent"] = scale
    if rotation is not None:
        data["rotation"][card_type] = rotation
    if offset_x is not None:
        data["offset"]["horizontal"] = offset_x
    if offset_y is not None:
        data["offset"]["vertical"] = offset_y

    return OutputSettings.model_validate(data)


def color_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Colour transformation options shared by the card commands."""
    options = [
        click.option("--preset", type=click.Choice(sorted(COLOR_PRESETS)), help="Colour preset"),
        click.option("--color", "color_path", type=click.Path(exists=True), help="Colour transformation JSON"),
        click.option(
            "--set",
            "overrides",
            multiple=True,
            metavar="PARAM=VALUE",
            help="Override one colour parameter (repeatable)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_transformation(preset: str | None, color_path: str | None, overrides: tuple[str, ...]) -> ColorTransformation:
    """Combine preset, JSON file and PARAM=VALUE overrides, in that order."""
    transformation = COLOR_PRESETS[preset].transformation if preset else ColorTransformation()
    if color_path:
        transformation = ColorTransformation.model_validate_json(Path(color_path).read_text())

    for override in overrides:
        name, sep, value = override.partition("=")
        if not sep:
            raise click.BadParameter(f"Expected PARAM=VALUE, got {override!r}", param_hint="--set")
        try:
            transformation = set_parameter(transformation, name.strip(), float(value))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--set") from e

    return transformation


@click.group()
@click.option("--log-file", type=click.Path(), help="Also write DEBUG logs to this file")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
def cli(log_file: str | None, verbose: bool) -> None:
    """cardprint - card image rendering and print calibration."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)


@cli.command()
@click.argument("image_path", type=click.Path(exists=True))
@settings_options
@handle_errors
def geometry(image_path: str, card_type: str, **settings_kwargs: Any) -> None:
    """Print render dimensions, placement and preview geometry as JSON."""
    settings = build_settings(card_type=card_type, **settings_kwargs)
    image = asyncio.run(load_card_image(image_path))

    dimensions = calculate_render_dimensions(image.width, image.height, settings)
    positioning = calculate_card_positioning(dimensions, settings, card_type)
    preview = calculate_preview_scaling(positioning, settings.page_size)

    if not check_card_within_page(positioning, settings.page_size):
        click.echo("⚠ Card extends beyond page boundaries", err=True)

    click.echo(
        json.dumps(
            {
                "dimensions": dimensions.model_dump(mode="json"),
                "positioning": positioning.model_dump(),
                "preview": preview.model_dump(),
            },
            indent=2,
        )
    )


@cli.command()
@click.argument("output_path", type=click.Path())
@click.argument("image_paths", nargs=-1, required=True, type=click.Path(exists=True))
@settings_options
@color_options
@click.option("--calibration", "calibration_path", type=click.Path(), help="Printer calibration profile JSON")
@handle_errors
def render(
    output_path: str,
    image_paths: tuple[str, ...],
    card_type: str,
    preset: str | None,
    color_path: str | None,
    overrides: tuple[str, ...],
    calibration_path: str | None,
    **settings_kwargs: Any,
) -> None:
    """Render card images to a print-ready PDF, one card per page."""
    settings = build_settings(card_type=card_type, **settings_kwargs)
    transformation = build_transformation(preset, color_path, overrides)
    calibration = load_printer_calibration(calibration_path) if calibration_path else None

    click.echo(f"🖨️  Rendering {len(image_paths)} card(s) to {output_path}...")

    async def prepare_all() -> list:
        cards = []
        for path in image_paths:
            image = await load_card_image(path)
            card = await prepare_card(image, settings, card_type, transformation)
            if card["fallback"]:
                click.echo(f"  ⚠ {path}: rendered without rotation/clipping", err=True)
            else:
                click.echo(f"  ✓ {path}")
            cards.append(card)
        return cards

    cards = asyncio.run(prepare_all())
    pages = render_card_pdf(cards, settings.page_size, output_path, calibration=calibration)

    click.echo(f"✓ Rendered {pages} page(s)")
    click.echo(f"📁 Output PDF saved to: {output_path}")


@cli.command()
@click.argument("image_path", type=click.Path(exists=True))
@click.argument("output_path", type=click.Path())
@settings_options
@color_options
@click.option("--click-x", type=float, help="Preview X of a calibration region pick")
@click.option("--click-y", type=float, help="Preview Y of a calibration region pick")
@click.option("--columns", default=5, show_default=True, help="Calibration grid columns")
@click.option("--rows", default=4, show_default=True, help="Calibration grid rows")
@handle_errors
def preview(
    image_path: str,
    output_path: str,
    card_type: str,
    preset: str | None,
    color_path: str | None,
    overrides: tuple[str, ...],
    click_x: float | None,
    click_y: float | None,
    columns: int,
    rows: int,
    **settings_kwargs: Any,
) -> None:
    """Write a screen preview PNG of the card and print its geometry."""
    settings = build_settings(card_type=card_type, **settings_kwargs)
    transformation = build_transformation(preset, color_path, overrides)

    async def run() -> dict:
        image = await load_card_image(image_path)
        result = await prepare_preview(image, settings, card_type, transformation)
        if click_x is None or click_y is None:
            return result
        grid = CalibrationGridConfig(columns=columns, rows=rows)
        region = select_region(click_x, click_y, result["positioning"], result["preview"], grid)
        return await prepare_preview(image, settings, card_type, transformation, region=region)

    result = asyncio.run(run())

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    Path(output_path).write_bytes(result["png"])

    click.echo(
        json.dumps(
            {
                "preview": result["preview"].model_dump(),
                "region": result["region"].model_dump() if result["region"] else None,
            },
            indent=2,
        )
    )
    click.echo(f"📁 Preview saved to: {output_path}")


@cli.command("color-grid")
@click.argument("image_path", type=click.Path(exists=True))
@click.argument("output_path", type=click.Path())
@settings_options
@color_options
@click.option("--h-param", type=click.Choice(PARAMETER_NAMES), default="brightness", show_default=True)
@click.option("--h-min", type=float, help="Horizontal axis minimum (default: parameter's sweep)")
@click.option("--h-max", type=float, help="Horizontal axis maximum (default: parameter's sweep)")
@click.option("--v-param", type=click.Choice(PARAMETER_NAMES), default="contrast", show_default=True)
@click.option("--v-min", type=float, help="Vertical axis minimum (default: parameter's sweep)")
@click.option("--v-max", type=float, help="Vertical axis maximum (default: parameter's sweep)")
@click.option("--columns", default=5, show_default=True, help="Grid columns")
@click.option("--rows", default=4, show_default=True, help="Grid rows")
@click.option("--click-x", type=float, help="Preview X of the region centre (default: card centre)")
@click.option("--click-y", type=float, help="Preview Y of the region centre (default: card centre)")
@click.option("--workers", default=DEFAULT_CALIBRATION_WORKERS, show_default=True, help="Cell worker threads")
@handle_errors
def color_grid(
    image_path: str,
    output_path: str,
    card_type: str,
    preset: str | None,
    color_path: str | None,
    overrides: tuple[str, ...],
    h_param: str,
    h_min: float | None,
    h_max: float | None,
    v_param: str,
    v_min: float | None,
    v_max: float | None,
    columns: int,
    rows: int,
    click_x: float | None,
    click_y: float | None,
    workers: int,
    **settings_kwargs: Any,
) -> None:
    """Generate a colour calibration sheet from one region of a card."""
    settings = build_settings(card_type=card_type, **settings_kwargs)
    baseline = build_transformation(preset, color_path, overrides)
    grid = CalibrationGridConfig(columns=columns, rows=rows)

    h_range = PARAMETER_RANGES[ColorParameter(h_param)]
    v_range = PARAMETER_RANGES[ColorParameter(v_param)]
    horizontal = TransformationAxis(
        parameter=h_param,
        min=h_range.default_min if h_min is None else h_min,
        max=h_range.default_max if h_max is None else h_max,
    )
    vertical = TransformationAxis(
        parameter=v_param,
        min=v_range.default_min if v_min is None else v_min,
        max=v_range.default_max if v_max is None else v_max,
    )

    click.echo(f"🎨 Generating {columns}x{rows} colour calibration grid: {h_param} x {v_param}")

    async def run():
        image = await load_card_image(image_path)
        card = await prepare_card(image, settings, card_type)
        positioning = card["positioning"]
        preview_geometry = calculate_preview_scaling(positioning, settings.page_size)

        x = preview_geometry.card_x + preview_geometry.card_width / 2 if click_x is None else click_x
        y = preview_geometry.card_y + preview_geometry.card_height / 2 if click_y is None else click_y
        region = select_region(x, y, positioning, preview_geometry, grid)
        logger.info(f'Selected region centre: ({region.center_x:.3f}", {region.center_y:.3f}")')

        crop = extract_pixel_perfect_crop(card["image"], region, positioning, grid)
        click.echo(f"  ✓ Cropped {crop.width}x{crop.height}px region")
        return await generate_calibration_grid_async(
            crop, horizontal, vertical, grid, baseline=baseline, max_workers=workers
        )

    result = asyncio.run(run())
    render_color_calibration_pdf(result, settings, output_path)

    click.echo(f"  Columns: {', '.join(result['horizontal_labels'])}")
    click.echo(f"  Rows:    {', '.join(result['vertical_labels'])}")
    click.echo(f"📁 Calibration sheet saved to: {output_path}")


@cli.command("printer-card")
@click.argument("output_path", type=click.Path())
@click.option("--card", type=click.Choice(sorted(CARD_SIZES)), default="poker", show_default=True)
@click.option("--page", type=click.Choice(sorted(PAGE_SIZES)), default="letter", show_default=True)
@click.option("--offset-x", type=float, default=0.0, help="Horizontal offset in inches")
@click.option("--offset-y", type=float, default=0.0, help="Vertical offset in inches")
@click.option("--scale", type=float, default=100.0, help="Scale percent applied to the crosshair")
def printer_card(output_path: str, card: str, page: str, offset_x: float, offset_y: float, scale: float) -> None:
    """Generate a printer calibration card with a 1.0" crosshair."""
    card_size = CARD_SIZES[card]
    page_size = PAGE_SIZES[page]

    render_printer_calibration_pdf(
        output_path,
        card_width=card_size["width"],
        card_height=card_size["height"],
        media_width=page_size["width"],
        media_height=page_size["height"],
        offset_x=offset_x,
        offset_y=offset_y,
        scale_percent=scale,
    )

    click.echo(f"✓ Calibration card saved to: {output_path}")
    click.echo("\nNext steps:")
    click.echo("1. Print this PDF at ACTUAL SIZE (no scaling) and cut out the card")
    click.echo("2. Measure crosshair centre to the right edge, to the top edge, and one crosshair arm")
    click.echo("3. Run: cardprint measure --right R --top T --crosshair C")


@cli.command()
@click.option("--right", "measured_right", type=float, required=True, help="Centre to right edge (inches)")
@click.option("--top", "measured_top", type=float, required=True, help="Centre to top edge (inches)")
@click.option("--crosshair", "measured_crosshair", type=float, required=True, help="Crosshair arm length (inches)")
@click.option("--card", type=click.Choice(sorted(CARD_SIZES)), default="poker", show_default=True)
@click.option("--h-offset", type=float, default=0.0, help="Horizontal offset used when printing")
@click.option("--v-offset", type=float, default=0.0, help="Vertical offset used when printing")
@click.option("--scale", type=float, default=100.0, help="Scale percent used when printing")
@handle_errors
def measure(
    measured_right: float,
    measured_top: float,
    measured_crosshair: float,
    card: str,
    h_offset: float,
    v_offset: float,
    scale: float,
) -> None:
    """Turn calibration card measurements into corrected offset and scale."""
    card_size = CARD_SIZES[card]
    try:
        result = calculate_calibration_settings(
            measured_right,
            measured_top,
            measured_crosshair,
            card_width=card_size["width"],
            card_height=card_size["height"],
            current_horizontal_offset=h_offset,
            current_vertical_offset=v_offset,
            current_scale_percent=scale,
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--crosshair") from e

    click.echo(f"📏 Horizontal: {result['horizontal_centering']}")
    click.echo(f"📏 Vertical:   {result['vertical_centering']}")
    click.echo(f"📏 Scale:      {result['scale_accuracy']}")
    click.echo("")
    click.echo(f'✓ Horizontal offset: {result["new_horizontal_offset"]:+.3f}"')
    click.echo(f'✓ Vertical offset:   {result["new_vertical_offset"]:+.3f}"')
    click.echo(f"✓ Scale:             {result['new_scale_percent']}%")


@cli.command()
def presets() -> None:
    """List colour presets and page/card size presets."""
    click.echo("🎨 Colour presets:")
    for key, preset in COLOR_PRESETS.items():
        changed = {
            name: value
            for name, value in preset.transformation.model_dump().items()
            if value != ColorTransformation.model_fields[name].default
        }
        summary = ", ".join(f"{name} {format_parameter_value(name, value)}" for name, value in changed.items())
        click.echo(f"  {key:<16} {preset.name}" + (f" ({summary})" if summary else ""))

    click.echo("\n📄 Page sizes:")
    for key, size in PAGE_SIZES.items():
        click.echo(f'  {key:<16} {size["width"]}" x {size["height"]}"')

    click.echo("\n🃏 Card sizes:")
    for key, size in CARD_SIZES.items():
        click.echo(f'  {key:<16} {size["width"]}" x {size["height"]}"')


if __name__ == "__main__":
    cli()
