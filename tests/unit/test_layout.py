"""Unit tests for cardprint/layout.py."""

import pytest

from cardprint.errors import InvalidImageError
from cardprint.layout import (
    calculate_card_positioning,
    calculate_crop_region_size,
    calculate_preview_scaling,
    calculate_render_dimensions,
    is_quarter_turn,
    normalize_rotation,
    region_to_preview,
    resize_region,
    select_region,
)
from cardprint.validation import (
    CalibrationGridConfig,
    CardPositioning,
    CardRotation,
    CardType,
    OutputSettings,
    PageSize,
    SelectedRegion,
)

SOURCE_SIZES = [(750, 1050), (1500, 1050), (600, 1800), (3000, 3000), (123, 457)]


class TestRenderDimensions:
    """Tests for calculate_render_dimensions."""

    def test_actual_size(self, default_settings: OutputSettings) -> None:
        """Test that actual-size keeps the extracted size."""
        dims = calculate_render_dimensions(900, 1200, default_settings)
        assert dims.original_width == pytest.approx(3.0)
        assert dims.image_width == pytest.approx(3.0)
        assert dims.image_height == pytest.approx(4.0)
        assert dims.card_width == pytest.approx(2.5)
        assert dims.card_height == pytest.approx(3.5)

    def test_fit_wide_image(self) -> None:
        """Test that a wide image fits to the card width."""
        settings = OutputSettings(sizing_mode="fit-to-card")
        dims = calculate_render_dimensions(1500, 1050, settings)
        assert dims.image_width == pytest.approx(2.5)
        assert dims.image_height == pytest.approx(1.75)

    def test_fill_wide_image(self) -> None:
        """Test that a wide image fills the card height and overflows the width."""
        settings = OutputSettings(sizing_mode="fill-card")
        dims = calculate_render_dimensions(1500, 1050, settings)
        assert dims.image_height == pytest.approx(3.5)
        assert dims.image_width == pytest.approx(5.0)

    @pytest.mark.parametrize("width_px,height_px", SOURCE_SIZES)
    def test_fit_inside_container(self, width_px: int, height_px: int) -> None:
        """Test that fit-to-card never exceeds the container and touches one side."""
        settings = OutputSettings(sizing_mode="fit-to-card", bleed_inches=0.125, scale_percent=90)
        dims = calculate_render_dimensions(width_px, height_px, settings)
        assert dims.image_width <= dims.card_width + 1e-9
        assert dims.image_height <= dims.card_height + 1e-9
        assert dims.image_width == pytest.approx(dims.card_width) or dims.image_height == pytest.approx(
            dims.card_height
        )

    @pytest.mark.parametrize("width_px,height_px", SOURCE_SIZES)
    def test_fill_covers_container(self, width_px: int, height_px: int) -> None:
        """Test that fill-card always covers the container and matches one side."""
        settings = OutputSettings(sizing_mode="fill-card", bleed_inches=0.125, scale_percent=110)
        dims = calculate_render_dimensions(width_px, height_px, settings)
        assert dims.image_width >= dims.card_width - 1e-9
        assert dims.image_height >= dims.card_height - 1e-9
        assert dims.image_width == pytest.approx(dims.card_width) or dims.image_height == pytest.approx(
            dims.card_height
        )

    def test_bleed_expands_container(self) -> None:
        """Test that bleed is added on every side."""
        dims = calculate_render_dimensions(750, 1050, OutputSettings(bleed_inches=0.125))
        assert dims.card_width == pytest.approx(2.75)
        assert dims.card_height == pytest.approx(3.75)

    def test_scale_applies_to_image(self) -> None:
        """Test that scale applies to the image as well as the container."""
        settings = OutputSettings(sizing_mode="fit-to-card", scale_percent=200)
        dims = calculate_render_dimensions(750, 1050, settings)
        assert dims.card_width == pytest.approx(5.0)
        assert dims.image_width == pytest.approx(5.0)
        assert dims.image_height == pytest.approx(7.0)

    def test_actual_size_scaled(self) -> None:
        """Test that actual-size images are scaled too."""
        dims = calculate_render_dimensions(750, 1050, OutputSettings(scale_percent=50))
        assert dims.image_width == pytest.approx(1.25)

    @pytest.mark.parametrize("width_px,height_px", [(0, 100), (100, -1), (20001, 100), (100, 20001)])
    def test_invalid_dimensions_raise(self, width_px: int, height_px: int, default_settings: OutputSettings) -> None:
        """Test that unusable pixel sizes raise InvalidImageError."""
        with pytest.raises(InvalidImageError):
            calculate_render_dimensions(width_px, height_px, default_settings)

    def test_max_dimension_accepted(self, default_settings: OutputSettings) -> None:
        """Test that the cap itself is accepted."""
        dims = calculate_render_dimensions(20000, 100, default_settings)
        assert dims.original_width == pytest.approx(20000 / 300)


class TestRotation:
    """Tests for rotation helpers."""

    @pytest.mark.parametrize("rotation,expected", [(0, 0), (90, 90), (-90, 270), (450, 90), (360, 0), (-45, 315)])
    def test_normalize_rotation(self, rotation: float, expected: float) -> None:
        """Test normalization into [0, 360)."""
        assert normalize_rotation(rotation) == expected

    def test_quarter_turns(self) -> None:
        """Test which rotations swap width and height."""
        assert is_quarter_turn(90)
        assert is_quarter_turn(-90)
        assert not is_quarter_turn(180)
        assert not is_quarter_turn(45)


class TestCardPositioning:
    """Tests for calculate_card_positioning."""

    def test_centered(self, default_settings: OutputSettings) -> None:
        """Test that the card is centred on the page."""
        dims = calculate_render_dimensions(750, 1050, default_settings)
        pos = calculate_card_positioning(dims, default_settings, CardType.FRONT)
        assert (pos.x, pos.y) == pytest.approx((0.5, 0.0))
        assert (pos.width, pos.height) == pytest.approx((2.5, 3.5))

    @pytest.mark.parametrize("rotation", [90, 270, -90])
    def test_quarter_turn_swaps(self, rotation: float) -> None:
        """Test that 90/270 rotations swap width and height relative to 0/180."""
        upright = OutputSettings(rotation=CardRotation(front=0))
        turned = OutputSettings(rotation=CardRotation(front=rotation))
        dims = calculate_render_dimensions(750, 1050, upright)

        pos_upright = calculate_card_positioning(dims, upright, "front")
        pos_turned = calculate_card_positioning(dims, turned, "front")

        assert pos_turned.width == pytest.approx(pos_upright.height)
        assert pos_turned.height == pytest.approx(pos_upright.width)
        assert (pos_turned.x, pos_turned.y) == pytest.approx((0.0, 0.5))

    def test_half_turn_does_not_swap(self) -> None:
        """Test that 180° keeps the upright box."""
        settings = OutputSettings(rotation=CardRotation(front=180))
        dims = calculate_render_dimensions(750, 1050, settings)
        pos = calculate_card_positioning(dims, settings, "front")
        assert (pos.width, pos.height) == pytest.approx((2.5, 3.5))

    def test_back_uses_back_rotation(self) -> None:
        """Test that the back face uses its own rotation."""
        settings = OutputSettings(rotation=CardRotation(front=0, back=90))
        dims = calculate_render_dimensions(750, 1050, settings)
        assert calculate_card_positioning(dims, settings, "back").width == pytest.approx(3.5)
        assert calculate_card_positioning(dims, settings, "front").width == pytest.approx(2.5)

    def test_offsets_unconstrained(self) -> None:
        """Test that offsets are added and may push the card off the page."""
        settings = OutputSettings(offset={"horizontal": 2.0, "vertical": -0.25})
        dims = calculate_render_dimensions(750, 1050, settings)
        pos = calculate_card_positioning(dims, settings, "front")
        assert (pos.x, pos.y) == pytest.approx((2.5, -0.25))


class TestPreviewScaling:
    """Tests for calculate_preview_scaling."""

    def test_small_page_unscaled(self) -> None:
        """Test that pages within bounds use a scale of 1."""
        pos = CardPositioning(x=0.5, y=0, width=2.5, height=3.5, rotation=0)
        preview = calculate_preview_scaling(pos, PageSize(width=3.5, height=3.5))
        assert preview.scale == 1.0
        assert preview.page_width == pytest.approx(252)
        assert preview.card_x == pytest.approx(36)
        assert preview.card_width == pytest.approx(180)

    def test_letter_page_scaled_uniformly(self) -> None:
        """Test that one scale is applied to page, card size and origin."""
        pos = CardPositioning(x=3.0, y=3.75, width=2.5, height=3.5, rotation=0)
        preview = calculate_preview_scaling(pos, PageSize(width=8.5, height=11))
        expected_scale = min(400 / 612, 500 / 792)

        assert preview.scale == pytest.approx(expected_scale)
        assert preview.page_height == pytest.approx(500)
        assert preview.page_width <= 400
        assert preview.card_width == pytest.approx(180 * expected_scale)
        assert preview.card_x == pytest.approx(216 * expected_scale)
        assert preview.card_y == pytest.approx(270 * expected_scale)

    def test_custom_bounds(self) -> None:
        """Test that custom preview bounds are honoured."""
        pos = CardPositioning(x=0, y=0, width=2.5, height=3.5, rotation=0)
        preview = calculate_preview_scaling(pos, PageSize(width=3.5, height=3.5), 126, 1000)
        assert preview.scale == pytest.approx(0.5)


class TestRegions:
    """Tests for calibration region selection and projection."""

    @pytest.fixture
    def positioning(self) -> CardPositioning:
        return CardPositioning(x=0.5, y=0, width=2.5, height=3.5, rotation=0)

    @pytest.fixture
    def grid(self) -> CalibrationGridConfig:
        return CalibrationGridConfig(columns=5, rows=4)

    def test_crop_region_size(self, positioning: CardPositioning, grid: CalibrationGridConfig) -> None:
        """Test that the region is one grid cell of the card."""
        assert calculate_crop_region_size(positioning, grid) == pytest.approx((0.5, 0.875))

    def test_select_center(self, positioning: CardPositioning, grid: CalibrationGridConfig) -> None:
        """Test that clicking the card centre selects the centre in inches."""
        preview = calculate_preview_scaling(positioning, PageSize(width=3.5, height=3.5))
        region = select_region(36 + 90, 126, positioning, preview, grid)
        assert (region.center_x, region.center_y) == pytest.approx((1.25, 1.75))
        assert (region.width, region.height) == pytest.approx((0.5, 0.875))

    def test_select_clamps_to_card(self, positioning: CardPositioning, grid: CalibrationGridConfig) -> None:
        """Test that regions near the edge stay on the card."""
        preview = calculate_preview_scaling(positioning, PageSize(width=3.5, height=3.5))
        region = select_region(0, 0, positioning, preview, grid)
        assert (region.center_x, region.center_y) == pytest.approx((0.25, 0.4375))

    def test_preview_derived_from_inches(self, positioning: CardPositioning, grid: CalibrationGridConfig) -> None:
        """Test that projecting a picked region returns the click point."""
        preview = calculate_preview_scaling(positioning, PageSize(width=8.5, height=11))
        click_x = preview.card_x + preview.card_width * 0.4
        click_y = preview.card_y + preview.card_height * 0.6
        region = select_region(click_x, click_y, positioning, preview, grid)

        projected = region_to_preview(region, positioning, preview)
        assert projected.center_x == pytest.approx(click_x)
        assert projected.center_y == pytest.approx(click_y)
        assert projected.width == pytest.approx(preview.card_width / 5)

    def test_preview_follows_geometry_change(self, positioning: CardPositioning) -> None:
        """Test that the same inches region projects differently under new geometry."""
        region = SelectedRegion(center_x=1.25, center_y=1.75, width=0.5, height=0.875)
        small = calculate_preview_scaling(positioning, PageSize(width=3.5, height=3.5))
        large = calculate_preview_scaling(positioning, PageSize(width=8.5, height=11))
        assert region_to_preview(region, positioning, small).width != pytest.approx(
            region_to_preview(region, positioning, large).width
        )

    def test_resize_region_keeps_center(self, positioning: CardPositioning) -> None:
        """Test that a grid change resizes the region around the same centre."""
        region = SelectedRegion(center_x=1.25, center_y=1.75, width=0.5, height=0.875)
        resized = resize_region(region, positioning, CalibrationGridConfig(columns=2, rows=2))
        assert (resized.center_x, resized.center_y) == pytest.approx((1.25, 1.75))
        assert (resized.width, resized.height) == pytest.approx((1.25, 1.75))

    def test_resize_region_reclamps(self, positioning: CardPositioning) -> None:
        """Test that a larger region is pulled back onto the card."""
        region = SelectedRegion(center_x=0.25, center_y=0.4375, width=0.5, height=0.875)
        resized = resize_region(region, positioning, CalibrationGridConfig(columns=2, rows=2))
        assert (resized.center_x, resized.center_y) == pytest.approx((0.625, 0.875))
