import pytest
from PySide6.QtGui import QColor, QImage

from cardgrid.errors import RenderError
from cardgrid.models.card import CardRenderDimensions, Placement
from cardgrid.models.page import Side
from cardgrid.models.settings import OutputSettings, SideRotation
from cardgrid.services.render_positioning import (
    calculate_placement, calculate_preview_scaling, calculate_render_dimensions,
    position, process_card_image,
)


def test_fit_to_card_stays_inside_the_box_and_keeps_aspect():
    output = OutputSettings(card_size=(2.5, 3.5), sizing_mode="fit-to-card")
    dims = calculate_render_dimensions(500, 700, output)
    assert dims.image_width_inches <= 2.5 + 1e-9
    assert dims.image_height_inches <= 3.5 + 1e-9
    assert dims.image_width_inches / dims.image_height_inches == pytest.approx(500 / 700)
    # never enlarged past the original
    assert dims.image_width_inches == pytest.approx(500 / 300)


def test_fit_to_card_shrinks_large_images():
    output = OutputSettings(card_size=(2.5, 3.5), sizing_mode="fit-to-card")
    dims = calculate_render_dimensions(1500, 1500, output)
    assert dims.image_width_inches == pytest.approx(2.5)
    assert dims.image_height_inches == pytest.approx(2.5)


def test_fill_card_covers_the_box():
    output = OutputSettings(card_size=(2.5, 3.5), bleed_margin_inches=0.125, sizing_mode="fill-card")
    dims = calculate_render_dimensions(750, 750, output)
    assert dims.card_width_inches == pytest.approx(2.75)
    assert dims.card_height_inches == pytest.approx(3.75)
    assert dims.image_width_inches == pytest.approx(3.75)
    assert dims.image_height_inches == pytest.approx(3.75)


def test_scale_applies_to_the_card_before_bleed():
    output = OutputSettings(card_size=(2.5, 3.5), card_scale_percent=50, bleed_margin_inches=0.25)
    dims = calculate_render_dimensions(750, 1050, output)
    assert dims.card_width_inches == pytest.approx(1.25 + 0.5)
    assert dims.card_height_inches == pytest.approx(1.75 + 0.5)
    # actual-size follows the same scale
    assert dims.image_width_inches == pytest.approx(1.25)


def test_actual_size_uses_extraction_dpi():
    dims = calculate_render_dimensions(600, 900, OutputSettings())
    assert (dims.image_width_inches, dims.image_height_inches) == pytest.approx((2.0, 3.0))
    assert (dims.original_width_inches, dims.original_height_inches) == pytest.approx((2.0, 3.0))


def test_non_positive_image_is_a_render_error():
    with pytest.raises(RenderError):
        calculate_render_dimensions(0, 100, OutputSettings())


def _dims(w, h):
    return CardRenderDimensions(w, h, w, h, w, h, "actual-size")


def test_placement_centres_then_offsets():
    output = OutputSettings(page_size=(8.5, 11), offset=(0.25, -0.125))
    placement = calculate_placement(_dims(2.5, 3.5), output, Side.FRONT)
    assert placement == Placement(x=pytest.approx(3.25), y=pytest.approx(3.625),
                                  width=2.5, height=3.5, rotation=0)


def test_placement_swaps_box_for_quarter_turns():
    output = OutputSettings(page_size=(8.5, 11), rotation=SideRotation(front=0, back=270))
    placement = calculate_placement(_dims(2.5, 3.5), output, Side.BACK)
    assert (placement.width, placement.height) == (3.5, 2.5)
    assert placement.x == pytest.approx((8.5 - 3.5) / 2)
    assert placement.y == pytest.approx((11 - 2.5) / 2)
    assert placement.rotation == 270


def test_preview_scaling_fits_the_page_into_the_box():
    placement = Placement(x=3.0, y=3.75, width=2.5, height=3.5, rotation=0)
    preview = calculate_preview_scaling(placement, (8.5, 11), bleed_inches=0.125)
    scale = min(400 / 612, 500 / 792)
    assert preview.scale == pytest.approx(scale)
    assert preview.page_width <= 400 + 1e-9 and preview.page_height <= 500 + 1e-9
    assert preview.card_width == pytest.approx(2.5 * 72 * scale)
    assert preview.x == pytest.approx(3.0 * 72 * scale)
    assert preview.bleed == pytest.approx(0.125 * 72 * scale)


def test_small_pages_are_not_enlarged_in_preview():
    placement = Placement(x=0, y=0, width=1, height=1, rotation=0)
    assert calculate_preview_scaling(placement, (3, 4)).scale == 1.0


def test_process_card_image_centres_and_rotates():
    image = QImage(300, 300, QImage.Format_RGB32)
    image.fill(QColor("#ff0000"))
    output = OutputSettings(card_size=(2.5, 3.5), sizing_mode="actual-size")
    dims = calculate_render_dimensions(300, 300, output)
    processed = process_card_image(image, dims, 90)
    assert (processed.width(), processed.height()) == (1050, 750)
    # image sits in the middle, the rest of the card box is empty
    assert QColor(processed.pixel(525, 375)).name() == "#ff0000"
    assert QColor.fromRgba(processed.pixel(5, 5)).alpha() == 0


def test_position_bundles_everything():
    image = QImage(750, 1050, QImage.Format_RGB32)
    image.fill(QColor("white"))
    data = position(image, OutputSettings(sizing_mode="fit-to-card"), Side.FRONT)
    assert data.placement.width == pytest.approx(2.5)
    assert data.preview.scale < 1
    assert (data.image.width(), data.image.height()) == (750, 1050)

    with pytest.raises(RenderError):
        position(QImage(), OutputSettings())
