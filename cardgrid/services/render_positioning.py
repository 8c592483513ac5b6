"""Sizing and placing an extracted card on an output page.

Everything here is in inches except the processed bitmap, which is drawn
at extraction DPI so the exported page can place it 1:1.
"""
from __future__ import annotations

import logging
from typing import Tuple

from PySide6.QtCore import QRectF, QSizeF, Qt
from PySide6.QtGui import QImage, QPainter

from cardgrid.config import (
    EXTRACTION_DPI, MAX_SURFACE_DIMENSION, PREVIEW_MAX_HEIGHT, PREVIEW_MAX_WIDTH, SCREEN_DPI,
    SIZING_MODE_FLAGS,
)
from cardgrid.errors import RenderError
from cardgrid.models.card import CardRenderDimensions, Placement, PreviewScaling, RenderData
from cardgrid.models.page import Side
from cardgrid.models.settings import OutputSettings
from cardgrid.services.card_extraction import rotate_image
from cardgrid.utils.unit_converter import compute_scale_factor, pixels_to_inches

logger = logging.getLogger(__name__)


def calculate_render_dimensions(image_width_px: float, image_height_px: float,
                                output: OutputSettings) -> CardRenderDimensions:
    """
    Card box and drawn image size for an extracted image.

    The card box is the card size times the scale percentage, plus the bleed
    margin on every edge. Sizing modes:
        actual-size  image inches at 300 DPI, times the scale percentage
        fit-to-card  shrink uniformly to fit the box, never enlarge
        fill-card    scale uniformly to cover the box; the box clips overflow
    """
    if image_width_px <= 0 or image_height_px <= 0:
        raise RenderError(f"Invalid image dimensions: {image_width_px} x {image_height_px}")

    original_w = pixels_to_inches(image_width_px, EXTRACTION_DPI)
    original_h = pixels_to_inches(image_height_px, EXTRACTION_DPI)
    card_w, card_h = output.scaled_card_size
    box_w = card_w + 2 * output.bleed_margin_inches
    box_h = card_h + 2 * output.bleed_margin_inches
    if box_w <= 0 or box_h <= 0:
        raise RenderError(f"Invalid card box: {box_w:g}\" x {box_h:g}\"")

    mode = output.sizing_mode
    flags = SIZING_MODE_FLAGS.get(mode)
    if flags is None:
        raise RenderError(f"Invalid sizing mode: {mode}")

    original = QSizeF(original_w, original_h)
    if flags["aspect"] is None:
        factor = output.card_scale_percent / 100.0
        sized = QSizeF(original_w * factor, original_h * factor)
    else:
        sized = original.scaled(QSizeF(box_w, box_h), flags["aspect"])
        if not flags["enlarge"] and sized.width() > original_w:
            sized = original
    image_w, image_h = sized.width(), sized.height()
    if image_w <= 0 or image_h <= 0:
        raise RenderError(f"Invalid final image dimensions: {image_w:g}\" x {image_h:g}\"")

    return CardRenderDimensions(
        card_width_inches=box_w,
        card_height_inches=box_h,
        image_width_inches=image_w,
        image_height_inches=image_h,
        original_width_inches=original_w,
        original_height_inches=original_h,
        sizing_mode=mode,
    )


def calculate_placement(render_dims: CardRenderDimensions, output: OutputSettings,
                        side=Side.FRONT) -> Placement:
    """Centre the card box on the page, then shift it by the offset.

    Positive horizontal offsets move right, positive vertical offsets down.
    """
    rotation = output.rotation.for_side(side)
    width, height = render_dims.card_width_inches, render_dims.card_height_inches
    if rotation in (90, 270):
        width, height = height, width
    if width <= 0 or height <= 0:
        raise RenderError(f"Invalid placement dimensions: {width:g}\" x {height:g}\"")

    page_w, page_h = output.page_size
    x = (page_w - width) / 2 + output.offset[0]
    y = (page_h - height) / 2 + output.offset[1]
    return Placement(x=x, y=y, width=width, height=height, rotation=rotation)


def calculate_preview_scaling(
    placement: Placement,
    page_size: Tuple[float, float],
    bleed_inches: float = 0.0,
    max_width: float = PREVIEW_MAX_WIDTH,
    max_height: float = PREVIEW_MAX_HEIGHT,
) -> PreviewScaling:
    """Map the output page into a bounded preview box at screen DPI."""
    page_w = page_size[0] * SCREEN_DPI
    page_h = page_size[1] * SCREEN_DPI
    if page_w <= 0 or page_h <= 0:
        raise RenderError(f"Invalid page size: {page_size[0]:g}\" x {page_size[1]:g}\"")
    scale = compute_scale_factor((max_width, max_height), (page_w, page_h))
    to_preview = SCREEN_DPI * scale
    return PreviewScaling(
        scale=scale,
        page_width=page_w * scale,
        page_height=page_h * scale,
        card_width=placement.width * to_preview,
        card_height=placement.height * to_preview,
        x=placement.x * to_preview,
        y=placement.y * to_preview,
        bleed=bleed_inches * to_preview,
    )


def process_card_image(image: QImage, render_dims: CardRenderDimensions, rotation: int) -> QImage:
    """Draw *image* centred on a card-box canvas and rotate the result."""
    if image is None or image.isNull():
        raise RenderError("No card image to process")

    canvas_w = round(render_dims.card_width_inches * EXTRACTION_DPI)
    canvas_h = round(render_dims.card_height_inches * EXTRACTION_DPI)
    image_w = render_dims.image_width_inches * EXTRACTION_DPI
    image_h = render_dims.image_height_inches * EXTRACTION_DPI
    if canvas_w <= 0 or canvas_h <= 0 or image_w <= 0 or image_h <= 0:
        raise RenderError(
            f"Invalid pixel dimensions: card {canvas_w}x{canvas_h}, image {image_w:.0f}x{image_h:.0f}"
        )
    if canvas_w > MAX_SURFACE_DIMENSION or canvas_h > MAX_SURFACE_DIMENSION:
        raise RenderError(f"Canvas too large: {canvas_w}x{canvas_h}")

    canvas = QImage(canvas_w, canvas_h, QImage.Format_ARGB32_Premultiplied)
    if canvas.isNull():
        raise RenderError(f"Could not allocate a {canvas_w}x{canvas_h} canvas")
    canvas.fill(Qt.transparent)

    painter = QPainter(canvas)
    try:
        painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
        target = QRectF((canvas_w - image_w) / 2, (canvas_h - image_h) / 2, image_w, image_h)
        painter.drawImage(target, image)
    finally:
        painter.end()

    try:
        return rotate_image(canvas, rotation)
    except ValueError as exc:
        raise RenderError(f"Image processing failed (rotation: {rotation}): {exc}") from exc


def position(
    card_image: QImage,
    output: OutputSettings,
    side=Side.FRONT,
    max_preview: Tuple[float, float] = (PREVIEW_MAX_WIDTH, PREVIEW_MAX_HEIGHT),
    render_image: bool = True,
) -> RenderData:
    """Everything needed to show or export one card on one output page."""
    if card_image is None or card_image.isNull():
        raise RenderError("No card image to position")
    side = Side(side)
    dims = calculate_render_dimensions(card_image.width(), card_image.height(), output)
    placement = calculate_placement(dims, output, side)
    preview = calculate_preview_scaling(
        placement, output.page_size, output.bleed_margin_inches, *max_preview
    )
    processed = process_card_image(card_image, dims, placement.rotation) if render_image else None
    logger.debug(
        "Placed %s card at (%.3f, %.3f) size %.3fx%.3f in",
        side.value, placement.x, placement.y, placement.width, placement.height,
    )
    return RenderData(render_dimensions=dims, placement=placement, preview=preview, image=processed)
