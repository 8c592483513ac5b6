"""Pixel geometry of one grid cell on a source page.

Both the dimension read-out and the extraction engine go through
`cell_rect`, so what the UI reports is exactly what gets sampled.
"""
from __future__ import annotations

from typing import Tuple

from PySide6.QtCore import QRectF

from cardgrid.config import EXTRACTION_DPI
from cardgrid.errors import InvalidGeometryError
from cardgrid.models.card import CardDimensions
from cardgrid.models.page import Side
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import ExtractionSettings
from cardgrid.services.card_addressing import cell_position
from cardgrid.utils.unit_converter import pixels_to_inches


def effective_gutter(extraction: ExtractionSettings, mode: ProcessingMode) -> float:
    """Gutter reserved at the fold; always 0 outside gutter-fold mode."""
    if not mode.is_gutter_fold:
        return 0.0
    if mode.gutter_width is not None:
        return mode.gutter_width
    return extraction.gutter_width


def cropped_area(source_width: float, source_height: float,
                 extraction: ExtractionSettings) -> Tuple[float, float]:
    crop = extraction.crop
    width = source_width - crop.horizontal
    height = source_height - crop.vertical
    if width <= 0:
        raise InvalidGeometryError("cropped page width", width, "left + right crop exceeds the page")
    if height <= 0:
        raise InvalidGeometryError("cropped page height", height, "top + bottom crop exceeds the page")
    return width, height


def cell_size(source_width: float, source_height: float,
              extraction: ExtractionSettings, mode: ProcessingMode) -> Tuple[float, float]:
    """Size of one grid cell before the card crop."""
    width, height = cropped_area(source_width, source_height, extraction)
    gutter = effective_gutter(extraction, mode)
    if gutter:
        if mode.folds_vertically:
            width -= gutter
            if width <= 0:
                raise InvalidGeometryError("page width after gutter", width, f"gutter is {gutter:g}px")
        else:
            height -= gutter
            if height <= 0:
                raise InvalidGeometryError("page height after gutter", height, f"gutter is {gutter:g}px")
    grid = extraction.grid
    return width / grid.columns, height / grid.rows


def cell_rect(source_width: float, source_height: float, cell_index: int,
              extraction: ExtractionSettings, mode: ProcessingMode) -> QRectF:
    """Rectangle sampled for *cell_index*, in source page pixels.

    Cells on the far side of the fold are pushed past the gutter; the card
    crop is applied last.
    """
    grid = extraction.grid
    cell_w, cell_h = cell_size(source_width, source_height, extraction, mode)
    row, col = cell_position(cell_index, grid)

    x = extraction.crop.left + col * cell_w
    y = extraction.crop.top + row * cell_h
    gutter = effective_gutter(extraction, mode)
    if gutter:
        if mode.folds_vertically and col >= grid.columns / 2:
            x += gutter
        elif not mode.folds_vertically and row >= grid.rows / 2:
            y += gutter

    card_crop = extraction.card_crop
    width = cell_w - card_crop.horizontal
    height = cell_h - card_crop.vertical
    if width <= 0:
        raise InvalidGeometryError("card width after card crop", width)
    if height <= 0:
        raise InvalidGeometryError("card height after card crop", height)
    return QRectF(x + card_crop.left, y + card_crop.top, width, height)


def calculate_card_dimensions(
    source_width: float,
    source_height: float,
    extraction: ExtractionSettings,
    mode: ProcessingMode,
    side=Side.FRONT,
) -> CardDimensions:
    """
    Size of the card a cell yields, as the UI should report it.

    Args:
        source_width, source_height: raw page raster size at extraction DPI.
        side: selects the image rotation; 90 and 270 swap the reported
            width and height but not the sampled region.
    Raises:
        InvalidGeometryError: if crop, gutter or card crop leave nothing.
    """
    side = Side(side)
    rect = cell_rect(source_width, source_height, 0, extraction, mode)
    extracted_w, extracted_h = rect.width(), rect.height()
    rotation = extraction.image_rotation.for_side(side)
    width, height = extracted_w, extracted_h
    if rotation in (90, 270):
        width, height = height, width
    return CardDimensions(
        width_px=width,
        height_px=height,
        extracted_width_px=extracted_w,
        extracted_height_px=extracted_h,
        width_inches=pixels_to_inches(width, EXTRACTION_DPI),
        height_inches=pixels_to_inches(height, EXTRACTION_DPI),
        rotation=rotation,
        side=side,
    )
