from __future__ import annotations

import logging
import math
from typing import Callable, Optional, Sequence, Tuple

from PySide6.QtCore import QRect
from PySide6.QtGui import QImage, QTransform

from cardgrid.config import MAX_SURFACE_DIMENSION, VALID_ROTATIONS
from cardgrid.errors import ExtractionError, InvalidIndexError, SourceUnavailableError
from cardgrid.models.card import CardIdentity
from cardgrid.models.page import Page, Side
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import ExtractionSettings
from cardgrid.services import card_addressing
from cardgrid.services.dimension_calculator import cell_rect

logger = logging.getLogger(__name__)


def rotate_image(image: QImage, degrees: int) -> QImage:
    """Quarter-turn rotation about the image centre; 0 returns *image* itself."""
    degrees = degrees % 360
    if degrees not in VALID_ROTATIONS:
        raise ValueError(f"Rotation must be a multiple of 90 degrees, got {degrees}")
    if degrees == 0:
        return image
    rotated = image.transformed(QTransform().rotate(degrees))
    if rotated.isNull():
        raise ValueError(f"Rotating a {image.width()}x{image.height()} image by {degrees} produced no image")
    return rotated


def _check_surface(surface: Optional[QImage], page_index: int) -> QImage:
    if surface is None or surface.isNull() or surface.width() <= 0 or surface.height() <= 0:
        raise SourceUnavailableError(f"No image data for page {page_index + 1}", page_index)
    if surface.width() > MAX_SURFACE_DIMENSION or surface.height() > MAX_SURFACE_DIMENSION:
        raise SourceUnavailableError(
            f"Page {page_index + 1} is too large: {surface.width()}x{surface.height()} "
            f"(maximum {MAX_SURFACE_DIMENSION}x{MAX_SURFACE_DIMENSION})",
            page_index,
        )
    return surface


def extract_card(
    surface: QImage,
    page_index: int,
    cell_index: int,
    extraction: ExtractionSettings,
    mode: ProcessingMode,
    side=Side.FRONT,
) -> QImage:
    """
    Sample one card out of a page surface rendered at extraction DPI.

    The cell rectangle is computed from the page crop, the gutter and the
    card crop, truncated to whole pixels and clamped to the surface. The
    side's image rotation is applied last.

    Raises:
        SourceUnavailableError: the surface is missing or empty.
        InvalidGeometryError: crop or gutter settings leave no card area.
        ExtractionError: the cell misses the surface or sampling fails.
    """
    surface = _check_surface(surface, page_index)
    if not 0 <= cell_index < extraction.grid.cards_per_page:
        raise ExtractionError(
            f"Cell index outside a {extraction.grid.rows}x{extraction.grid.columns} grid",
            page_index, cell_index,
        )

    # geometry errors surface here, before any pixels are touched
    rect = cell_rect(surface.width(), surface.height(), cell_index, extraction, mode)
    wanted = QRect(
        math.floor(rect.x()), math.floor(rect.y()),
        math.floor(rect.width()), math.floor(rect.height()),
    )
    bounded = wanted.intersected(surface.rect())
    if bounded.isEmpty():
        raise ExtractionError(
            f"Cell ({wanted.x()}, {wanted.y()}, {wanted.width()}x{wanted.height()}) lies outside "
            f"the {surface.width()}x{surface.height()} page",
            page_index, cell_index,
        )
    if bounded != wanted:
        logger.warning(
            "Clamped cell %d on page %d from %dx%d to %dx%d",
            cell_index, page_index + 1, wanted.width(), wanted.height(),
            bounded.width(), bounded.height(),
        )

    card = surface.copy(bounded)
    if card.isNull():
        raise ExtractionError("Could not copy the cell out of the page", page_index, cell_index)

    rotation = extraction.image_rotation.for_side(side)
    try:
        return rotate_image(card, rotation)
    except ValueError as exc:
        raise ExtractionError(f"Rotation by {rotation} failed: {exc}", page_index, cell_index) from exc


SurfaceSource = Callable[[int, Page], QImage]


class CardExtractor:
    """Extraction by global index over a fixed active page list.

    *surfaces* is called with ``(page_index, page)`` and returns the page
    raster; a `PageSurfaceStore` instance fits.
    """

    def __init__(self, surfaces: SurfaceSource, pages: Sequence[Page],
                 extraction: ExtractionSettings, mode: ProcessingMode):
        self.surfaces = surfaces
        self.pages = list(pages)
        self.extraction = extraction
        self.mode = mode

    @property
    def total_cards(self) -> int:
        return card_addressing.total_cards(self.pages, self.extraction.grid.cards_per_page)

    def identify(self, global_index: int) -> Optional[CardIdentity]:
        return card_addressing.identify(global_index, self.pages, self.extraction, self.mode)

    def extract(self, global_index: int) -> Tuple[CardIdentity, QImage]:
        identity = self.identify(global_index)
        if identity is None:
            raise InvalidIndexError(global_index, self.total_cards)
        page_index, cell_index = card_addressing.split_index(
            global_index, self.extraction.grid.cards_per_page
        )
        page = self.pages[page_index]
        mode = card_addressing.page_mode(page, self.mode)
        surface = self.surfaces(page_index, page)
        image = extract_card(surface, page_index, cell_index, self.extraction, mode, identity.side)
        logger.debug("Extracted %s from page %d cell %d", identity, page_index + 1, cell_index)
        return identity, image
