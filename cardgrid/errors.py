"""Project-wide error types."""

from __future__ import annotations

from typing import Optional


class CardGridError(Exception):
    """Base for all cardgrid errors."""


class InvalidIndexError(CardGridError):
    """A global card index that does not address any cell."""

    def __init__(self, index: int, total: int):
        super().__init__(f"Card index {index} is outside [0, {total})")
        self.index = index
        self.total = total


class InvalidGeometryError(CardGridError, ValueError):
    """Crop, gutter or card crop leaves a non-positive region."""

    def __init__(self, dimension: str, value: float, detail: str = ""):
        message = f"Invalid {dimension}: {value:g}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.dimension = dimension
        self.value = value


class SourceUnavailableError(CardGridError):
    """The raster surface for a page is missing or unreadable."""

    def __init__(self, message: str, page_index: Optional[int] = None):
        super().__init__(message)
        self.page_index = page_index


class ExtractionError(CardGridError):
    """Sampling a card out of its page failed."""

    def __init__(self, message: str, page_index: int, cell_index: int):
        super().__init__(f"{message} [page {page_index + 1}, cell {cell_index}]")
        self.page_index = page_index
        self.cell_index = cell_index


class RenderError(CardGridError):
    """Sizing, placing or drawing a card for output failed."""


class StageTimeoutError(CardGridError):
    """A pipeline stage exceeded its time budget."""

    def __init__(self, stage: str, seconds: float):
        super().__init__(f"{stage} timed out after {seconds:g}s")
        self.stage = stage
        self.seconds = seconds


__all__ = [
    "CardGridError",
    "InvalidIndexError",
    "InvalidGeometryError",
    "SourceUnavailableError",
    "ExtractionError",
    "RenderError",
    "StageTimeoutError",
]
