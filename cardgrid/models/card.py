# models/card.py
"""Value types produced by the addressing, extraction and layout engines."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from cardgrid.models.page import Side


@dataclass(frozen=True)
class CardIdentity:
    id: int
    side: Side

    def __post_init__(self):
        object.__setattr__(self, "side", Side(self.side))

    def __str__(self):
        return f"{self.side.value.title()} {self.id}"


@dataclass(frozen=True)
class CardDimensions:
    # Reported size: swapped for 90/270 image rotation.
    width_px: float
    height_px: float
    # Size of the region actually sampled from the page.
    extracted_width_px: float
    extracted_height_px: float
    width_inches: float
    height_inches: float
    rotation: int
    side: Side


@dataclass(frozen=True)
class CardRenderDimensions:
    # Card box: card size scaled, plus bleed on every edge.
    card_width_inches: float
    card_height_inches: float
    # How large the image is drawn inside that box.
    image_width_inches: float
    image_height_inches: float
    original_width_inches: float
    original_height_inches: float
    sizing_mode: str


@dataclass(frozen=True)
class Placement:
    """Card box on the output page, inches from the top-left corner."""
    x: float
    y: float
    width: float
    height: float
    rotation: int


@dataclass(frozen=True)
class PreviewScaling:
    scale: float
    page_width: float
    page_height: float
    card_width: float
    card_height: float
    x: float
    y: float
    bleed: float


@dataclass(frozen=True)
class RenderData:
    render_dimensions: CardRenderDimensions
    placement: Placement
    preview: PreviewScaling
    image: Any = None  # processed QImage, rotated and sized to the card box


@dataclass(frozen=True)
class CalibrationResult:
    new_horizontal_offset: float
    new_vertical_offset: float
    new_scale_percent: float
    horizontal_adjustment: float
    vertical_adjustment: float
    scale_adjustment: float
    diagnostics: Tuple[str, ...]

    @property
    def adjustments(self) -> Tuple[float, float, float]:
        return self.horizontal_adjustment, self.vertical_adjustment, self.scale_adjustment

    @property
    def is_calibrated(self) -> bool:
        return self.adjustments == (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class CacheEntry:
    """What the preview cache stores per key; the cache stamps insertion time."""
    identity: CardIdentity
    extracted: Any  # QImage straight out of the extraction engine
    render_data: Optional[RenderData] = None
