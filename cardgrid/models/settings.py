# models/settings.py
"""Immutable extraction and output settings.

Pixel quantities are at the extraction resolution (300 DPI); physical
quantities are inches. ``from_dict`` reads the plain configuration object
(camelCase keys) and ``to_dict`` writes it back in the same shape.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from cardgrid.config import (
    DEFAULT_CARD_SIZE_IN, DEFAULT_PAGE_SIZE_IN, DEFAULT_SCALE_PERCENT,
    MAX_SCALE_PERCENT, MIN_SCALE_PERCENT, VALID_ROTATIONS, VALID_SIZING_MODES,
)
from cardgrid.errors import InvalidGeometryError
from cardgrid.models.page import Side
from cardgrid.utils.unit_converter import page_size_inches, parse_dimension


@dataclass(frozen=True)
class Grid:
    rows: int = 1
    columns: int = 1

    def __post_init__(self):
        if self.rows < 1:
            raise InvalidGeometryError("grid rows", self.rows, "must be at least 1")
        if self.columns < 1:
            raise InvalidGeometryError("grid columns", self.columns, "must be at least 1")

    @property
    def cards_per_page(self) -> int:
        return self.rows * self.columns


@dataclass(frozen=True)
class CropSpec:
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0

    def __post_init__(self):
        for name in ("top", "right", "bottom", "left"):
            value = getattr(self, name)
            if value < 0:
                raise InvalidGeometryError(f"crop {name}", value, "must be non-negative")

    @property
    def horizontal(self) -> float:
        return self.left + self.right

    @property
    def vertical(self) -> float:
        return self.top + self.bottom

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CropSpec":
        data = data or {}
        return cls(*(float(data.get(k, 0.0)) for k in ("top", "right", "bottom", "left")))

    def to_dict(self) -> Dict[str, float]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}


@dataclass(frozen=True)
class SideRotation:
    front: int = 0
    back: int = 0

    def __post_init__(self):
        for name in ("front", "back"):
            value = getattr(self, name)
            if value not in VALID_ROTATIONS:
                raise ValueError(f"{name} rotation must be one of {VALID_ROTATIONS}, got {value}")

    def for_side(self, side) -> int:
        return self.front if Side(side) is Side.FRONT else self.back

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SideRotation":
        data = data or {}
        return cls(int(data.get("front", 0)), int(data.get("back", 0)))

    def to_dict(self) -> Dict[str, int]:
        return {"front": self.front, "back": self.back}


@dataclass(frozen=True)
class SkippedCard:
    """A grid cell excluded from the available cards. ``side=None`` skips both."""
    page_index: int
    row: int
    column: int
    side: Optional[Side] = None

    def __post_init__(self):
        if self.side is not None:
            object.__setattr__(self, "side", Side(self.side))

    def matches(self, page_index: int, row: int, column: int, side) -> bool:
        if (self.page_index, self.row, self.column) != (page_index, row, column):
            return False
        return self.side is None or self.side is Side(side)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkippedCard":
        side = data.get("cardType", data.get("side"))
        return cls(
            page_index=int(data.get("pageIndex", data.get("page_index", 0))),
            row=int(data.get("gridRow", data.get("row", 0))),
            column=int(data.get("gridColumn", data.get("column", 0))),
            side=Side(side) if side else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"pageIndex": self.page_index, "gridRow": self.row, "gridColumn": self.column}
        if self.side is not None:
            data["cardType"] = self.side.value
        return data


@dataclass(frozen=True)
class CardTypeOverride:
    """Forces the side of one grid cell, whatever the processing mode says."""
    page_index: int
    row: int
    column: int
    side: Side

    def __post_init__(self):
        object.__setattr__(self, "side", Side(self.side))

    def matches(self, page_index: int, row: int, column: int) -> bool:
        return (self.page_index, self.row, self.column) == (page_index, row, column)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardTypeOverride":
        return cls(
            page_index=int(data.get("pageIndex", data.get("page_index", 0))),
            row=int(data.get("gridRow", data.get("row", 0))),
            column=int(data.get("gridColumn", data.get("column", 0))),
            side=Side(data.get("cardType", data.get("side"))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageIndex": self.page_index,
            "gridRow": self.row,
            "gridColumn": self.column,
            "cardType": self.side.value,
        }


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ExtractionSettings:
    grid: Grid = field(default_factory=Grid)
    crop: CropSpec = field(default_factory=CropSpec)
    card_crop: CropSpec = field(default_factory=CropSpec)
    gutter_width: float = 0.0
    image_rotation: SideRotation = field(default_factory=SideRotation)
    page_dimensions: Optional[Tuple[float, float]] = None
    skipped_cards: Tuple[SkippedCard, ...] = ()
    card_type_overrides: Tuple[CardTypeOverride, ...] = ()

    def __post_init__(self):
        if self.gutter_width < 0:
            raise InvalidGeometryError("gutter width", self.gutter_width, "must be non-negative")
        object.__setattr__(self, "skipped_cards", tuple(self.skipped_cards))
        object.__setattr__(self, "card_type_overrides", tuple(self.card_type_overrides))

    def with_changes(self, **changes) -> "ExtractionSettings":
        return replace(self, **changes)

    def is_skipped(self, page_index: int, row: int, column: int, side) -> bool:
        return any(s.matches(page_index, row, column, side) for s in self.skipped_cards)

    def card_type_for(self, page_index: int, row: int, column: int) -> Optional[Side]:
        """The forced side of a cell, or None when the mode decides. The last match wins."""
        side = None
        for override in self.card_type_overrides:
            if override.matches(page_index, row, column):
                side = override.side
        return side

    def with_card_type(self, page_index: int, row: int, column: int, side=None) -> "ExtractionSettings":
        """Copy with the cell's override set to *side*; None removes it."""
        kept = tuple(o for o in self.card_type_overrides if not o.matches(page_index, row, column))
        if side is not None:
            kept += (CardTypeOverride(page_index, row, column, side),)
        return replace(self, card_type_overrides=kept)

    def toggle_card_type(self, page_index: int, row: int, column: int) -> "ExtractionSettings":
        """Cycle a cell through no override, front, back and back to none."""
        current = self.card_type_for(page_index, row, column)
        following = {None: Side.FRONT, Side.FRONT: Side.BACK, Side.BACK: None}[current]
        return self.with_card_type(page_index, row, column, following)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionSettings":
        grid = data.get("grid") or {}
        dims = data.get("pageDimensions")
        return cls(
            grid=Grid(int(grid.get("rows", 1)), int(grid.get("columns", 1))),
            crop=CropSpec.from_dict(data.get("crop")),
            card_crop=CropSpec.from_dict(data.get("cardCrop")),
            gutter_width=float(data.get("gutterWidth", 0.0)),
            image_rotation=SideRotation.from_dict(data.get("imageRotation")),
            page_dimensions=(float(dims["width"]), float(dims["height"])) if dims else None,
            skipped_cards=tuple(SkippedCard.from_dict(s) for s in data.get("skippedCards", [])),
            card_type_overrides=tuple(
                CardTypeOverride.from_dict(o) for o in data.get("cardTypeOverrides", [])
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "grid": {"rows": self.grid.rows, "columns": self.grid.columns},
            "crop": self.crop.to_dict(),
            "cardCrop": self.card_crop.to_dict(),
            "gutterWidth": self.gutter_width,
            "imageRotation": self.image_rotation.to_dict(),
            "skippedCards": [s.to_dict() for s in self.skipped_cards],
            "cardTypeOverrides": [o.to_dict() for o in self.card_type_overrides],
        }
        if self.page_dimensions is not None:
            data["pageDimensions"] = {"width": self.page_dimensions[0], "height": self.page_dimensions[1]}
        return data


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------
def _length_in(value) -> float:
    """Inches from a number (already inches) or a unit string such as "63mm"."""
    if isinstance(value, str):
        return parse_dimension(value, to_unit="in")
    return float(value)


@dataclass(frozen=True)
class OutputSettings:
    page_size: Tuple[float, float] = DEFAULT_PAGE_SIZE_IN
    offset: Tuple[float, float] = (0.0, 0.0)
    card_size: Tuple[float, float] = DEFAULT_CARD_SIZE_IN
    card_scale_percent: float = DEFAULT_SCALE_PERCENT
    bleed_margin_inches: float = 0.0
    rotation: SideRotation = field(default_factory=SideRotation)
    sizing_mode: str = "actual-size"

    def __post_init__(self):
        object.__setattr__(self, "page_size", tuple(self.page_size))
        object.__setattr__(self, "offset", tuple(self.offset))
        object.__setattr__(self, "card_size", tuple(self.card_size))
        if not MIN_SCALE_PERCENT <= self.card_scale_percent <= MAX_SCALE_PERCENT:
            raise ValueError(
                f"Card scale must be between {MIN_SCALE_PERCENT:g}% and "
                f"{MAX_SCALE_PERCENT:g}%, got {self.card_scale_percent:g}%"
            )
        if self.bleed_margin_inches < 0:
            raise InvalidGeometryError("bleed margin", self.bleed_margin_inches, "must be non-negative")
        if self.sizing_mode not in VALID_SIZING_MODES:
            raise ValueError(f"Unknown sizing mode '{self.sizing_mode}'. Use one of: {VALID_SIZING_MODES}")

    def with_changes(self, **changes) -> "OutputSettings":
        return replace(self, **changes)

    @property
    def scaled_card_size(self) -> Tuple[float, float]:
        """Card box after the scale percentage, before bleed."""
        factor = self.card_scale_percent / 100.0
        return self.card_size[0] * factor, self.card_size[1] * factor

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputSettings":
        page = data.get("pageSize", DEFAULT_PAGE_SIZE_IN)
        if isinstance(page, str):
            page = page_size_inches(page)
        elif isinstance(page, dict):
            page = (_length_in(page["width"]), _length_in(page["height"]))
        offset = data.get("offset") or {}
        card = data.get("cardSize") or {}
        return cls(
            page_size=tuple(page),
            offset=(float(offset.get("horizontal", 0.0)), float(offset.get("vertical", 0.0))),
            card_size=(
                _length_in(card.get("widthInches", DEFAULT_CARD_SIZE_IN[0])),
                _length_in(card.get("heightInches", DEFAULT_CARD_SIZE_IN[1])),
            ),
            card_scale_percent=float(data.get("cardScalePercent", DEFAULT_SCALE_PERCENT)),
            bleed_margin_inches=float(data.get("bleedMarginInches", 0.0)),
            rotation=SideRotation.from_dict(data.get("rotation")),
            sizing_mode=data.get("cardImageSizingMode", "actual-size"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageSize": {"width": self.page_size[0], "height": self.page_size[1]},
            "offset": {"horizontal": self.offset[0], "vertical": self.offset[1]},
            "cardSize": {"widthInches": self.card_size[0], "heightInches": self.card_size[1]},
            "cardScalePercent": self.card_scale_percent,
            "bleedMarginInches": self.bleed_margin_inches,
            "rotation": self.rotation.to_dict(),
            "cardImageSizingMode": self.sizing_mode,
        }
