# models/processing_mode.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ModeKind(str, Enum):
    SIMPLEX = "simplex"
    DUPLEX = "duplex"
    GUTTER_FOLD = "gutter-fold"


class FoldOrientation(str, Enum):
    VERTICAL = "vertical"      # fold line runs top to bottom, halves are left/right
    HORIZONTAL = "horizontal"  # fold line runs left to right, halves are top/bottom


@dataclass(frozen=True)
class ProcessingMode:
    """How the active pages pair up into fronts and backs.

    ``orientation`` and ``gutter_width`` only mean something for gutter-fold.
    A ``gutter_width`` of ``None`` defers to the extraction settings.
    """
    kind: ModeKind = ModeKind.SIMPLEX
    orientation: FoldOrientation = FoldOrientation.VERTICAL
    gutter_width: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "kind", ModeKind(self.kind))
        object.__setattr__(self, "orientation", FoldOrientation(self.orientation))
        if self.gutter_width is not None and self.gutter_width < 0:
            raise ValueError(f"Gutter width must be non-negative, got {self.gutter_width}")

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------
    @classmethod
    def simplex(cls) -> "ProcessingMode":
        return cls(ModeKind.SIMPLEX)

    @classmethod
    def duplex(cls) -> "ProcessingMode":
        return cls(ModeKind.DUPLEX)

    @classmethod
    def gutter_fold(cls, orientation="vertical", gutter_width: Optional[float] = None) -> "ProcessingMode":
        return cls(ModeKind.GUTTER_FOLD, FoldOrientation(orientation), gutter_width)

    @property
    def is_gutter_fold(self) -> bool:
        return self.kind is ModeKind.GUTTER_FOLD

    @property
    def folds_vertically(self) -> bool:
        return self.is_gutter_fold and self.orientation is FoldOrientation.VERTICAL

    # ------------------------------------------------------------------
    # Plain-object conversion
    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingMode":
        kind = data.get("type", data.get("kind", ModeKind.SIMPLEX.value))
        gutter = data.get("gutterWidth", data.get("gutter_width"))
        return cls(
            kind=ModeKind(kind),
            orientation=FoldOrientation(data.get("orientation", FoldOrientation.VERTICAL.value)),
            gutter_width=None if gutter is None else float(gutter),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value}
        if self.is_gutter_fold:
            data["orientation"] = self.orientation.value
            if self.gutter_width is not None:
                data["gutterWidth"] = self.gutter_width
        return data
