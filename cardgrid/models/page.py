# models/page.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from cardgrid.models.processing_mode import ProcessingMode


class Side(str, Enum):
    FRONT = "front"
    BACK = "back"

    @property
    def opposite(self) -> "Side":
        return Side.BACK if self is Side.FRONT else Side.FRONT


class SourceKind(str, Enum):
    PAGED_DOCUMENT = "paged-document"
    RASTER_IMAGE = "raster-image"


@dataclass(frozen=True)
class Page:
    """One imported source unit. The engine only ever reads these."""
    source_file: str
    source_kind: SourceKind = SourceKind.RASTER_IMAGE
    original_index: int = 0
    display_order: int = 0
    active: bool = True
    side: Optional[Side] = None
    mode: Optional[ProcessingMode] = None
    group_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "source_kind", SourceKind(self.source_kind))
        if self.side is not None:
            object.__setattr__(self, "side", Side(self.side))

    def with_changes(self, **changes) -> "Page":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Page":
        side = data.get("type", data.get("side"))
        mode = data.get("processingMode", data.get("mode"))
        return cls(
            source_file=data.get("fileName", data.get("source_file", "")),
            source_kind=SourceKind(data.get("fileType", data.get("source_kind", SourceKind.RASTER_IMAGE.value))),
            original_index=int(data.get("originalPageIndex", data.get("original_index", 0))),
            display_order=int(data.get("displayOrder", data.get("display_order", 0))),
            active=not data.get("skip", False) if "skip" in data else bool(data.get("active", True)),
            side=Side(side) if side else None,
            mode=ProcessingMode.from_dict(mode) if isinstance(mode, dict) else None,
            group_id=data.get("groupId", data.get("group_id")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "fileName": self.source_file,
            "fileType": self.source_kind.value,
            "originalPageIndex": self.original_index,
            "displayOrder": self.display_order,
            "skip": not self.active,
        }
        if self.side is not None:
            data["type"] = self.side.value
        if self.mode is not None:
            data["processingMode"] = self.mode.to_dict()
        if self.group_id is not None:
            data["groupId"] = self.group_id
        return data


@dataclass(frozen=True)
class PageGroup:
    """A named set of pages sharing a mode and partial settings overrides.

    ``page_indices`` index the full page list (not the active list).
    The override dicts are partial plain-configuration objects, shaped like
    ``ExtractionSettings.to_dict()`` / ``OutputSettings.to_dict()``.
    """
    group_id: str
    name: str = ""
    page_indices: Tuple[int, ...] = ()
    mode: Optional[ProcessingMode] = None
    extraction_overrides: Dict[str, Any] = field(default_factory=dict)
    output_overrides: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "page_indices", tuple(self.page_indices))

    def contains(self, page_index: int) -> bool:
        return page_index in self.page_indices

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageGroup":
        mode = data.get("processingMode")
        return cls(
            group_id=str(data.get("id", data.get("groupId", ""))),
            name=data.get("name", ""),
            page_indices=tuple(int(i) for i in data.get("pageIndices", [])),
            mode=ProcessingMode.from_dict(mode) if isinstance(mode, dict) else None,
            extraction_overrides=dict(data.get("settings", {}).get("extraction", {})),
            output_overrides=dict(data.get("settings", {}).get("output", {})),
        )
