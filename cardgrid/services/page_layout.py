"""One global card index over pages that may belong to different groups.

Pages are split into segments, one per group plus one for ungrouped pages.
Each segment is addressed on its own with the group's mode, extraction and
output settings (global settings refined by the group's overrides). Cells are
still numbered in display order across every active page; a page contributes
its own segment's grid size.

Skipped cells and card type overrides name pages by their position in the
full active list. Segments renumber them to their own page positions.
"""
from __future__ import annotations

import itertools
import logging
from bisect import bisect_right
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from cardgrid.models.card import CardIdentity
from cardgrid.models.page import Page, PageGroup
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import ExtractionSettings, OutputSettings
from cardgrid.services import card_addressing
from cardgrid.services.settings_resolver import (
    effective_extraction, effective_output, group_for_page, resolve_mode,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageSegment:
    group_id: Optional[str]
    pages: Tuple[Page, ...]
    page_numbers: Tuple[int, ...]
    extraction: ExtractionSettings
    output: OutputSettings
    mode: ProcessingMode

    @property
    def cards_per_page(self) -> int:
        return self.extraction.grid.cards_per_page


@dataclass(frozen=True)
class CardSlot:
    """Where a global index lands: its segment, active page and segment-local index."""
    segment: PageSegment
    page_number: int
    local_page: int
    cell_index: int

    @property
    def local_index(self) -> int:
        return self.local_page * self.segment.cards_per_page + self.cell_index

    @property
    def page(self) -> Page:
        return self.segment.pages[self.local_page]


def _localise(extraction: ExtractionSettings, page_numbers: Sequence[int]) -> ExtractionSettings:
    local = {number: i for i, number in enumerate(page_numbers)}
    return extraction.with_changes(
        skipped_cards=tuple(
            replace(s, page_index=local[s.page_index])
            for s in extraction.skipped_cards if s.page_index in local
        ),
        card_type_overrides=tuple(
            replace(o, page_index=local[o.page_index])
            for o in extraction.card_type_overrides if o.page_index in local
        ),
    )


def build_segments(
    pages: Sequence[Page],
    groups: Iterable[PageGroup],
    extraction: ExtractionSettings,
    output: OutputSettings,
    mode: ProcessingMode,
) -> List[PageSegment]:
    """Split the active pages by group; ungrouped pages keep the global settings."""
    groups = list(groups)
    active = sorted(
        ((index, page) for index, page in enumerate(pages) if page.active),
        key=lambda item: item[1].display_order,
    )
    buckets: Dict[Optional[str], Tuple[Optional[PageGroup], List[int], List[Page]]] = {}
    for number, (index, page) in enumerate(active):
        group = group_for_page(index, groups, page)
        key = group.group_id if group is not None else None
        bucket = buckets.setdefault(key, (group, [], []))
        bucket[1].append(number)
        bucket[2].append(page)

    segments = []
    for key, (group, numbers, members) in buckets.items():
        segments.append(PageSegment(
            group_id=key,
            pages=tuple(members),
            page_numbers=tuple(numbers),
            extraction=_localise(effective_extraction(extraction, group), numbers),
            output=effective_output(output, group),
            mode=resolve_mode(mode, group),
        ))
        logger.debug("Segment %s: %d page(s), %s, grid %dx%d", key or "(ungrouped)", len(members),
                     segments[-1].mode.kind.value, segments[-1].extraction.grid.rows,
                     segments[-1].extraction.grid.columns)
    return segments


class PageLayout:
    def __init__(
        self,
        pages: Sequence[Page],
        extraction: ExtractionSettings,
        output: OutputSettings,
        mode: ProcessingMode,
        groups: Iterable[PageGroup] = (),
    ):
        self.segments = build_segments(pages, groups, extraction, output, mode)
        placed: Dict[int, Tuple[PageSegment, int]] = {}
        for segment in self.segments:
            for local_page, number in enumerate(segment.page_numbers):
                placed[number] = (segment, local_page)
        self._placed = [placed[number] for number in range(len(placed))]
        self._starts = list(itertools.accumulate(
            (segment.cards_per_page for segment, _ in self._placed), initial=0
        ))

    @property
    def total_cards(self) -> int:
        return self._starts[-1]

    def resolve(self, global_index: int) -> Optional[CardSlot]:
        if not 0 <= global_index < self.total_cards:
            return None
        number = bisect_right(self._starts, global_index) - 1
        segment, local_page = self._placed[number]
        return CardSlot(segment, number, local_page, global_index - self._starts[number])

    def global_index(self, segment: PageSegment, local_index: int) -> int:
        local_page, cell_index = divmod(local_index, segment.cards_per_page)
        return self._starts[segment.page_numbers[local_page]] + cell_index

    def identify(self, global_index: int) -> Optional[CardIdentity]:
        slot = self.resolve(global_index)
        if slot is None:
            return None
        segment = slot.segment
        return card_addressing.identify(slot.local_index, segment.pages, segment.extraction, segment.mode)

    def side_indices(self, side) -> List[int]:
        """Global indices of the unskipped cells on *side*, in index order."""
        indices = []
        for segment in self.segments:
            local = card_addressing.available_indices(side, segment.pages, segment.extraction, segment.mode)
            indices.extend(self.global_index(segment, i) for i in local)
        return sorted(indices)
