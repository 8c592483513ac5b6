"""Background card processing with per-stage timeouts.

One request runs three stages, each on the stage pool with its own budget:

    extraction   page surface -> card image            (EXTRACTION_TIMEOUT_S)
    positioning  render dimensions, placement, preview (POSITIONING_TIMEOUT_S)
    processing   sized and rotated output bitmap       (PROCESSING_TIMEOUT_S)

Callers own scheduling. `request` hands out increasing tickets and callers
drop any result whose ticket is no longer current; work already running is
not cancelled.

Pages are split by group into layout segments, each with its own extractor
and settings. Cache keys carry the group and the page's effective mode.
"""
from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from cardgrid.config import EXTRACTION_TIMEOUT_S, POSITIONING_TIMEOUT_S, PROCESSING_TIMEOUT_S
from cardgrid.errors import CardGridError, InvalidIndexError, StageTimeoutError
from cardgrid.models.card import CacheEntry
from cardgrid.models.page import Page, PageGroup, Side
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import ExtractionSettings, OutputSettings
from cardgrid.services import card_addressing
from cardgrid.services.card_extraction import CardExtractor
from cardgrid.services.page_layout import CardSlot, PageLayout, PageSegment
from cardgrid.services.page_surfaces import PageSurfaceStore
from cardgrid.services.preview_cache import PreviewCache
from cardgrid.services.render_positioning import position, process_card_image

logger = logging.getLogger(__name__)


class CardPipeline:
    def __init__(
        self,
        pages: Sequence[Page],
        extraction: ExtractionSettings,
        output: OutputSettings,
        mode: ProcessingMode,
        surfaces: Optional[PageSurfaceStore] = None,
        cache: Optional[PreviewCache] = None,
        groups: Iterable[PageGroup] = (),
        max_workers: int = 4,
        extraction_timeout: float = EXTRACTION_TIMEOUT_S,
        positioning_timeout: float = POSITIONING_TIMEOUT_S,
        processing_timeout: float = PROCESSING_TIMEOUT_S,
    ):
        pages = list(pages)
        self.pages = card_addressing.active_pages(pages)
        self.extraction = extraction
        self.output = output
        self.mode = mode
        self.surfaces = surfaces if surfaces is not None else PageSurfaceStore()
        self.cache = cache if cache is not None else PreviewCache()
        self.timeouts = {
            "extraction": extraction_timeout,
            "positioning": positioning_timeout,
            "processing": processing_timeout,
        }
        self.layout = PageLayout(pages, extraction, output, mode, groups)
        self._extractors: Dict[Optional[str], CardExtractor] = {
            segment.group_id: CardExtractor(self._segment_surfaces(segment), segment.pages,
                                            segment.extraction, segment.mode)
            for segment in self.layout.segments
        }
        # request workers block on stage futures; the two pools stay separate
        self._requests = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cardgrid-request")
        self._stages = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cardgrid-stage")
        self._tickets = itertools.count(1)
        self._current = 0
        self._ticket_lock = threading.Lock()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def shutdown(self, wait: bool = True) -> None:
        self._requests.shutdown(wait=wait)
        self._stages.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()

    # ------------------------------------------------------------------
    # indexing
    # ------------------------------------------------------------------
    def _segment_surfaces(self, segment: PageSegment):
        def surface(local_page: int, page: Page):
            return self.surfaces(segment.page_numbers[local_page], page)
        return surface

    @property
    def total_cards(self) -> int:
        return self.layout.total_cards

    def side_indices(self, side) -> List[int]:
        return self.layout.side_indices(side)

    def resolve_index(self, index: int, side=None) -> int:
        """Global index for *index*; with a *side*, *index* counts that side's cards only."""
        if side is None:
            return index
        cells = self.side_indices(side)
        if not 0 <= index < len(cells):
            raise InvalidIndexError(index, len(cells))
        return cells[index]

    def _slot(self, index: int, side=None) -> CardSlot:
        global_index = self.resolve_index(index, side)
        slot = self.layout.resolve(global_index)
        if slot is None:
            raise InvalidIndexError(global_index, self.total_cards)
        return slot

    def output_for(self, index: int, side=None) -> OutputSettings:
        """Output settings of the group the card belongs to."""
        return self._slot(index, side).segment.output

    # ------------------------------------------------------------------
    # stages
    # ------------------------------------------------------------------
    def _run_stage(self, stage: str, fn: Callable, *args, **kwargs):
        timeout = self.timeouts[stage]
        future = self._stages.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            future.cancel()
            raise StageTimeoutError(stage, timeout) from None

    def process(self, index: int, side=None) -> CacheEntry:
        """Extract, size and place one card, synchronously; served from the cache when warm."""
        slot = self._slot(index, side)
        segment = slot.segment
        extractor = self._extractors[segment.group_id]
        identity = extractor.identify(slot.local_index)

        key = PreviewCache.key(
            identity.id, identity.side, segment.output, segment.group_id,
            card_addressing.page_mode(slot.page, segment.mode),
        )
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        _, extracted = self._run_stage("extraction", extractor.extract, slot.local_index)
        render_data = self._run_stage(
            "positioning", position, extracted, segment.output, identity.side, render_image=False
        )
        processed = self._run_stage(
            "processing", process_card_image,
            extracted, render_data.render_dimensions, render_data.placement.rotation,
        )
        entry = CacheEntry(identity=identity, extracted=extracted, render_data=replace(render_data, image=processed))
        self.cache.put(key, entry)
        return entry

    # ------------------------------------------------------------------
    # background work
    # ------------------------------------------------------------------
    def request(self, index: int, side=None) -> Tuple[int, "Future[CacheEntry]"]:
        """Start processing in the background; the newest ticket is the current one."""
        with self._ticket_lock:
            ticket = next(self._tickets)
            self._current = ticket
        return ticket, self._requests.submit(self.process, index, side)

    def is_current(self, ticket: int) -> bool:
        with self._ticket_lock:
            return ticket == self._current

    def preload(self, indices: Iterable[int], side=None) -> List[Future]:
        """Warm the cache for neighbouring cards. Failures are logged, never raised."""
        return [self._requests.submit(self._preload_one, i, side) for i in indices]

    def _preload_one(self, index: int, side) -> None:
        try:
            self.process(index, side)
        except CardGridError as exc:
            logger.warning("Preload of card %s skipped: %s", index, exc)
        except Exception:
            logger.exception("Preload of card %s failed", index)

    def invalidate(self, card_id: int, side) -> None:
        self.cache.invalidate(card_id, Side(side))
