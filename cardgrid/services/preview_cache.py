"""Preview cache for processed cards.

A bounded, thread-safe map from a card key to the extracted image and render
data built for it. The key holds every output setting that changes the
rendered card, so a warm cache returns exactly what a cold one would compute.
Entries go stale after a fixed age; when the bound is exceeded the oldest
fifth is dropped in one pass.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from cardgrid.config import (
    PREVIEW_CACHE_EVICT_FRACTION, PREVIEW_CACHE_MAX_AGE_S, PREVIEW_CACHE_MAX_ENTRIES,
)
from cardgrid.models.page import Side
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import OutputSettings

logger = logging.getLogger(__name__)


class PreviewCache:
    """Cache container for preview and export rendering results."""

    def __init__(
        self,
        max_entries: int = PREVIEW_CACHE_MAX_ENTRIES,
        max_age_seconds: float = PREVIEW_CACHE_MAX_AGE_S,
        evict_fraction: float = PREVIEW_CACHE_EVICT_FRACTION,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if not 0 < evict_fraction <= 1:
            raise ValueError("evict_fraction must be in (0, 1]")
        self.max_entries = max_entries
        self.max_age_seconds = max_age_seconds
        self.evict_fraction = evict_fraction
        self._clock = clock
        self._entries: Dict[Tuple, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evicted = 0

    # ------------------------------------------------------------------
    # cache management helpers
    # ------------------------------------------------------------------
    def clear(self) -> None:
        """Drop all cached entries."""

        with self._lock:
            self._entries.clear()

    def invalidate(self, card_id: int, side) -> int:
        """Drop every entry for one card side, whatever settings it was built with."""
        side = Side(side).value
        with self._lock:
            stale = [k for k in self._entries if k[0] == card_id and k[1] == side]
            for k in stale:
                del self._entries[k]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Tuple) -> bool:
        with self._lock:
            return key in self._entries

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evicted": self._evicted,
            }

    # ------------------------------------------------------------------
    # get / put
    # ------------------------------------------------------------------
    def get(self, key: Tuple) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                self._misses += 1
                return None
            stamp, entry = item
            if now - stamp > self.max_age_seconds:
                del self._entries[key]
                self._misses += 1
                logger.debug("Stale preview entry dropped: %s", key[:2])
                return None
            self._hits += 1
            return entry

    def put(self, key: Tuple, entry: Any) -> None:
        now = self._clock()
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (now, entry)
            if len(self._entries) > self.max_entries:
                self._evict_locked()

    def _evict_locked(self) -> None:
        overflow = len(self._entries) - self.max_entries
        count = max(math.ceil(self.max_entries * self.evict_fraction), overflow)
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1][0])[:count]
        for k, _ in oldest:
            del self._entries[k]
        self._evicted += len(oldest)
        logger.debug("Evicted %d preview entries, %d remain", len(oldest), len(self._entries))

    # ------------------------------------------------------------------
    # key builder
    # ------------------------------------------------------------------
    @staticmethod
    def key(card_id: int, side, output: OutputSettings, group_id: Optional[str] = None,
            mode: Optional[ProcessingMode] = None) -> Tuple:
        side = Side(side)
        return (
            card_id,
            side.value,
            group_id,
            mode,
            round(output.card_size[0], 4),
            round(output.card_size[1], 4),
            round(output.card_scale_percent, 4),
            output.rotation.for_side(side),
            round(output.offset[0], 4),
            round(output.offset[1], 4),
            output.sizing_mode,
            round(output.bleed_margin_inches, 4),
            # placement is centred on the page
            round(output.page_size[0], 4),
            round(output.page_size[1], 4),
        )
