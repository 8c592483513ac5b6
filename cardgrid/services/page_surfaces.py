from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Hashable, Optional, Tuple

from PySide6.QtGui import QImage

from cardgrid.errors import SourceUnavailableError
from cardgrid.models.page import Page, SourceKind

logger = logging.getLogger(__name__)

SurfaceProvider = Callable[[Page], Optional[QImage]]


def load_raster_page(page: Page) -> QImage:
    """Provider for raster-image pages: the file itself is the surface."""
    if page.source_kind is not SourceKind.RASTER_IMAGE:
        raise SourceUnavailableError(
            f"{page.source_file} is a {page.source_kind.value}; it needs a document renderer"
        )
    path = Path(page.source_file).expanduser()
    if not path.is_file():
        raise SourceUnavailableError(f"Image file not found: {path}")
    image = QImage(str(path))
    if image.isNull():
        raise SourceUnavailableError(f"Could not decode image: {path}")
    return image


class PageSurfaceStore:
    """Renders each page once and hands out the same read-only surface after.

    Different pages render in parallel; concurrent requests for one page
    wait on that page's lock so the provider runs once per page.
    """

    def __init__(self, provider: SurfaceProvider = load_raster_page):
        self._provider = provider
        self._surfaces: Dict[Hashable, QImage] = {}
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    @staticmethod
    def _key(page: Page) -> Tuple[str, int]:
        return page.source_file, page.original_index

    def _lock_for(self, key) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def get(self, page: Page, page_index: Optional[int] = None) -> QImage:
        key = self._key(page)
        with self._lock_for(key):
            surface = self._surfaces.get(key)
            if surface is not None:
                return surface
            label = page_index + 1 if page_index is not None else page.original_index + 1
            try:
                surface = self._provider(page)
            except (OSError, ValueError) as exc:
                raise SourceUnavailableError(
                    f"Could not render page {label} of {page.source_file}: {exc}", page_index
                ) from exc
            if surface is None or surface.isNull():
                raise SourceUnavailableError(f"No image data for page {label} of {page.source_file}", page_index)
            logger.debug("Rendered %s page %d at %dx%d", page.source_file, label, surface.width(), surface.height())
            self._surfaces[key] = surface
            return surface

    def __call__(self, page_index: int, page: Page) -> QImage:
        return self.get(page, page_index)

    def discard(self, page: Page) -> None:
        with self._guard:
            self._surfaces.pop(self._key(page), None)

    def clear(self) -> None:
        with self._guard:
            self._surfaces.clear()

    def __len__(self) -> int:
        return len(self._surfaces)
