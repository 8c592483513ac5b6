"""Card addressing: global card index <-> (card ID, side).

A *global index* enumerates every grid cell of every active page in display
order: ``page_index = global_index // cards_per_page`` and
``cell = global_index % cards_per_page``.  How a cell turns into a card ID and
side depends on the processing mode, so each mode gets an
`AddressingPolicy` and the module keeps a small registry of them:

1. `AddressingPolicy` (ABC)
2. `SimplexAddressing` / `DuplexAddressing` – one side per page, IDs counted
   per side so the n-th front page and the n-th back page line up cell for cell
3. `GutterFoldAddressing` – both sides on one sheet, back cells mirrored
   across the fold
4. `AddressingPolicyFactory` – registry with `register()` and `for_mode()`

The public functions below (`identify`, `locate`, ...) are what the rest of
the package calls; they never raise for an index that is merely out of range.

A page that carries its own mode is addressed with that mode, together with
the other pages sharing it. Card type overrides in the extraction settings
force the side of single cells after the mode has spoken.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from cardgrid.errors import InvalidGeometryError
from cardgrid.models.card import CardIdentity
from cardgrid.models.page import Page, Side
from cardgrid.models.processing_mode import FoldOrientation, ModeKind, ProcessingMode
from cardgrid.models.settings import ExtractionSettings, Grid
from cardgrid.services.settings_resolver import resolve_mode

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def active_pages(pages: Iterable[Page]) -> List[Page]:
    """Pages that take part in addressing, in display order."""
    return sorted((p for p in pages if p.active), key=lambda p: p.display_order)


def cell_position(cell_index: int, grid: Grid) -> Tuple[int, int]:
    """(row, column) of a cell, row-major."""
    return divmod(cell_index, grid.columns)


def split_index(global_index: int, cards_per_page: int) -> Tuple[int, int]:
    """(page index among active pages, cell index on that page)."""
    return divmod(global_index, cards_per_page)


def total_cards(pages: Sequence[Page], cards_per_page: int) -> int:
    return len(pages) * cards_per_page


def actual_page_number(page_index: int, pages: Sequence[Page]) -> Optional[int]:
    """1-based page number within its source file for the *page_index*-th active page."""
    active = active_pages(pages)
    if not 0 <= page_index < len(active):
        return None
    return active[page_index].original_index + 1


# =============================================================================
# Abstract base class
# =============================================================================

class AddressingPolicy(ABC):
    """Maps cells of the active page list to card identities for one mode."""

    def __init__(self, mode: ProcessingMode):
        self.mode = mode

    def validate(self, grid: Grid) -> None:
        """Raise InvalidGeometryError when *grid* cannot be addressed in this mode."""

    @abstractmethod
    def identify_cell(self, page_index: int, cell_index: int,
                      pages: Sequence[Page], grid: Grid) -> CardIdentity: ...

    @abstractmethod
    def locate_cell(self, card_id: int, side: Side,
                    pages: Sequence[Page], grid: Grid) -> Optional[Tuple[int, int]]: ...


# =============================================================================
# Factory / registry
# =============================================================================

class AddressingPolicyFactory:
    """Registry mapping a mode kind to the policy class that addresses it."""

    _registry: Dict[str, type[AddressingPolicy]] = {}

    @classmethod
    def register(cls, kind: str, policy_cls: type[AddressingPolicy]) -> None:
        if not issubclass(policy_cls, AddressingPolicy):
            raise TypeError("policy_cls must inherit from AddressingPolicy")
        cls._registry[ModeKind(kind).value] = policy_cls

    @classmethod
    def for_mode(cls, mode: ProcessingMode) -> AddressingPolicy:
        try:
            policy_cls = cls._registry[mode.kind.value]
        except KeyError as exc:
            raise ValueError(
                f"No addressing policy for mode '{mode.kind.value}'. Registered: {list(cls._registry)}"
            ) from exc
        return policy_cls(mode)


# =============================================================================
# Concrete policy 0 – one side per page
# =============================================================================

class SimplexAddressing(AddressingPolicy):
    """Every page is a front unless it is explicitly marked as a back.

    IDs are counted independently per side: the k-th page of a side holds
    IDs ``k * cards_per_page + 1 ...``.
    """

    def side_of(self, page_index: int, page: Page) -> Side:
        return page.side or Side.FRONT

    def _ordinal(self, page_index: int, side: Side, pages: Sequence[Page]) -> int:
        return sum(1 for i in range(page_index) if self.side_of(i, pages[i]) is side)

    def identify_cell(self, page_index, cell_index, pages, grid):
        side = self.side_of(page_index, pages[page_index])
        ordinal = self._ordinal(page_index, side, pages)
        return CardIdentity(ordinal * grid.cards_per_page + cell_index + 1, side)

    def locate_cell(self, card_id, side, pages, grid):
        ordinal, cell_index = divmod(card_id - 1, grid.cards_per_page)
        seen = 0
        for page_index, page in enumerate(pages):
            if self.side_of(page_index, page) is not side:
                continue
            if seen == ordinal:
                return page_index, cell_index
            seen += 1
        return None


# ---------------------------------------------------------------------------
AddressingPolicyFactory.register(ModeKind.SIMPLEX, SimplexAddressing)


# =============================================================================
# Concrete policy 1 – alternating pages
# =============================================================================

class DuplexAddressing(SimplexAddressing):
    """Pages alternate front, back, front, back after skip filtering.

    An explicit side on a page still wins over its position, so uneven
    imports can be corrected page by page.
    """

    def side_of(self, page_index: int, page: Page) -> Side:
        if page.side is not None:
            return page.side
        return Side.FRONT if page_index % 2 == 0 else Side.BACK


# ---------------------------------------------------------------------------
AddressingPolicyFactory.register(ModeKind.DUPLEX, DuplexAddressing)


# =============================================================================
# Concrete policy 2 – both sides on one folded sheet
# =============================================================================

class GutterFoldAddressing(AddressingPolicy):
    """Front cells on the first half of the fold axis, backs mirrored on the second.

    Vertical fold: left columns are fronts, right columns backs, mirrored
    column-wise.  Horizontal fold: top rows fronts, bottom rows backs,
    mirrored row-wise.  Each page contributes ``cards_per_page / 2`` IDs.
    """

    @property
    def vertical(self) -> bool:
        return self.mode.orientation is FoldOrientation.VERTICAL

    def validate(self, grid: Grid) -> None:
        if self.vertical and grid.columns % 2:
            raise InvalidGeometryError(
                "grid columns", grid.columns, "a vertical gutter fold needs an even column count"
            )
        if not self.vertical and grid.rows % 2:
            raise InvalidGeometryError(
                "grid rows", grid.rows, "a horizontal gutter fold needs an even row count"
            )

    def identify_cell(self, page_index, cell_index, pages, grid):
        row, col = cell_position(cell_index, grid)
        offset = page_index * (grid.cards_per_page // 2)
        if self.vertical:
            half = grid.columns // 2
            side = Side.FRONT if col < half else Side.BACK
            if side is Side.BACK:
                col = grid.columns - 1 - col
            return CardIdentity(offset + row * half + col + 1, side)

        half = grid.rows // 2
        side = Side.FRONT if row < half else Side.BACK
        if side is Side.BACK:
            row = grid.rows - 1 - row
        return CardIdentity(offset + row * grid.columns + col + 1, side)

    def locate_cell(self, card_id, side, pages, grid):
        page_index, within = divmod(card_id - 1, grid.cards_per_page // 2)
        if page_index >= len(pages):
            return None
        if self.vertical:
            row, col = divmod(within, grid.columns // 2)
            if side is Side.BACK:
                col = grid.columns - 1 - col
        else:
            row, col = divmod(within, grid.columns)
            if side is Side.BACK:
                row = grid.rows - 1 - row
        return page_index, row * grid.columns + col


# ---------------------------------------------------------------------------
AddressingPolicyFactory.register(ModeKind.GUTTER_FOLD, GutterFoldAddressing)


# =============================================================================
# Public API
# =============================================================================

def page_mode(page: Page, mode: ProcessingMode) -> ProcessingMode:
    """Effective mode of one page: its own mode when it has one."""
    return resolve_mode(mode, page=page)


def _mode_subsets(pages: Sequence[Page], mode: ProcessingMode) -> Dict[ProcessingMode, List[int]]:
    subsets: Dict[ProcessingMode, List[int]] = {}
    for page_index, page in enumerate(pages):
        subsets.setdefault(page_mode(page, mode), []).append(page_index)
    return subsets


def _policy(extraction: ExtractionSettings, mode: ProcessingMode) -> AddressingPolicy:
    policy = AddressingPolicyFactory.for_mode(mode)
    policy.validate(extraction.grid)
    return policy


def _page_plan(
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
) -> List[Tuple[AddressingPolicy, List[Page], int]]:
    """Per page: the policy of its effective mode, the pages sharing that mode, and its position among them."""
    plan: List[Optional[Tuple[AddressingPolicy, List[Page], int]]] = [None] * len(pages)
    for subset_mode, members in _mode_subsets(pages, mode).items():
        policy = _policy(extraction, subset_mode)
        subset = [pages[i] for i in members]
        for local_index, page_index in enumerate(members):
            plan[page_index] = (policy, subset, local_index)
    return plan


def _apply_override(identity: CardIdentity, page_index: int, cell_index: int,
                    extraction: ExtractionSettings) -> CardIdentity:
    row, col = cell_position(cell_index, extraction.grid)
    forced = extraction.card_type_for(page_index, row, col)
    if forced is None or forced is identity.side:
        return identity
    return CardIdentity(identity.id, forced)


def _identify_on(plan, page_index: int, cell_index: int, extraction: ExtractionSettings) -> CardIdentity:
    policy, subset, local_index = plan[page_index]
    identity = policy.identify_cell(local_index, cell_index, subset, extraction.grid)
    return _apply_override(identity, page_index, cell_index, extraction)


def identify(
    global_index: int,
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
    cards_per_page: Optional[int] = None,
) -> Optional[CardIdentity]:
    """Resolve a global index over the *active* page list to a card identity.

    Each page is addressed with its effective mode among the pages sharing
    that mode; card type overrides are applied last. Returns None when the
    index addresses no cell.
    """
    cards_per_page = cards_per_page or extraction.grid.cards_per_page
    if not pages or not 0 <= global_index < total_cards(pages, cards_per_page):
        logger.debug("Card index %s is out of range for %d page(s)", global_index, len(pages))
        return None
    page_index, cell_index = split_index(global_index, cards_per_page)
    return _identify_on(_page_plan(pages, extraction, mode), page_index, cell_index, extraction)


def locate(
    card_id: int,
    side,
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
    cards_per_page: Optional[int] = None,
) -> Optional[int]:
    """Global index of the cell holding (*card_id*, *side*), or None."""
    cards_per_page = cards_per_page or extraction.grid.cards_per_page
    if card_id < 1 or not pages:
        return None
    wanted = CardIdentity(card_id, Side(side))
    plan = _page_plan(pages, extraction, mode)

    # each mode's policy knows where the card should be; overrides can move it
    for subset_mode, members in _mode_subsets(pages, mode).items():
        policy = plan[members[0]][0]
        found = policy.locate_cell(card_id, wanted.side, [pages[i] for i in members], extraction.grid)
        if found is None or found[0] >= len(members):
            continue
        page_index, cell_index = members[found[0]], found[1]
        if cell_index < cards_per_page and _identify_on(plan, page_index, cell_index, extraction) == wanted:
            return page_index * cards_per_page + cell_index

    for page_index in range(len(pages)):
        for cell_index in range(cards_per_page):
            if _identify_on(plan, page_index, cell_index, extraction) == wanted:
                return page_index * cards_per_page + cell_index
    return None


def paired_cell(
    global_index: int,
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
) -> Optional[int]:
    """Global index of the other side of the same card, if there is one."""
    identity = identify(global_index, pages, extraction, mode)
    if identity is None:
        return None
    return locate(identity.id, identity.side.opposite, pages, extraction, mode)


def iter_cells(
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
):
    """Yield (global_index, page_index, row, column, identity) for every cell."""
    grid = extraction.grid
    plan = _page_plan(pages, extraction, mode)
    for page_index in range(len(pages)):
        for cell_index in range(grid.cards_per_page):
            row, col = cell_position(cell_index, grid)
            identity = _identify_on(plan, page_index, cell_index, extraction)
            yield page_index * grid.cards_per_page + cell_index, page_index, row, col, identity


def count_cards(
    side,
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
) -> int:
    side = Side(side)
    return sum(1 for *_, identity in iter_cells(pages, extraction, mode) if identity.side is side)


def available_card_ids(
    side,
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
) -> List[int]:
    """Sorted card IDs on *side*, leaving out cells listed in ``skipped_cards``."""
    side = Side(side)
    ids = set()
    for _, page_index, row, col, identity in iter_cells(pages, extraction, mode):
        if identity.side is not side:
            continue
        if extraction.is_skipped(page_index, row, col, side):
            continue
        ids.add(identity.id)
    return sorted(ids)


def available_indices(
    side,
    pages: Sequence[Page],
    extraction: ExtractionSettings,
    mode: ProcessingMode,
) -> List[int]:
    """Global indices of the unskipped cells on *side*, in index order."""
    side = Side(side)
    return [
        index
        for index, page_index, row, col, identity in iter_cells(pages, extraction, mode)
        if identity.side is side and not extraction.is_skipped(page_index, row, col, side)
    ]
