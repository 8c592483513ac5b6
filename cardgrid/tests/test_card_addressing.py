import pytest

from cardgrid.errors import InvalidGeometryError
from cardgrid.models.card import CardIdentity
from cardgrid.models.page import Page, Side
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import CardTypeOverride, ExtractionSettings, Grid, SkippedCard
from cardgrid.services import card_addressing as ca

GRID_2x3 = ExtractionSettings(grid=Grid(2, 3))

MODES = [
    ProcessingMode.simplex(),
    ProcessingMode.duplex(),
    ProcessingMode.gutter_fold("horizontal"),
]


# ------------------------------------------------------------
# Bijection between global indices and identities
# ------------------------------------------------------------

@pytest.mark.parametrize("mode", MODES, ids=lambda m: m.kind.value + "-" + m.orientation.value)
def test_locate_inverts_identify(mode, pages4):
    total = ca.total_cards(pages4, GRID_2x3.grid.cards_per_page)
    assert total == 24
    seen = set()
    for index in range(total):
        identity = ca.identify(index, pages4, GRID_2x3, mode)
        assert identity is not None
        assert ca.locate(identity.id, identity.side, pages4, GRID_2x3, mode) == index
        seen.add((identity.id, identity.side))
    assert len(seen) == total


def test_vertical_gutter_fold_bijection(pages4):
    settings = ExtractionSettings(grid=Grid(3, 2))
    mode = ProcessingMode.gutter_fold("vertical")
    for index in range(24):
        identity = ca.identify(index, pages4, settings, mode)
        assert ca.locate(identity.id, identity.side, pages4, settings, mode) == index


def test_simplex_bijection_with_back_pages(pages_factory):
    pages = pages_factory(4, [None, Side.BACK, None, None])
    mode = ProcessingMode.simplex()
    assert ca.identify(6, pages, GRID_2x3, mode) == CardIdentity(1, Side.BACK)
    assert ca.identify(12, pages, GRID_2x3, mode) == CardIdentity(7, Side.FRONT)
    for index in range(24):
        identity = ca.identify(index, pages, GRID_2x3, mode)
        assert ca.locate(identity.id, identity.side, pages, GRID_2x3, mode) == index


# ------------------------------------------------------------
# Out of range
# ------------------------------------------------------------

@pytest.mark.parametrize("index", [-1, 24, 1000])
def test_out_of_range_index_is_no_card(index, pages4):
    assert ca.identify(index, pages4, GRID_2x3, ProcessingMode.simplex()) is None


def test_no_pages_is_no_card():
    assert ca.identify(0, [], GRID_2x3, ProcessingMode.duplex()) is None
    assert ca.locate(1, Side.FRONT, [], GRID_2x3, ProcessingMode.duplex()) is None


def test_locate_does_not_guess(pages4):
    mode = ProcessingMode.simplex()
    # all pages are fronts, so no back card exists
    assert ca.locate(1, Side.BACK, pages4, GRID_2x3, mode) is None
    assert ca.locate(0, Side.FRONT, pages4, GRID_2x3, mode) is None
    assert ca.locate(25, Side.FRONT, pages4, GRID_2x3, mode) is None


# ------------------------------------------------------------
# Duplex
# ------------------------------------------------------------

def test_duplex_front_and_back_pages_share_ids(duplex_pages):
    settings = ExtractionSettings(grid=Grid(1, 2))
    mode = ProcessingMode.duplex()
    front = ca.identify(0, duplex_pages, settings, mode)   # page 0, cell 0
    back = ca.identify(2, duplex_pages, settings, mode)    # page 1, cell 0
    assert front == CardIdentity(1, Side.FRONT)
    assert back == CardIdentity(1, Side.BACK)
    assert ca.identify(4, duplex_pages, settings, mode) == CardIdentity(3, Side.FRONT)
    assert ca.identify(7, duplex_pages, settings, mode) == CardIdentity(4, Side.BACK)


def test_duplex_alternates_without_explicit_sides(pages4):
    settings = ExtractionSettings(grid=Grid(1, 2))
    sides = [ca.identify(i, pages4, settings, ProcessingMode.duplex()).side for i in range(0, 8, 2)]
    assert sides == [Side.FRONT, Side.BACK, Side.FRONT, Side.BACK]


def test_skipping_a_page_shifts_following_indices(pages_factory):
    pages = pages_factory(4)
    pages[1] = pages[1].with_changes(active=False)
    active = ca.active_pages(pages)
    assert [p.original_index for p in active] == [0, 2, 3]
    settings = ExtractionSettings(grid=Grid(1, 2))
    # the page that was third now sits in the back slot
    assert ca.identify(2, active, settings, ProcessingMode.duplex()) == CardIdentity(1, Side.BACK)


def test_active_pages_follow_display_order():
    pages = [
        Page("b.png", original_index=0, display_order=2),
        Page("a.png", original_index=1, display_order=0),
        Page("c.png", original_index=2, display_order=1, active=False),
    ]
    assert [p.source_file for p in ca.active_pages(pages)] == ["a.png", "b.png"]


# ------------------------------------------------------------
# Gutter fold
# ------------------------------------------------------------

def test_vertical_gutter_fold_mirrors_columns(pages_factory):
    settings = ExtractionSettings(grid=Grid(2, 4), gutter_width=20, page_dimensions=(1000, 700))
    mode = ProcessingMode.gutter_fold("vertical", 20)
    pages = pages_factory(1)
    front = ca.identify(0, pages, settings, mode)   # row 0, col 0
    back = ca.identify(3, pages, settings, mode)    # row 0, col 3
    assert front.side is Side.FRONT and back.side is Side.BACK
    assert front.id == back.id
    assert ca.identify(1, pages, settings, mode) == CardIdentity(2, Side.FRONT)
    assert ca.identify(2, pages, settings, mode) == CardIdentity(2, Side.BACK)
    assert ca.identify(4, pages, settings, mode) == CardIdentity(3, Side.FRONT)


def test_horizontal_gutter_fold_mirrors_rows(pages_factory):
    settings = ExtractionSettings(grid=Grid(4, 2))
    mode = ProcessingMode.gutter_fold("horizontal")
    pages = pages_factory(2)
    assert ca.identify(0, pages, settings, mode) == CardIdentity(1, Side.FRONT)   # row 0
    assert ca.identify(6, pages, settings, mode) == CardIdentity(1, Side.BACK)    # row 3
    assert ca.identify(4, pages, settings, mode) == CardIdentity(3, Side.BACK)    # row 2
    # second page continues numbering
    assert ca.identify(8, pages, settings, mode) == CardIdentity(5, Side.FRONT)


def test_gutter_fold_needs_an_even_fold_axis(pages4):
    with pytest.raises(InvalidGeometryError, match="columns"):
        ca.identify(0, pages4, GRID_2x3, ProcessingMode.gutter_fold("vertical"))


def test_paired_cell(pages_factory):
    settings = ExtractionSettings(grid=Grid(2, 4))
    mode = ProcessingMode.gutter_fold("vertical")
    pages = pages_factory(1)
    assert ca.paired_cell(0, pages, settings, mode) == 3
    assert ca.paired_cell(5, pages, settings, mode) == 6
    # simplex fronts have no backs
    assert ca.paired_cell(0, pages, settings, ProcessingMode.simplex()) is None


# ------------------------------------------------------------
# Counting, skipping, page numbers
# ------------------------------------------------------------

def test_count_cards_per_side(duplex_pages):
    mode = ProcessingMode.duplex()
    assert ca.count_cards(Side.FRONT, duplex_pages, GRID_2x3, mode) == 12
    assert ca.count_cards("back", duplex_pages, GRID_2x3, mode) == 12


def test_available_card_ids_skip_cells(duplex_pages):
    settings = GRID_2x3.with_changes(skipped_cards=(
        SkippedCard(0, 0, 1),                 # page 0 cell 1, any side
        SkippedCard(1, 1, 2, Side.FRONT),     # page 1 is a back page: no effect
        SkippedCard(3, 0, 0, Side.BACK),      # second back page, cell 0 -> ID 7
    ))
    mode = ProcessingMode.duplex()
    fronts = ca.available_card_ids(Side.FRONT, duplex_pages, settings, mode)
    backs = ca.available_card_ids(Side.BACK, duplex_pages, settings, mode)
    assert 2 not in fronts and len(fronts) == 11
    assert 7 not in backs and 6 in backs and len(backs) == 11


def test_available_indices_for_side(duplex_pages):
    settings = ExtractionSettings(grid=Grid(1, 2))
    assert ca.available_indices(Side.BACK, duplex_pages, settings, ProcessingMode.duplex()) == [2, 3, 6, 7]


def test_cell_position_and_actual_page_number(pages_factory):
    assert ca.cell_position(4, Grid(2, 3)) == (1, 1)
    pages = pages_factory(3)
    pages[0] = pages[0].with_changes(active=False)
    assert ca.actual_page_number(0, pages) == 2
    assert ca.actual_page_number(5, pages) is None


# ------------------------------------------------------------
# Per-page modes and card type overrides
# ------------------------------------------------------------

def test_page_mode_overrides_the_global_mode():
    page = Page(source_file="fold.png", mode=ProcessingMode.gutter_fold("vertical"))
    settings = ExtractionSettings(grid=Grid(1, 2))
    simplex = ProcessingMode.simplex()
    assert ca.identify(0, [page], settings, simplex) == CardIdentity(1, Side.FRONT)
    assert ca.identify(1, [page], settings, simplex) == CardIdentity(1, Side.BACK)
    assert ca.locate(1, Side.BACK, [page], settings, simplex) == 1
    assert ca.page_mode(page, simplex).is_gutter_fold


def test_pages_sharing_a_mode_are_addressed_together(pages_factory):
    pages = pages_factory(3)
    pages[1] = pages[1].with_changes(mode=ProcessingMode.duplex())
    pages[2] = pages[2].with_changes(mode=ProcessingMode.duplex())
    settings = ExtractionSettings(grid=Grid(1, 1))
    mode = ProcessingMode.simplex()
    # pages 1 and 2 alternate among themselves
    assert [ca.identify(i, pages, settings, mode) for i in range(3)] == [
        CardIdentity(1, Side.FRONT), CardIdentity(1, Side.FRONT), CardIdentity(1, Side.BACK),
    ]


def test_card_type_override_changes_the_side(pages_factory):
    pages = pages_factory(1)
    settings = ExtractionSettings(
        grid=Grid(1, 2), card_type_overrides=(CardTypeOverride(0, 0, 1, Side.BACK),)
    )
    mode = ProcessingMode.simplex()
    assert ca.identify(0, pages, settings, mode) == CardIdentity(1, Side.FRONT)
    assert ca.identify(1, pages, settings, mode) == CardIdentity(2, Side.BACK)
    assert ca.locate(2, Side.BACK, pages, settings, mode) == 1
    assert ca.locate(2, Side.FRONT, pages, settings, mode) is None
    assert ca.count_cards(Side.BACK, pages, settings, mode) == 1
    assert ca.available_indices(Side.BACK, pages, settings, mode) == [1]


def test_override_on_a_gutter_fold_keeps_the_mirrored_id(pages4):
    settings = ExtractionSettings(
        grid=Grid(1, 2), card_type_overrides=(CardTypeOverride(2, 0, 1, "front"),)
    )
    mode = ProcessingMode.gutter_fold("vertical")
    assert ca.identify(5, pages4, settings, mode) == CardIdentity(3, Side.FRONT)
    assert ca.identify(4, pages4, settings, mode) == CardIdentity(3, Side.FRONT)
    assert ca.locate(3, Side.BACK, pages4, settings, mode) is None


def test_last_card_type_override_wins():
    settings = ExtractionSettings(card_type_overrides=(
        CardTypeOverride(0, 0, 0, Side.BACK),
        CardTypeOverride(0, 0, 0, Side.FRONT),
    ))
    assert settings.card_type_for(0, 0, 0) is Side.FRONT
    assert settings.card_type_for(1, 0, 0) is None


def test_card_type_overrides_read_and_write_camel_case():
    data = {
        "grid": {"rows": 1, "columns": 2},
        "cardTypeOverrides": [{"pageIndex": 0, "gridRow": 0, "gridColumn": 1, "cardType": "back"}],
    }
    settings = ExtractionSettings.from_dict(data)
    assert settings.card_type_overrides == (CardTypeOverride(0, 0, 1, Side.BACK),)
    assert settings.to_dict()["cardTypeOverrides"] == data["cardTypeOverrides"]


def test_toggle_card_type_cycles_front_back_none(pages_factory):
    pages = pages_factory(1)
    mode = ProcessingMode.simplex()
    settings = ExtractionSettings(grid=Grid(1, 2))
    sides = []
    for _ in range(3):
        settings = settings.toggle_card_type(0, 0, 1)
        sides.append(ca.identify(1, pages, settings, mode).side)
        assert len(settings.card_type_overrides) <= 1
    assert sides == [Side.FRONT, Side.BACK, Side.FRONT]
    assert settings.card_type_overrides == ()
    assert settings.with_card_type(0, 0, 0, "back").card_type_for(0, 0, 0) is Side.BACK
