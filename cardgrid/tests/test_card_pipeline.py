import threading
import time

import pytest
from PySide6.QtGui import QColor, QImage

from cardgrid.errors import InvalidIndexError, SourceUnavailableError, StageTimeoutError
from cardgrid.models.card import CardIdentity
from cardgrid.models.page import PageGroup, Side
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import ExtractionSettings, Grid, OutputSettings
from cardgrid.services.card_pipeline import CardPipeline
from cardgrid.services.page_surfaces import PageSurfaceStore
from cardgrid.services.preview_cache import PreviewCache


def _sheet(color="#336699"):
    image = QImage(750, 1050, QImage.Format_RGB32)
    image.fill(QColor(color))
    return image


class CountingProvider:
    def __init__(self, delay=0.0, fail_on=None):
        self.calls = 0
        self.delay = delay
        self.fail_on = fail_on or set()
        self._lock = threading.Lock()

    def __call__(self, page):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if page.original_index in self.fail_on:
            return QImage()
        return _sheet()


@pytest.fixture
def settings():
    return ExtractionSettings(grid=Grid(1, 1))


def test_process_runs_every_stage(pages_factory, settings):
    pages = pages_factory(2)
    with CardPipeline(pages, settings, OutputSettings(), ProcessingMode.duplex(),
                      surfaces=PageSurfaceStore(CountingProvider())) as pipeline:
        entry = pipeline.process(1)
    assert entry.identity == CardIdentity(1, Side.BACK)
    assert (entry.extracted.width(), entry.extracted.height()) == (750, 1050)
    placement = entry.render_data.placement
    assert placement.x == pytest.approx((8.5 - 2.5) / 2)
    assert entry.render_data.image is not None


def test_warm_cache_returns_the_same_result(pages_factory, settings):
    provider = CountingProvider()
    cache = PreviewCache()
    with CardPipeline(pages_factory(1), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(provider), cache=cache) as pipeline:
        first = pipeline.process(0)
        second = pipeline.process(0)
    assert second is first
    assert cache.stats()["hits"] == 1
    assert provider.calls == 1


def test_each_page_is_rendered_once_under_concurrency(pages_factory):
    provider = CountingProvider(delay=0.05)
    settings = ExtractionSettings(grid=Grid(1, 2))
    with CardPipeline(pages_factory(1), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(provider)) as pipeline:
        futures = [pipeline.request(i)[1] for i in (0, 1)]
        results = [f.result(timeout=10) for f in futures]
    assert {r.identity.id for r in results} == {1, 2}
    assert provider.calls == 1


def test_last_request_wins(pages_factory, settings):
    with CardPipeline(pages_factory(3), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(CountingProvider())) as pipeline:
        first, f1 = pipeline.request(0)
        second, f2 = pipeline.request(1)
        f1.result(timeout=10)
        f2.result(timeout=10)
        assert second > first
        assert not pipeline.is_current(first)
        assert pipeline.is_current(second)


def test_slow_extraction_times_out(pages_factory, settings):
    provider = CountingProvider(delay=0.5)
    with CardPipeline(pages_factory(1), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(provider), extraction_timeout=0.05) as pipeline:
        with pytest.raises(StageTimeoutError, match="extraction timed out"):
            pipeline.process(0)


def test_preload_never_raises(pages_factory, settings, caplog):
    provider = CountingProvider(fail_on={1})
    with CardPipeline(pages_factory(2), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(provider)) as pipeline:
        futures = pipeline.preload([0, 1, 7])
        for f in futures:
            assert f.result(timeout=10) is None
        assert len(pipeline.cache) == 1
    assert "Preload of card 1 skipped" in caplog.text


def test_missing_page_surfaces_as_source_unavailable(pages_factory, settings):
    with CardPipeline(pages_factory(1), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(CountingProvider(fail_on={0}))) as pipeline:
        with pytest.raises(SourceUnavailableError):
            pipeline.process(0)


def test_side_relative_indices(duplex_pages, settings):
    with CardPipeline(duplex_pages, settings, OutputSettings(), ProcessingMode.duplex(),
                      surfaces=PageSurfaceStore(CountingProvider())) as pipeline:
        assert pipeline.side_indices(Side.BACK) == [1, 3]
        assert pipeline.resolve_index(1, Side.BACK) == 3
        assert pipeline.process(1, Side.BACK).identity == CardIdentity(2, Side.BACK)
        with pytest.raises(InvalidIndexError):
            pipeline.resolve_index(2, Side.BACK)
        with pytest.raises(InvalidIndexError):
            pipeline.process(4)


def test_preload_logs_unexpected_failures(pages_factory, settings, caplog):
    def broken(page):
        raise RuntimeError("renderer crashed")

    with CardPipeline(pages_factory(1), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(broken)) as pipeline:
        (future,) = pipeline.preload([0])
        assert future.result(timeout=10) is None
    assert "Preload of card 0 failed" in caplog.text
    assert "renderer crashed" in caplog.text


def test_page_mode_applies_in_the_pipeline(pages_factory):
    pages = [pages_factory(1)[0].with_changes(mode=ProcessingMode.gutter_fold("vertical"))]
    with CardPipeline(pages, ExtractionSettings(grid=Grid(1, 2)), OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(CountingProvider())) as pipeline:
        assert pipeline.process(1).identity == CardIdentity(1, Side.BACK)
        assert pipeline.side_indices(Side.BACK) == [1]


def test_group_overrides_grid_and_output(pages_factory, settings):
    group = PageGroup(
        "landscape",
        page_indices=[1],
        extraction_overrides={"grid": {"rows": 1, "columns": 2}},
        output_overrides={"pageSize": {"width": 11, "height": 8.5}},
    )
    with CardPipeline(pages_factory(3), settings, OutputSettings(), ProcessingMode.simplex(),
                      surfaces=PageSurfaceStore(CountingProvider()), groups=[group]) as pipeline:
        assert pipeline.total_cards == 4
        identities = [pipeline.process(i).identity for i in range(4)]
        assert identities == [
            CardIdentity(1, Side.FRONT),
            CardIdentity(1, Side.FRONT),
            CardIdentity(2, Side.FRONT),
            CardIdentity(2, Side.FRONT),
        ]
        assert pipeline.output_for(0).page_size == (8.5, 11.0)
        assert pipeline.output_for(2).page_size == (11.0, 8.5)
        grouped = pipeline.process(1)
        assert grouped.extracted.width() == 375
        assert grouped.render_data.placement.x == pytest.approx((11 - 2.5) / 2)
        # same card ID in two groups: two cache entries
        assert pipeline.process(0).extracted.width() == 750
        assert len(pipeline.cache) == 4
