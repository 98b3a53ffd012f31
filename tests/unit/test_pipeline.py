"""Unit tests for the store analysis pipeline."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from storelens.audit.capture.browser_factory import BrowserFactory, BrowserSession
from storelens.audit.capture.pipeline import (
    PipelineConfig,
    PipelineOrchestrator,
    PipelineStage,
    analyze_store,
)
from storelens.audit.errors import (
    AnalysisTimeoutError,
    BrowserLaunchError,
    NavigationError,
    PageAnalysisError,
)


HOMEPAGE_URL = "https://x.com"
PRODUCT_URL = "https://x.com/products/abc"


class TestPipelineOrchestrator:
    """Tests for PipelineOrchestrator class."""

    @pytest.fixture
    def product_link(self):
        element = AsyncMock()
        element.evaluate.return_value = PRODUCT_URL
        return element

    @pytest.fixture
    def page(self, mock_page, product_link):
        mock_page.query_selector.return_value = product_link
        return mock_page

    @pytest.fixture
    def context(self):
        return AsyncMock()

    @pytest.fixture
    def browser_factory(self, page, context):
        """Real factory whose session wraps mocked Playwright objects."""
        factory = BrowserFactory()
        factory.sessions = []

        async def create_session():
            session = BrowserSession(factory, context, page)
            factory.sessions.append(session)
            return session

        factory.create_session = create_session
        return factory

    @pytest.fixture
    def page_analyzer(self, page_metrics_factory):
        analyzer = MagicMock()

        async def analyze(page, url, session_beacons):
            return page_metrics_factory(url)

        analyzer.analyze = AsyncMock(side_effect=analyze)
        return analyzer

    def make_orchestrator(self, browser_factory, page_analyzer, **config_kwargs):
        return PipelineOrchestrator(
            PipelineConfig(**config_kwargs),
            browser_factory=browser_factory,
            page_analyzer=page_analyzer,
        )

    @pytest.mark.asyncio
    async def test_analyzes_homepage_and_product_page(self, browser_factory, page_analyzer, page):
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        metrics = await orchestrator.analyze(HOMEPAGE_URL)

        assert metrics.homepage.url == HOMEPAGE_URL
        assert metrics.product_page is not None
        assert metrics.product_page.url == PRODUCT_URL

        urls = [call.args[1] for call in page_analyzer.analyze.await_args_list]
        assert urls == [HOMEPAGE_URL, PRODUCT_URL]
        page.query_selector.assert_awaited_once_with('a[href*="/products/"]')

    @pytest.mark.asyncio
    async def test_interceptor_attached_before_navigation(self, browser_factory, page_analyzer, page):
        """Both page analyses share the session's live beacon list."""
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        await orchestrator.analyze(HOMEPAGE_URL)

        page.route.assert_awaited_once()
        assert page.route.await_args.args[0] == "**/*"
        home_beacons = page_analyzer.analyze.await_args_list[0].args[2]
        product_beacons = page_analyzer.analyze.await_args_list[1].args[2]
        assert home_beacons is product_beacons

    @pytest.mark.asyncio
    async def test_session_closed_on_success(self, browser_factory, page_analyzer, context):
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        await orchestrator.analyze(HOMEPAGE_URL)

        assert browser_factory.sessions[0].is_closed
        context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_homepage_navigation_failure_propagates(self, browser_factory, page_analyzer, context):
        page_analyzer.analyze.side_effect = NavigationError("Navigation failed", url=HOMEPAGE_URL)
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        with pytest.raises(NavigationError):
            await orchestrator.analyze(HOMEPAGE_URL)

        assert page_analyzer.analyze.await_count == 1
        assert browser_factory.sessions[0].is_closed
        context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_homepage_error_is_wrapped(self, browser_factory, page_analyzer):
        cause = RuntimeError("Target closed")
        page_analyzer.analyze.side_effect = cause
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        with pytest.raises(PageAnalysisError) as exc_info:
            await orchestrator.analyze(HOMEPAGE_URL)

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.url == HOMEPAGE_URL

    @pytest.mark.asyncio
    async def test_product_failure_keeps_homepage(self, browser_factory, page_analyzer, page_metrics_factory):
        async def analyze(page, url, session_beacons):
            if url == PRODUCT_URL:
                raise NavigationError("Navigation failed", url=url)
            return page_metrics_factory(url)

        page_analyzer.analyze.side_effect = analyze
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        metrics = await orchestrator.analyze(HOMEPAGE_URL)

        assert metrics.homepage.url == HOMEPAGE_URL
        assert metrics.product_page is None
        assert browser_factory.sessions[0].is_closed

    @pytest.mark.asyncio
    async def test_no_product_link(self, browser_factory, page_analyzer, page):
        page.query_selector.return_value = None
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        metrics = await orchestrator.analyze(HOMEPAGE_URL)

        assert metrics.product_page is None
        assert page_analyzer.analyze.await_count == 1

    @pytest.mark.asyncio
    async def test_product_link_query_failure(self, browser_factory, page_analyzer, page):
        page.query_selector.side_effect = Exception("Execution context was destroyed")
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        metrics = await orchestrator.analyze(HOMEPAGE_URL)

        assert metrics.product_page is None

    @pytest.mark.asyncio
    async def test_product_page_disabled(self, browser_factory, page_analyzer, page):
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer, analyze_product_page=False)

        metrics = await orchestrator.analyze(HOMEPAGE_URL)

        assert metrics.product_page is None
        page.query_selector.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_homepage_timeout(self, browser_factory, page_analyzer, page_metrics_factory):
        """The timer wins; the abandoned analysis is left to finish on its own."""
        release = asyncio.Event()

        async def slow_analyze(page, url, session_beacons):
            await release.wait()
            return page_metrics_factory(url)

        page_analyzer.analyze.side_effect = slow_analyze
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer, homepage_timeout_ms=20)

        with pytest.raises(AnalysisTimeoutError) as exc_info:
            await orchestrator.analyze(HOMEPAGE_URL)

        assert str(exc_info.value) == "Homepage analysis timeout"
        assert browser_factory.sessions[0].is_closed

        release.set()
        await asyncio.sleep(0.01)

    @pytest.mark.asyncio
    async def test_product_timeout_yields_none(self, browser_factory, page_analyzer, page_metrics_factory):
        release = asyncio.Event()

        async def analyze(page, url, session_beacons):
            if url == PRODUCT_URL:
                await release.wait()
            return page_metrics_factory(url)

        page_analyzer.analyze.side_effect = analyze
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer, product_page_timeout_ms=20)

        metrics = await orchestrator.analyze(HOMEPAGE_URL)

        assert metrics.homepage.url == HOMEPAGE_URL
        assert metrics.product_page is None

        release.set()
        await asyncio.sleep(0.01)

    @pytest.mark.asyncio
    async def test_browser_launch_failure(self, page_analyzer):
        factory = BrowserFactory()
        factory.create_session = AsyncMock(side_effect=BrowserLaunchError("Browser launch failed"))
        orchestrator = self.make_orchestrator(factory, page_analyzer)

        with pytest.raises(BrowserLaunchError):
            await orchestrator.analyze(HOMEPAGE_URL)

        page_analyzer.analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_progress_callbacks(self, browser_factory, page_analyzer):
        stages = []
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)
        orchestrator.add_progress_callback(stages.append)
        orchestrator.add_progress_callback(MagicMock(side_effect=RuntimeError("ignored")))

        await orchestrator.analyze(HOMEPAGE_URL)

        assert stages == [
            PipelineStage.LAUNCHING,
            PipelineStage.HOMEPAGE,
            PipelineStage.PRODUCT_DISCOVERY,
            PipelineStage.PRODUCT_PAGE,
            PipelineStage.COMPLETE,
        ]

    @pytest.mark.asyncio
    async def test_signal_handlers_installed_when_enabled(self, browser_factory, page_analyzer):
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer, handle_signals=True)

        with patch.object(BrowserSession, "install_signal_handlers") as install:
            await orchestrator.analyze(HOMEPAGE_URL)

        install.assert_called_once()

    @pytest.mark.asyncio
    async def test_find_product_link_falls_back_to_attribute(self, browser_factory, page_analyzer, page, product_link):
        product_link.evaluate.return_value = ""
        product_link.get_attribute.return_value = "/products/relative"
        page.url = "https://x.com/"
        orchestrator = self.make_orchestrator(browser_factory, page_analyzer)

        url = await orchestrator.find_product_link(page, HOMEPAGE_URL)

        assert url == "https://x.com/products/relative"

    @pytest.mark.asyncio
    async def test_analyze_store_uses_fresh_pipeline(self, page_metrics_factory):
        with patch.object(PipelineOrchestrator, "analyze", new_callable=AsyncMock) as analyze:
            analyze.return_value = "metrics"

            result = await analyze_store(HOMEPAGE_URL)

        assert result == "metrics"
        analyze.assert_awaited_once_with(HOMEPAGE_URL)
