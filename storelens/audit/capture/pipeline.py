"""Store analysis pipeline that coordinates browser session and page analysis.

This module provides the PipelineOrchestrator class that owns the browser
session for one analysis run: it attaches the network interceptor, analyzes
the homepage, discovers and analyzes a product page on a best-effort basis,
and assembles the StoreMetrics result.

Page analyses run strictly one after another on a single page. The
interceptor appends to the shared beacon list from its route handler, and
each page analysis partitions that list by path after it settles.
"""

import logging
from typing import Callable, List, Optional

from playwright.async_api import Page

from .browser_factory import BrowserConfig, BrowserFactory, BrowserSession
from .network_interceptor import NetworkInterceptor
from .page_analyzer import PageAnalyzer, PageAnalyzerConfig
from .timeouts import race_with_timeout
from ..errors import AnalysisError, PageAnalysisError
from ..models.metrics import PageMetrics, StoreMetrics
from ..utils.url_normalizer import resolve_url

logger = logging.getLogger(__name__)


DEFAULT_PRODUCT_LINK_SELECTOR = 'a[href*="/products/"]'


class PipelineStage:
    """Coarse stage names reported to progress callbacks."""
    LAUNCHING = "launching"
    HOMEPAGE = "homepage"
    PRODUCT_DISCOVERY = "product_discovery"
    PRODUCT_PAGE = "product_page"
    COMPLETE = "complete"


class PipelineConfig:
    """Configuration for the store analysis pipeline."""

    def __init__(
        self,
        browser_config: Optional[BrowserConfig] = None,
        page_config: Optional[PageAnalyzerConfig] = None,
        homepage_timeout_ms: int = 25000,
        product_page_timeout_ms: int = 20000,
        product_link_selector: str = DEFAULT_PRODUCT_LINK_SELECTOR,
        analyze_product_page: bool = True,
        handle_signals: bool = False,
    ):
        """Initialize pipeline configuration.

        Args:
            browser_config: Browser launch and context configuration
            page_config: Per-page analysis configuration
            homepage_timeout_ms: Budget for the whole homepage analysis
            product_page_timeout_ms: Budget for the whole product page analysis
            product_link_selector: CSS selector for the product link on the homepage
            analyze_product_page: Look for and analyze a product page
            handle_signals: Close the browser on SIGINT/SIGTERM
        """
        self.browser_config = browser_config or BrowserConfig()
        self.page_config = page_config or PageAnalyzerConfig()
        self.homepage_timeout_ms = homepage_timeout_ms
        self.product_page_timeout_ms = product_page_timeout_ms
        self.product_link_selector = product_link_selector
        self.analyze_product_page = analyze_product_page
        self.handle_signals = handle_signals


class PipelineOrchestrator:
    """Runs a complete store analysis in one browser session."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        browser_factory: Optional[BrowserFactory] = None,
        page_analyzer: Optional[PageAnalyzer] = None
    ):
        """Initialize pipeline orchestrator.

        Args:
            config: Pipeline configuration (uses defaults if None)
            browser_factory: Factory used to open the browser session
            page_analyzer: Analyzer used for each page
        """
        self.config = config or PipelineConfig()
        self.browser_factory = browser_factory or BrowserFactory(self.config.browser_config)
        self.page_analyzer = page_analyzer or PageAnalyzer(self.config.page_config)
        self._callbacks: List[Callable[[str], None]] = []

    def add_progress_callback(self, callback: Callable[[str], None]) -> None:
        """Add callback to be called with each stage name as the run progresses.

        Args:
            callback: Function to call with a PipelineStage value
        """
        self._callbacks.append(callback)

    async def analyze(self, url: str) -> StoreMetrics:
        """Analyze a store's homepage and, if one can be found, a product page.

        Args:
            url: Homepage URL

        Returns:
            StoreMetrics with the homepage always present

        Raises:
            BrowserLaunchError: If no browser session could be created
            AnalysisError: If the homepage analysis fails or times out
        """
        logger.info(f"Starting full analysis for URL: {url}")
        self._notify(PipelineStage.LAUNCHING)

        async with self.browser_factory.session(handle_signals=self.config.handle_signals) as session:
            return await self._run(session, url)

    async def _run(self, session: BrowserSession, url: str) -> StoreMetrics:
        page = session.page

        interceptor = NetworkInterceptor(page)
        await interceptor.attach()

        self._notify(PipelineStage.HOMEPAGE)
        homepage = await self._analyze_homepage(page, url, interceptor)
        logger.info(
            f"Homepage analysis complete: {len(homepage.all_ga4_events)} GA4 events, "
            f"consent configured={homepage.consent_mode.is_configured}, "
            f"elevar configured={homepage.elevar.is_configured}"
        )

        product_page = None
        if self.config.analyze_product_page:
            product_page = await self._analyze_product_page(page, url, interceptor)

        self._notify(PipelineStage.COMPLETE)
        return StoreMetrics(homepage=homepage, product_page=product_page)

    async def _analyze_homepage(
        self,
        page: Page,
        url: str,
        interceptor: NetworkInterceptor
    ) -> PageMetrics:
        try:
            return await race_with_timeout(
                self.page_analyzer.analyze(page, url, interceptor.session_beacons),
                self.config.homepage_timeout_ms / 1000,
                label="Homepage analysis",
                url=url,
            )
        except AnalysisError:
            logger.error(f"Homepage analysis failed for {url}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Homepage analysis failed for {url}: {e}")
            raise PageAnalysisError(f"Homepage analysis failed: {e}", url=url, cause=e) from e

    async def _analyze_product_page(
        self,
        page: Page,
        homepage_url: str,
        interceptor: NetworkInterceptor
    ) -> Optional[PageMetrics]:
        """Find a product link and analyze it. Any failure yields None."""
        self._notify(PipelineStage.PRODUCT_DISCOVERY)

        try:
            product_url = await self.find_product_link(page, homepage_url)
        except Exception as e:
            logger.info(f"No product page found: {e}")
            return None

        if product_url is None:
            logger.info("No product page found on homepage")
            return None

        logger.info(f"Found product link: {product_url}")
        self._notify(PipelineStage.PRODUCT_PAGE)

        try:
            product_page = await race_with_timeout(
                self.page_analyzer.analyze(page, product_url, interceptor.session_beacons),
                self.config.product_page_timeout_ms / 1000,
                label="Product page analysis",
                url=product_url,
            )
        except Exception as e:
            logger.warning(f"Product page analysis failed for {product_url}: {e}")
            return None

        logger.info(f"Product page analysis complete: {len(product_page.all_ga4_events)} GA4 events")
        return product_page

    async def find_product_link(self, page: Page, base_url: str) -> Optional[str]:
        """Return the resolved href of the first product link on the page.

        First match wins; the selector is a plain substring match on href.

        Args:
            page: Page showing the loaded homepage
            base_url: URL used to resolve relative hrefs

        Returns:
            Absolute product URL, or None if no link matches
        """
        element = await page.query_selector(self.config.product_link_selector)
        if element is None:
            return None

        href = await element.evaluate("el => el.href")
        if not href:
            href = await element.get_attribute("href")
        if not href:
            return None

        return resolve_url(page.url or base_url, href)

    def _notify(self, stage: str) -> None:
        for callback in self._callbacks:
            try:
                callback(stage)
            except Exception as e:
                logger.error(f"Error in progress callback: {e}")


async def analyze_store(url: str, config: Optional[PipelineConfig] = None) -> StoreMetrics:
    """Analyze a store with a fresh pipeline.

    Args:
        url: Homepage URL
        config: Pipeline configuration (uses defaults if None)

    Returns:
        StoreMetrics for the store
    """
    return await PipelineOrchestrator(config).analyze(url)
