"""Single page analysis for store instrumentation.

This module provides the PageAnalyzer class that navigates the session's page
to one URL and collects everything measured for it: navigation timing,
consent mode, Elevar configuration, and the GA4 beacons that belong to the
page.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from playwright.async_api import Page

from ..detectors.consent_mode import ConsentModeDetector
from ..detectors.elevar import ElevarConfigResolver
from ..errors import NavigationError
from ..models.metrics import (
    AnalyticsBeacon,
    GA4Events,
    PageMetrics,
    PerformanceSnapshot,
)
from ..utils.url_normalizer import url_path

logger = logging.getLogger(__name__)


PAGE_VIEW_EVENT = "page_view"
VIEW_ITEM_EVENT = "view_item"

PERFORMANCE_SCRIPT = """
() => {
    const navigation = performance.getEntriesByType('navigation')[0];
    const paint = performance.getEntriesByType('paint');
    const fcp = paint.find(entry => entry.name === 'first-contentful-paint');

    return {
        ttfb: navigation ? navigation.responseStart : 0,
        fcp: fcp ? fcp.startTime : 0,
        domLoad: navigation ? navigation.domContentLoadedEventEnd : 0,
        windowLoad: navigation ? navigation.loadEventEnd : 0,
        resources: performance.getEntriesByType('resource').length,
    };
}
"""


class PageAnalyzerConfig:
    """Configuration for single page analysis."""

    def __init__(
        self,
        navigation_timeout_ms: int = 15000,
        settle_delay_ms: int = 3000,
        consent_attempts: int = 3,
        consent_retry_delay_ms: int = 1000,
        elevar_attempts: int = 5,
        elevar_retry_delay_ms: int = 1000,
        elevar_fetch_timeout_ms: int = 10000,
    ):
        """Initialize page analyzer configuration.

        Args:
            navigation_timeout_ms: Budget for reaching DOM ready and network idle
            settle_delay_ms: Pause after load so trailing async scripts can run
            consent_attempts: Consent mode reads before giving up
            consent_retry_delay_ms: Pause between consent reads
            elevar_attempts: Elevar discovery rounds
            elevar_retry_delay_ms: Pause between Elevar rounds
            elevar_fetch_timeout_ms: Timeout for each Elevar config fetch
        """
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_delay_ms = settle_delay_ms
        self.consent_attempts = consent_attempts
        self.consent_retry_delay_ms = consent_retry_delay_ms
        self.elevar_attempts = elevar_attempts
        self.elevar_retry_delay_ms = elevar_retry_delay_ms
        self.elevar_fetch_timeout_ms = elevar_fetch_timeout_ms


def partition_beacons(beacons: Sequence[AnalyticsBeacon], page_url: str) -> List[AnalyticsBeacon]:
    """Select the beacons that belong to a page.

    A beacon belongs to the page when the path of its ``dl`` parameter is
    exactly the page URL's path. Capture order and timing play no part, and
    a trailing slash difference is a different page.

    Args:
        beacons: Every beacon captured in the session so far
        page_url: URL the page was requested with

    Returns:
        Matching beacons in capture order
    """
    page_path = url_path(page_url)
    if page_path is None:
        return []
    return [beacon for beacon in beacons if beacon.page_path == page_path]


def find_event(beacons: Sequence[AnalyticsBeacon], event_name: str) -> Optional[AnalyticsBeacon]:
    """First beacon whose ``en`` parameter equals ``event_name``."""
    for beacon in beacons:
        if beacon.event_name == event_name:
            return beacon
    return None


class PageAnalyzer:
    """Runs the full analysis of one page on an existing browser page."""

    def __init__(
        self,
        config: Optional[PageAnalyzerConfig] = None,
        consent_detector: Optional[ConsentModeDetector] = None,
        elevar_resolver: Optional[ElevarConfigResolver] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize page analyzer.

        Args:
            config: Page analysis configuration (uses defaults if None)
            consent_detector: Consent mode detector to use
            elevar_resolver: Elevar configuration resolver to use
            clock: Monotonic clock in seconds bounding navigation
        """
        self.config = config or PageAnalyzerConfig()
        self.clock = clock
        self.consent_detector = consent_detector or ConsentModeDetector(
            max_attempts=self.config.consent_attempts,
            retry_delay_s=self.config.consent_retry_delay_ms / 1000,
        )
        self.elevar_resolver = elevar_resolver or ElevarConfigResolver(
            max_attempts=self.config.elevar_attempts,
            retry_delay_s=self.config.elevar_retry_delay_ms / 1000,
            fetch_timeout_s=self.config.elevar_fetch_timeout_ms / 1000,
        )

    async def analyze(
        self,
        page: Page,
        url: str,
        session_beacons: Sequence[AnalyticsBeacon]
    ) -> PageMetrics:
        """Navigate to a URL and collect its metrics.

        Args:
            page: Playwright page owned by the current session
            url: URL to analyze
            session_beacons: Live list of beacons captured in the session;
                read after the page has settled

        Returns:
            Metrics for the page

        Raises:
            NavigationError: If navigation yields no response or does not
                settle within the navigation timeout
        """
        logger.info(f"Starting page analysis for {url}")

        await self._navigate(page, url)

        await page.wait_for_timeout(self.config.settle_delay_ms)

        consent_mode = await self.consent_detector.detect(page)

        timing = await self._read_timing(page)
        performance = PerformanceSnapshot.from_timing_ms(timing)

        page_beacons = partition_beacons(list(session_beacons), url)
        logger.info(f"{len(page_beacons)} GA4 events matched {url}")

        elevar = await self.elevar_resolver.resolve(page)

        return PageMetrics(
            url=url,
            performance=performance,
            resources=int(timing.get("resources") or 0),
            ga4_events=GA4Events(
                page_view=find_event(page_beacons, PAGE_VIEW_EVENT),
                view_item=find_event(page_beacons, VIEW_ITEM_EVENT),
            ),
            all_ga4_events=page_beacons,
            consent_mode=consent_mode,
            elevar=elevar,
        )

    async def _navigate(self, page: Page, url: str) -> None:
        """Navigate and wait for DOM ready and network idle.

        Both waits share one navigation budget; network idle only gets what
        the initial load left over.
        """
        timeout = self.config.navigation_timeout_ms
        deadline = self.clock() + timeout / 1000

        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        except Exception as e:
            logger.error(f"Navigation to {url} failed: {e}")
            raise NavigationError(f"Navigation failed: {e}", url=url, cause=e) from e

        if response is None:
            raise NavigationError("Navigation failed - no response received", url=url)

        logger.info(f"Page loaded with status: {response.status}")

        remaining_ms = (deadline - self.clock()) * 1000
        if remaining_ms < 1:
            logger.error(f"Navigation budget for {url} spent before network idle")
            raise NavigationError(f"Navigation did not settle within {timeout}ms", url=url)

        try:
            await page.wait_for_load_state("networkidle", timeout=remaining_ms)
        except Exception as e:
            logger.error(f"Network did not go idle on {url}: {e}")
            raise NavigationError(f"Navigation did not settle: {e}", url=url, cause=e) from e

    async def _read_timing(self, page: Page) -> Dict[str, Any]:
        try:
            timing = await page.evaluate(PERFORMANCE_SCRIPT)
        except Exception as e:
            logger.warning(f"Failed to collect performance metrics: {e}")
            return {}
        return timing if isinstance(timing, dict) else {}
