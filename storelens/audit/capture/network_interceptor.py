"""Network interceptor that records GA4 beacons for a whole browser session.

This module provides the NetworkInterceptor class that routes every outgoing
request of a page, records GA4 collect requests as AnalyticsBeacon objects,
and always lets the request continue to the network.

Beacons are kept for the lifetime of the session, not per page. Page analysis
later partitions them by the path of each beacon's ``dl`` parameter.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence

from playwright.async_api import Page, Request, Route

from ..detectors.utils import (
    extract_measurement_id,
    is_ga4_collect_url,
    parse_query_parameters,
)
from ..models.metrics import AnalyticsBeacon

logger = logging.getLogger(__name__)


class NetworkInterceptor:
    """Intercepts page requests and records GA4 beacons."""

    ROUTE_PATTERN = "**/*"

    def __init__(self, page: Page, clock: Callable[[], float] = time.time):
        """Initialize network interceptor for a page.

        Args:
            page: Playwright page whose requests are intercepted
            clock: Wall clock returning epoch seconds
        """
        self.page = page
        self._clock = clock
        self._beacons: List[AnalyticsBeacon] = []
        self.navigation_start: Optional[float] = None
        self.requests_seen = 0
        self._attached = False

    async def attach(self) -> None:
        """Start intercepting. Must run before the first navigation."""
        if self._attached:
            logger.warning("Network interceptor already attached")
            return

        self.page.on("domcontentloaded", self._on_dom_content_loaded)
        await self.page.route(self.ROUTE_PATTERN, self._handle_route)
        self._attached = True

        logger.debug("Network interceptor attached")

    async def detach(self) -> None:
        """Stop intercepting requests."""
        if not self._attached:
            return

        self._attached = False
        try:
            self.page.remove_listener("domcontentloaded", self._on_dom_content_loaded)
            await self.page.unroute(self.ROUTE_PATTERN, self._handle_route)
        except Exception as e:
            logger.debug(f"Failed to detach network interceptor: {e}")

    def _on_dom_content_loaded(self, *args) -> None:
        self.navigation_start = self._clock()

    async def _handle_route(self, route: Route, request: Request) -> None:
        """Record the request if it is a GA4 beacon, then let it continue."""
        self.requests_seen += 1

        try:
            self.record_request(request.url)
        except Exception as e:
            logger.error(f"Request handling error: {e}")

        try:
            await route.continue_()
        except Exception as e:
            # Page or context closed underneath the request
            logger.debug(f"Failed to continue request {request.url}: {e}")

    def record_request(self, url: str) -> Optional[AnalyticsBeacon]:
        """Classify a request URL and record it when it is a GA4 beacon.

        Args:
            url: Outgoing request URL

        Returns:
            The recorded beacon, or None if the URL is not a GA4 collect request
        """
        if not is_ga4_collect_url(url):
            return None

        logger.debug(f"Intercepted analytics request: {url}")

        params = parse_query_parameters(url)
        captured_at = self._clock()
        if self._beacons:
            # Wall clock can step backwards; beacon times must not
            captured_at = max(captured_at, self._beacons[-1].time)

        if self.navigation_start is not None:
            since_navigation = max(0.0, captured_at - self.navigation_start)
        else:
            since_navigation = 0.0

        beacon = AnalyticsBeacon(
            time=captured_at,
            measurement_id=extract_measurement_id(params),
            page_url=params.get("dl", ""),
            parameters=params,
            time_from_navigation_start=since_navigation,
        )
        self._beacons.append(beacon)

        logger.info(
            f"GA4 event captured: {beacon.event_name or 'unknown'} "
            f"({beacon.measurement_id or 'no measurement id'})"
        )

        return beacon

    @property
    def session_beacons(self) -> Sequence[AnalyticsBeacon]:
        """Live list of beacons recorded in this session. Read-only for callers."""
        return self._beacons

    @property
    def beacons(self) -> List[AnalyticsBeacon]:
        """Snapshot of every beacon recorded so far, in capture order."""
        return list(self._beacons)

    def beacons_for_path(self, path: str) -> List[AnalyticsBeacon]:
        """Beacons whose ``dl`` path is exactly ``path``."""
        return [beacon for beacon in self._beacons if beacon.page_path == path]

    def __repr__(self) -> str:
        """String representation of network interceptor."""
        return (
            f"NetworkInterceptor(requests={self.requests_seen}, "
            f"beacons={len(self._beacons)}, attached={self._attached})"
        )
