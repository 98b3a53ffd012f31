"""Unit tests for network interceptor."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from storelens.audit.capture.network_interceptor import NetworkInterceptor


class FakeClock:
    """Settable wall clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestNetworkInterceptor:
    """Tests for NetworkInterceptor class."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def interceptor(self, mock_page, clock):
        """Create network interceptor for testing."""
        return NetworkInterceptor(mock_page, clock=clock)

    @pytest.fixture
    def mock_route(self):
        route = AsyncMock()
        return route

    def make_request(self, url):
        request = MagicMock()
        request.url = url
        return request

    @pytest.mark.asyncio
    async def test_attach_registers_route_and_listener(self, interceptor, mock_page):
        """Attaching routes every request and listens for DOMContentLoaded."""
        await interceptor.attach()

        mock_page.route.assert_awaited_once_with("**/*", interceptor._handle_route)
        mock_page.on.assert_called_once_with("domcontentloaded", interceptor._on_dom_content_loaded)

    @pytest.mark.asyncio
    async def test_attach_twice_is_noop(self, interceptor, mock_page):
        await interceptor.attach()
        await interceptor.attach()

        assert mock_page.route.await_count == 1

    @pytest.mark.asyncio
    async def test_detach(self, interceptor, mock_page):
        await interceptor.attach()
        await interceptor.detach()

        mock_page.unroute.assert_awaited_once_with("**/*", interceptor._handle_route)
        mock_page.remove_listener.assert_called_once()

    def test_non_ga4_request_is_ignored(self, interceptor):
        assert interceptor.record_request("https://x.com/cdn/shop.js") is None
        assert interceptor.record_request("https://www.googletagmanager.com/gtag/js?id=G-1") is None
        assert interceptor.beacons == []

    def test_ga4_request_is_recorded(self, interceptor, ga4_request_url):
        """A collect request becomes a beacon with flattened, decoded parameters."""
        url = ga4_request_url("page_view", "https://x.com/", ep_note="hello world")

        beacon = interceptor.record_request(url)

        assert beacon is not None
        assert beacon.measurement_id == "G-TEST123"
        assert beacon.page_url == "https://x.com/"
        assert beacon.event_name == "page_view"
        assert beacon.parameters["ep_note"] == "hello world"
        assert beacon.time == 1000.0
        assert interceptor.beacons == [beacon]

    def test_analytics_google_com_host_matches(self, interceptor):
        url = "https://analytics.google.com/g/collect?v=2&tid=G-ALT&en=scroll&dl=https%3A%2F%2Fx.com%2F"

        beacon = interceptor.record_request(url)

        assert beacon is not None
        assert beacon.measurement_id == "G-ALT"

    def test_repeated_parameter_keeps_last_value(self, interceptor):
        url = "https://www.google-analytics.com/g/collect?en=a&tid=G-1&en=b&dl=https%3A%2F%2Fx.com%2F"

        beacon = interceptor.record_request(url)

        assert beacon.event_name == "b"
        assert list(beacon.parameters.keys()) == ["en", "tid", "dl"]

    def test_missing_measurement_id(self, interceptor):
        url = "https://www.google-analytics.com/g/collect?v=2&en=page_view"

        beacon = interceptor.record_request(url)

        assert beacon.measurement_id == ""
        assert beacon.page_url == ""
        assert beacon.page_path is None

    def test_time_from_navigation_start(self, interceptor, clock, ga4_request_url):
        """Elapsed time is measured from the latest DOMContentLoaded."""
        interceptor._on_dom_content_loaded()
        clock.now = 1002.5

        beacon = interceptor.record_request(ga4_request_url("page_view", "https://x.com/"))

        assert beacon.time_from_navigation_start == pytest.approx(2.5)

    def test_time_from_navigation_start_before_navigation(self, interceptor, ga4_request_url):
        beacon = interceptor.record_request(ga4_request_url("page_view", "https://x.com/"))

        assert beacon.time_from_navigation_start == 0.0

    def test_time_from_navigation_start_never_negative(self, interceptor, clock, ga4_request_url):
        """A beacon queued just before a new navigation never reports negative elapsed time."""
        clock.now = 1005.0
        interceptor._on_dom_content_loaded()
        clock.now = 1004.0

        beacon = interceptor.record_request(ga4_request_url("page_view", "https://x.com/"))

        assert beacon.time_from_navigation_start >= 0

    def test_beacon_times_are_non_decreasing(self, interceptor, clock, ga4_request_url):
        clock.now = 1010.0
        first = interceptor.record_request(ga4_request_url("page_view", "https://x.com/"))
        clock.now = 1009.0
        second = interceptor.record_request(ga4_request_url("scroll", "https://x.com/"))

        assert second.time >= first.time

    @pytest.mark.asyncio
    async def test_route_handler_always_continues(self, interceptor, mock_route, ga4_request_url):
        """Both beacons and ordinary requests are allowed through."""
        await interceptor._handle_route(mock_route, self.make_request("https://x.com/"))
        await interceptor._handle_route(
            mock_route,
            self.make_request(ga4_request_url("page_view", "https://x.com/"))
        )

        assert mock_route.continue_.await_count == 2
        assert interceptor.requests_seen == 2
        assert len(interceptor.beacons) == 1

    @pytest.mark.asyncio
    async def test_route_handler_swallows_errors(self, interceptor, mock_route, ga4_request_url):
        """Continue failures are logged, never raised."""
        mock_route.continue_.side_effect = Exception("Target page, context or browser has been closed")

        await interceptor._handle_route(
            mock_route,
            self.make_request(ga4_request_url("page_view", "https://x.com/"))
        )

        assert len(interceptor.beacons) == 1

    def test_beacons_accumulate_across_pages(self, interceptor, ga4_request_url):
        """The beacon list spans the whole session; lookups select by path."""
        interceptor.record_request(ga4_request_url("page_view", "https://x.com/"))
        interceptor.record_request(ga4_request_url("page_view", "https://x.com/products/abc"))
        interceptor.record_request(ga4_request_url("view_item", "https://x.com/products/abc"))

        assert len(interceptor.session_beacons) == 3
        assert len(interceptor.beacons_for_path("/")) == 1
        assert len(interceptor.beacons_for_path("/products/abc")) == 2

    def test_session_beacons_is_live(self, interceptor, ga4_request_url):
        live = interceptor.session_beacons
        snapshot = interceptor.beacons

        interceptor.record_request(ga4_request_url("page_view", "https://x.com/"))

        assert len(live) == 1
        assert snapshot == []
