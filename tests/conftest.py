"""Shared test fixtures and configuration for StoreLens tests."""

import sys
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import urlencode

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from storelens.audit.models.metrics import (
    AnalyticsBeacon,
    ConsentConfiguration,
    GA4Events,
    PageMetrics,
    PerformanceSnapshot,
    StoreMetrics,
    TagManagementConfig,
)


GA4_COLLECT_ENDPOINT = "https://region1.google-analytics.com/g/collect"


def ga4_url(event_name: str, page_url: str, measurement_id: str = "G-TEST123", **extra) -> str:
    """Build a GA4 collect URL the way gtag.js sends it."""
    params = {"v": "2", "tid": measurement_id, "en": event_name, "dl": page_url}
    params.update(extra)
    return f"{GA4_COLLECT_ENDPOINT}?{urlencode(params)}"


def make_beacon(event_name: str, page_url: str, time: float = 1000.0, **extra) -> AnalyticsBeacon:
    """Build a recorded beacon without going through the interceptor."""
    parameters = {"v": "2", "tid": "G-TEST123", "en": event_name, "dl": page_url}
    parameters.update(extra)
    return AnalyticsBeacon(
        time=time,
        measurement_id="G-TEST123",
        page_url=page_url,
        parameters=parameters,
        time_from_navigation_start=0.5,
    )


def make_page_metrics(url: str, beacons: Optional[list] = None) -> PageMetrics:
    beacons = beacons or []
    page_view = next((b for b in beacons if b.event_name == "page_view"), None)
    view_item = next((b for b in beacons if b.event_name == "view_item"), None)
    return PageMetrics(
        url=url,
        performance=PerformanceSnapshot(
            time_to_first_byte=0.12,
            first_contentful_paint=0.8,
            dom_content_loaded=1.1,
            window_load=2.4,
        ),
        resources=42,
        ga4_events=GA4Events(page_view=page_view, view_item=view_item),
        all_ga4_events=beacons,
        consent_mode=ConsentConfiguration(
            is_configured=True,
            settings={"ad_storage": {"default": False, "update": True}},
        ),
        elevar=TagManagementConfig(
            is_configured=True,
            shop_url="x.myshopify.com",
            gtm_container_id="GTM-1",
            consent_enabled=True,
            event_config={"page_view": True, "view_item": True, "add_to_cart": False},
        ),
    )


@pytest.fixture
def sample_store_metrics():
    """Store metrics with a homepage and a product page."""
    homepage = make_page_metrics(
        "https://x.com",
        [make_beacon("page_view", "https://x.com/")]
    )
    product_page = make_page_metrics(
        "https://x.com/products/abc",
        [
            make_beacon("page_view", "https://x.com/products/abc", time=1001.0),
            make_beacon("view_item", "https://x.com/products/abc", time=1001.5),
        ]
    )
    return StoreMetrics(homepage=homepage, product_page=product_page)


@pytest.fixture
def mock_page():
    """Playwright page mock; async methods are AsyncMocks, ``on`` is sync."""
    page = AsyncMock()
    page.on = MagicMock()
    page.remove_listener = MagicMock()
    page.url = "https://x.com/"
    return page


@pytest.fixture
def ga4_request_url():
    """Factory for GA4 collect URLs."""
    return ga4_url


@pytest.fixture
def beacon_factory():
    """Factory for AnalyticsBeacon objects."""
    return make_beacon


@pytest.fixture
def page_metrics_factory():
    """Factory for PageMetrics objects."""
    return make_page_metrics
