"""Pydantic models for store analysis results.

This module defines the data captured while analyzing a storefront: GA4
beacons intercepted on the wire, page timing, consent mode state, Elevar
tag configuration, and the per-page and per-store aggregates.

Models serialize with camelCase aliases (``model_dump(by_alias=True)``) so
JSON output keeps the field names dashboards already consume.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..utils.url_normalizer import url_path


class AnalyticsBeacon(BaseModel):
    """A single GA4 collect request, parsed from its query string."""

    model_config = {"populate_by_name": True, "frozen": True}

    time: float = Field(description="Capture instant as epoch seconds")
    measurement_id: str = Field(
        default="",
        alias="measurementId",
        description="GA4 measurement ID (tid)"
    )
    page_url: str = Field(
        default="",
        alias="url",
        description="Document location reported by the beacon (dl)"
    )
    parameters: Dict[str, str] = Field(
        default_factory=dict,
        description="Flattened query string parameters in request order"
    )
    time_from_navigation_start: float = Field(
        default=0.0,
        alias="timeFromPageLoad",
        description="Seconds between the last DOMContentLoaded and capture"
    )

    @property
    def event_name(self) -> Optional[str]:
        """GA4 event name (en parameter)."""
        return self.parameters.get("en")

    @property
    def page_path(self) -> Optional[str]:
        """Path of the dl parameter, or None when it is missing or unparsable."""
        return url_path(self.parameters.get("dl", ""))


# Older name used by the dashboard payloads
GA4Event = AnalyticsBeacon


class PerformanceSnapshot(BaseModel):
    """Navigation timing for one page, in seconds from navigation start."""

    model_config = {"populate_by_name": True}

    time_to_first_byte: float = Field(default=0.0, alias="ttfb")
    first_contentful_paint: float = Field(default=0.0, alias="fcp")
    dom_content_loaded: float = Field(default=0.0, alias="domLoad")
    window_load: float = Field(default=0.0, alias="windowLoad")

    @classmethod
    def from_timing_ms(cls, timing: Dict[str, Any]) -> "PerformanceSnapshot":
        """Build a snapshot from an in-page timing read expressed in milliseconds."""
        def seconds(key: str) -> float:
            value = timing.get(key) or 0
            return float(value) / 1000

        return cls(
            time_to_first_byte=seconds("ttfb"),
            first_contentful_paint=seconds("fcp"),
            dom_content_loaded=seconds("domLoad"),
            window_load=seconds("windowLoad"),
        )


class ConsentConfiguration(BaseModel):
    """Google consent mode state read from the page."""

    model_config = {"populate_by_name": True}

    is_configured: bool = Field(default=False, alias="isConfigured")
    settings: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Consent category to settings (implicit/default/update)"
    )


class TagManagementConfig(BaseModel):
    """Elevar data layer configuration for the shop."""

    model_config = {"populate_by_name": True}

    is_configured: bool = Field(default=False, alias="isConfigured")
    shop_url: Optional[str] = Field(default=None, alias="shopUrl")
    gtm_container_id: Optional[str] = Field(default=None, alias="gtmContainer")
    consent_enabled: Optional[bool] = Field(default=None, alias="consentEnabled")
    event_config: Optional[Dict[str, Any]] = Field(default=None, alias="eventConfig")

    @property
    def enabled_events(self) -> List[str]:
        """Names of events switched on in the event configuration."""
        return [name for name, enabled in (self.event_config or {}).items() if enabled]


class GA4Events(BaseModel):
    """Headline beacons singled out for summary display."""

    model_config = {"populate_by_name": True}

    page_view: Optional[AnalyticsBeacon] = Field(default=None, alias="pageView")
    view_item: Optional[AnalyticsBeacon] = Field(default=None, alias="viewItem")


class PageMetrics(BaseModel):
    """Everything measured for one page."""

    model_config = {"populate_by_name": True}

    url: str = Field(description="URL requested for this page")
    performance: PerformanceSnapshot = Field(default_factory=PerformanceSnapshot)
    resources: int = Field(default=0, description="Resource timing entries at read time")
    ga4_events: GA4Events = Field(default_factory=GA4Events, alias="ga4Events")
    all_ga4_events: List[AnalyticsBeacon] = Field(default_factory=list, alias="allGA4Events")
    consent_mode: ConsentConfiguration = Field(
        default_factory=ConsentConfiguration,
        alias="consentMode"
    )
    elevar: TagManagementConfig = Field(default_factory=TagManagementConfig)


class StoreMetrics(BaseModel):
    """Top-level result of a store analysis."""

    model_config = {"populate_by_name": True}

    homepage: PageMetrics
    product_page: Optional[PageMetrics] = Field(default=None, alias="productPage")

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)
