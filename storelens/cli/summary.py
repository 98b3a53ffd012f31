"""Summary output and formatting for CLI analysis runs.

This module renders a StoreMetrics result as a human-readable report, or as
JSON/YAML with the same camelCase field names the HTTP API returns.
"""

import json
from typing import List

import yaml

from ..audit.models.metrics import PageMetrics, StoreMetrics


class MetricsSummaryFormatter:
    """Formats analysis results into various output formats."""

    def __init__(self, format_type: str = "text", verbose: bool = False):
        self.format_type = format_type.lower()
        self.verbose = verbose

    def format_summary(self, metrics: StoreMetrics) -> str:
        """Format analysis results into the configured format."""
        if self.format_type == "json":
            return self._format_json(metrics)
        elif self.format_type == "yaml":
            return self._format_yaml(metrics)
        else:
            return self._format_text(metrics)

    def _format_json(self, metrics: StoreMetrics) -> str:
        return json.dumps(metrics.to_json_dict(), indent=2)

    def _format_yaml(self, metrics: StoreMetrics) -> str:
        return yaml.dump(metrics.to_json_dict(), default_flow_style=False, sort_keys=False)

    def _format_text(self, metrics: StoreMetrics) -> str:
        """Format results as a human-readable report."""
        lines = []

        lines.append("STORELENS ANALYSIS SUMMARY")
        lines.append("=" * 50)
        lines.append("")

        lines.extend(self._format_page("HOMEPAGE", metrics.homepage))

        if metrics.product_page is not None:
            lines.extend(self._format_page("PRODUCT PAGE", metrics.product_page))
        else:
            lines.append("PRODUCT PAGE")
            lines.append("-" * 20)
            lines.append("Not analyzed (no product link found or analysis failed)")
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"

    def _format_page(self, title: str, page: PageMetrics) -> List[str]:
        perf = page.performance
        lines = [title, "-" * 20, f"URL: {page.url}", ""]

        lines.append("Performance:")
        lines.append(f"  TTFB:               {perf.time_to_first_byte:.2f}s")
        lines.append(f"  First Paint:        {perf.first_contentful_paint:.2f}s")
        lines.append(f"  DOM Content Loaded: {perf.dom_content_loaded:.2f}s")
        lines.append(f"  Window Load:        {perf.window_load:.2f}s")
        lines.append(f"  Resources:          {page.resources}")
        lines.append("")

        lines.append(f"GA4 Events ({len(page.all_ga4_events)}):")
        lines.append(f"  page_view: {_presence(page.ga4_events.page_view is not None)}")
        lines.append(f"  view_item: {_presence(page.ga4_events.view_item is not None)}")
        if self.verbose:
            for beacon in page.all_ga4_events:
                lines.append(
                    f"  - {beacon.event_name or 'unknown'} "
                    f"[{beacon.measurement_id or 'no id'}] "
                    f"+{beacon.time_from_navigation_start:.2f}s"
                )
        lines.append("")

        consent = page.consent_mode
        lines.append(f"Consent Mode: {_configured(consent.is_configured)}")
        if self.verbose and consent.settings:
            for category, settings in consent.settings.items():
                lines.append(f"  {category}: {settings}")

        elevar = page.elevar
        lines.append(f"Elevar: {_configured(elevar.is_configured)}")
        if elevar.is_configured:
            lines.append(f"  Shop URL: {elevar.shop_url or 'n/a'}")
            lines.append(f"  GTM Container: {elevar.gtm_container_id or 'n/a'}")
            lines.append(f"  Consent Enabled: {elevar.consent_enabled}")
            enabled = elevar.enabled_events
            lines.append(f"  Enabled Events: {', '.join(enabled) if enabled else 'none'}")
        lines.append("")

        return lines


def _presence(found: bool) -> str:
    return "found" if found else "missing"


def _configured(configured: bool) -> str:
    return "configured" if configured else "not configured"
