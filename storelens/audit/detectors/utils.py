"""Utilities for analytics request classification and parameter parsing."""

from typing import Dict, Iterable, List, Optional
from urllib.parse import parse_qsl, urlsplit


# Substrings identifying GA4 collection endpoints
GA4_COLLECT_MARKERS = (
    "google-analytics.com/g/collect",
    "analytics.google.com",
)

# Substrings identifying an Elevar configuration file in resource timing
ELEVAR_VENDOR_MARKER = "elevar"
ELEVAR_CONFIG_MARKERS = ("config.js", "configs")


def is_ga4_collect_url(url: str) -> bool:
    """Check if a request URL targets the GA4 collection endpoint family.

    Args:
        url: Outgoing request URL

    Returns:
        True for ``google-analytics.com/g/collect`` or any
        ``analytics.google.com`` URL
    """
    if not url:
        return False
    return any(marker in url for marker in GA4_COLLECT_MARKERS)


def is_elevar_config_url(url: str) -> bool:
    """Check if a resource URL looks like an Elevar configuration file.

    Plain, case-sensitive substring matching: the URL must mention the vendor
    and one of the config file naming conventions.
    """
    if not url or ELEVAR_VENDOR_MARKER not in url:
        return False
    return any(marker in url for marker in ELEVAR_CONFIG_MARKERS)


def filter_elevar_config_urls(urls: Iterable[str]) -> List[str]:
    """Keep Elevar config candidates, preserving resource timing order."""
    return [url for url in urls if isinstance(url, str) and is_elevar_config_url(url)]


def parse_query_parameters(url: str) -> Dict[str, str]:
    """Parse a URL query string into a flat, ordered mapping.

    Values are percent- and plus-decoded. Keys keep first-seen order and a
    repeated key keeps its last value.

    Args:
        url: Full request URL

    Returns:
        Parameter name to decoded value
    """
    query = urlsplit(url).query
    if not query:
        return {}

    params: Dict[str, str] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        params[key] = value
    return params


def extract_measurement_id(params: Dict[str, str]) -> str:
    """Extract the GA4 measurement ID from beacon parameters."""
    return params.get("tid") or params.get("measurement_id") or ""


def first_market_group_container(market_groups: object) -> Optional[str]:
    """Return ``market_groups[0].gtm_container`` when the shape allows it."""
    if not isinstance(market_groups, list) or not market_groups:
        return None

    first_group = market_groups[0]
    if not isinstance(first_group, dict):
        return None

    container = first_group.get("gtm_container")
    return str(container) if container is not None else None
