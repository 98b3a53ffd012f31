"""Detectors for consent mode and Elevar configuration."""

from .consent_mode import ConsentModeDetector, has_explicit_consent
from .elevar import ElevarConfigResolver, parse_config_text
from .utils import (
    filter_elevar_config_urls,
    is_elevar_config_url,
    is_ga4_collect_url,
    parse_query_parameters,
)

__all__ = [
    'ConsentModeDetector',
    'has_explicit_consent',
    'ElevarConfigResolver',
    'parse_config_text',
    'filter_elevar_config_urls',
    'is_elevar_config_url',
    'is_ga4_collect_url',
    'parse_query_parameters',
]
