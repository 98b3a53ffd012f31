"""Audit utilities package."""

from .url_normalizer import (
    URLNormalizationError,
    resolve_url,
    url_path,
    validate_http_url,
)

__all__ = [
    'URLNormalizationError',
    'resolve_url',
    'url_path',
    'validate_http_url',
]
