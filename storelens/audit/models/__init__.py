"""Data models for store analysis results."""

from .metrics import (
    AnalyticsBeacon,
    ConsentConfiguration,
    GA4Event,
    GA4Events,
    PageMetrics,
    PerformanceSnapshot,
    StoreMetrics,
    TagManagementConfig,
)

__all__ = [
    'AnalyticsBeacon',
    'ConsentConfiguration',
    'GA4Event',
    'GA4Events',
    'PageMetrics',
    'PerformanceSnapshot',
    'StoreMetrics',
    'TagManagementConfig',
]
