"""Audit engine package for StoreLens.

This package provides the browser pipeline that analyzes a storefront and
the models describing what it found.
"""

from .capture.pipeline import PipelineConfig, PipelineOrchestrator, analyze_store
from .errors import (
    AnalysisError,
    AnalysisTimeoutError,
    BrowserLaunchError,
    NavigationError,
    PageAnalysisError,
)
from .models.metrics import PageMetrics, StoreMetrics

__all__ = [
    # Pipeline
    'PipelineConfig',
    'PipelineOrchestrator',
    'analyze_store',

    # Errors
    'AnalysisError',
    'AnalysisTimeoutError',
    'BrowserLaunchError',
    'NavigationError',
    'PageAnalysisError',

    # Models
    'PageMetrics',
    'StoreMetrics',
]
