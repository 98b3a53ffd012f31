"""Browser capture for StoreLens.

This package drives a Playwright browser through a store analysis.

Main Components:
- Browser Factory: browser launch and isolated session handles
- Network Interceptor: session-wide GA4 beacon recording
- Page Analyzer: navigation, timing, consent and Elevar for one page
- Pipeline: homepage plus best-effort product page in one session
- Config: YAML settings with environment overrides

Usage:
    from storelens.audit.capture import PipelineOrchestrator

    metrics = await PipelineOrchestrator(config).analyze("https://example.com")
"""

from .browser_factory import (
    BrowserConfig,
    BrowserEngineType,
    BrowserFactory,
    BrowserSession,
    create_default_factory,
)
from .config import AnalysisConfigManager, AnalysisSettings, load_settings
from .network_interceptor import NetworkInterceptor
from .page_analyzer import PageAnalyzer, PageAnalyzerConfig, partition_beacons
from .pipeline import PipelineConfig, PipelineOrchestrator, PipelineStage, analyze_store
from .timeouts import race_with_timeout

__all__ = [
    # Browser
    "BrowserConfig",
    "BrowserEngineType",
    "BrowserFactory",
    "BrowserSession",
    "create_default_factory",

    # Configuration
    "AnalysisConfigManager",
    "AnalysisSettings",
    "load_settings",

    # Analysis
    "NetworkInterceptor",
    "PageAnalyzer",
    "PageAnalyzerConfig",
    "partition_beacons",
    "PipelineConfig",
    "PipelineOrchestrator",
    "PipelineStage",
    "analyze_store",
    "race_with_timeout",
]
