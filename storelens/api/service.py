"""Store analysis service used by the API routes."""

import logging
from typing import Optional

from ..audit.capture.config import AnalysisSettings
from ..audit.capture.pipeline import analyze_store
from ..audit.models.metrics import StoreMetrics

logger = logging.getLogger(__name__)


class StoreAnalysisService:
    """Runs one pipeline per request with the application's settings.

    Each call launches and tears down its own browser, so concurrent
    requests never share a session.
    """

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()

    async def analyze(self, url: str) -> StoreMetrics:
        """Analyze a store.

        Raises:
            AnalysisError: If the homepage cannot be analyzed
        """
        logger.info(f"Starting analysis for: {url}")
        metrics = await analyze_store(url, self.settings.get_pipeline_config())
        logger.info(
            f"Analysis complete for {url}: "
            f"product page {'analyzed' if metrics.product_page else 'not analyzed'}"
        )
        return metrics
