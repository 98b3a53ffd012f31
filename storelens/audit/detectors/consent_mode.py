"""Google consent mode detection.

This module reads the consent state Google's tag libraries keep in
``window.google_tag_data.ics.entries`` and classifies whether the site
signals consent explicitly. The state may be populated asynchronously after
load by a tag manager, so reads are retried a few times before giving up.
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from playwright.async_api import Page

from ..models.metrics import ConsentConfiguration

logger = logging.getLogger(__name__)


# Keys that show the page set consent state on purpose rather than relying
# on implicit defaults
EXPLICIT_CONSENT_KEYS = ("update", "default")


CONSENT_STATE_SCRIPT = """
() => {
    try {
        const googleTagData = window.google_tag_data;
        if (!googleTagData || !googleTagData.ics) {
            return { present: false };
        }

        const entries = googleTagData.ics.entries;
        let settings = {};

        if (entries instanceof Map) {
            entries.forEach((value, key) => { settings[key] = value; });
        } else if (entries && typeof entries === 'object') {
            settings = Object.assign({}, entries);
        }

        // Drop functions and cycles so the result survives serialization
        return { present: true, settings: JSON.parse(JSON.stringify(settings)) };
    } catch (error) {
        return null;
    }
}
"""


def has_explicit_consent(settings: Optional[Mapping[str, Any]]) -> bool:
    """Check whether any consent category carries an explicit setting.

    Args:
        settings: Consent category to settings mapping

    Returns:
        True iff at least one category's settings has an ``update`` or
        ``default`` key. Categories with only ``implicit`` do not count.
    """
    if not settings:
        return False

    for category_settings in settings.values():
        if not isinstance(category_settings, Mapping):
            continue
        if any(key in category_settings for key in EXPLICIT_CONSENT_KEYS):
            return True
    return False


def build_consent_configuration(read: Optional[Dict[str, Any]]) -> Optional[ConsentConfiguration]:
    """Turn an in-page consent read into a ConsentConfiguration.

    Args:
        read: Result of the consent state script

    Returns:
        Configuration when consent state was found, None when the read
        failed or found nothing
    """
    if not read or not read.get("present"):
        return None

    settings = read.get("settings")
    if not isinstance(settings, dict):
        settings = {}

    return ConsentConfiguration(
        is_configured=has_explicit_consent(settings),
        settings=settings,
    )


class ConsentModeDetector:
    """Reads Google consent mode state from a page with bounded retries."""

    def __init__(self, max_attempts: int = 3, retry_delay_s: float = 1.0):
        """Initialize consent mode detector.

        Args:
            max_attempts: Number of reads before giving up
            retry_delay_s: Pause between reads in seconds
        """
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_s = retry_delay_s

    async def detect(self, page: Page) -> ConsentConfiguration:
        """Detect consent mode configuration on the current page.

        Args:
            page: Playwright page that has finished loading

        Returns:
            Consent configuration; ``is_configured`` is False when no consent
            state appeared within the allowed attempts
        """
        for attempt in range(1, self.max_attempts + 1):
            read = await self._read_consent_state(page)

            if read is None:
                logger.debug(f"Consent state read failed, attempt {attempt}/{self.max_attempts}")
            elif not read.get("present"):
                logger.debug(f"No consent data found, attempt {attempt}/{self.max_attempts}")
            else:
                configuration = build_consent_configuration(read)
                logger.info(
                    f"Consent mode detected (configured={configuration.is_configured}, "
                    f"categories={len(configuration.settings or {})})"
                )
                return configuration

            if attempt < self.max_attempts:
                await asyncio.sleep(self.retry_delay_s)

        logger.info("Consent mode not configured")
        return ConsentConfiguration(is_configured=False)

    async def _read_consent_state(self, page: Page) -> Optional[Dict[str, Any]]:
        try:
            result = await page.evaluate(CONSENT_STATE_SCRIPT)
        except Exception as e:
            logger.warning(f"Error checking consent: {e}")
            return None

        return result if isinstance(result, dict) else None
