"""Elevar data layer configuration discovery.

Elevar loads a per-shop configuration document, either a JS module
(``export default {...};``) or bare JSON, from its CDN. The script that loads
it may run late, so discovery polls the page's resource timing entries for a
few rounds, fetches each candidate and returns the first document that parses
and looks like a real Elevar configuration.

Each candidate goes through four stages, each of which can reject it with a
reason: fetch text, unwrap the module wrapper, parse JSON, validate required
fields. A rejection moves on to the next candidate; nothing here raises.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

import httpx
from playwright.async_api import Page

from ..models.metrics import TagManagementConfig
from .utils import filter_elevar_config_urls, first_market_group_container

logger = logging.getLogger(__name__)

T = TypeVar("T")

MODULE_WRAPPER = "export default"
JSON_MARKER = '"signing_key"'
REQUIRED_FIELDS = ("signing_key", "market_groups")

RESOURCE_NAMES_SCRIPT = """
() => performance.getEntriesByType('resource').map(entry => entry.name)
"""


@dataclass
class StageResult(Generic[T]):
    """Outcome of one candidate stage: a value, or the reason there is none."""

    value: Optional[T] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "StageResult[T]":
        return cls(reason=reason)


def unwrap_config_text(text: str) -> StageResult[str]:
    """Reduce a fetched config body to a JSON string.

    The body must contain ``export default`` or ``"signing_key"``. For the
    module form the first ``export default`` is removed, whitespace trimmed
    and one trailing ``;`` dropped.
    """
    if MODULE_WRAPPER not in text and JSON_MARKER not in text:
        return StageResult.failure("not a configuration file")

    if MODULE_WRAPPER not in text:
        return StageResult.success(text)

    json_text = text.replace(MODULE_WRAPPER, "", 1).strip()
    if json_text.endswith(";"):
        json_text = json_text[:-1]
    return StageResult.success(json_text)


def parse_config_json(json_text: str) -> StageResult[Any]:
    """Parse the unwrapped config text as JSON."""
    try:
        return StageResult.success(json.loads(json_text))
    except (json.JSONDecodeError, ValueError) as e:
        position = getattr(e, "pos", None)
        if position is not None:
            problem_area = json_text[max(0, position - 20):position + 20]
            return StageResult.failure(f"invalid JSON ({e}); problem area: {problem_area!r}")
        return StageResult.failure(f"invalid JSON ({e})")
    except RecursionError:
        return StageResult.failure("invalid JSON (nesting too deep)")


def validate_config_document(document: Any) -> StageResult[Dict[str, Any]]:
    """Check that a parsed document carries the fields every Elevar config has."""
    if not isinstance(document, dict):
        return StageResult.failure("configuration is not an object")

    missing = [field for field in REQUIRED_FIELDS if document.get(field) is None]
    if missing:
        return StageResult.failure(f"missing required fields: {', '.join(missing)}")

    return StageResult.success(document)


def config_from_document(document: Dict[str, Any]) -> TagManagementConfig:
    """Map a validated Elevar document to TagManagementConfig."""
    shop_url = document.get("shop_url")
    consent_enabled = document.get("consent_enabled")
    event_config = document.get("event_config")

    return TagManagementConfig(
        is_configured=True,
        shop_url=str(shop_url) if shop_url is not None else None,
        gtm_container_id=first_market_group_container(document.get("market_groups")),
        consent_enabled=consent_enabled if isinstance(consent_enabled, bool) else None,
        event_config=event_config if isinstance(event_config, dict) else None,
    )


def parse_config_text(text: str) -> StageResult[TagManagementConfig]:
    """Run the unwrap, parse and validate stages over a fetched body."""
    unwrapped = unwrap_config_text(text)
    if not unwrapped.ok:
        return StageResult.failure(unwrapped.reason)

    parsed = parse_config_json(unwrapped.value)
    if not parsed.ok:
        return StageResult.failure(parsed.reason)

    validated = validate_config_document(parsed.value)
    if not validated.ok:
        return StageResult.failure(validated.reason)

    return StageResult.success(config_from_document(validated.value))


class ElevarConfigResolver:
    """Finds and parses the Elevar configuration a page loaded."""

    def __init__(
        self,
        max_attempts: int = 5,
        retry_delay_s: float = 1.0,
        fetch_timeout_s: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """Initialize resolver.

        Args:
            max_attempts: Default number of discovery rounds
            retry_delay_s: Pause between rounds in seconds
            fetch_timeout_s: Timeout for each config fetch
            client: HTTP client to reuse; a short-lived one is created per
                resolve call when omitted
        """
        self.max_attempts = max_attempts
        self.retry_delay_s = retry_delay_s
        self.fetch_timeout_s = fetch_timeout_s
        self.client = client

    async def resolve(self, page: Page, max_attempts: Optional[int] = None) -> TagManagementConfig:
        """Discover the Elevar configuration referenced by the page.

        Args:
            page: Playwright page that has finished loading
            max_attempts: Override for the number of discovery rounds

        Returns:
            The first valid configuration found, or an unconfigured result
        """
        attempts = max(1, max_attempts if max_attempts is not None else self.max_attempts)
        logger.info("Starting search for Elevar configuration")

        if self.client is not None:
            return await self._resolve_with_client(page, self.client, attempts)

        async with httpx.AsyncClient(timeout=self.fetch_timeout_s, follow_redirects=True) as client:
            return await self._resolve_with_client(page, client, attempts)

    async def _resolve_with_client(
        self,
        page: Page,
        client: httpx.AsyncClient,
        attempts: int
    ) -> TagManagementConfig:
        for attempt in range(1, attempts + 1):
            logger.debug(f"Elevar attempt {attempt}/{attempts}")

            candidates = await self.find_candidate_urls(page)
            if candidates:
                logger.debug(f"Found potential Elevar config URLs: {candidates}")
            else:
                logger.debug("No Elevar configuration URLs found in this attempt")

            for url in candidates:
                config = await self._try_candidate(client, url)
                if config is not None:
                    self._log_config(config)
                    return config

            if attempt < attempts:
                await asyncio.sleep(self.retry_delay_s)

        logger.info(f"No valid Elevar configuration found after {attempts} attempts")
        return TagManagementConfig(is_configured=False)

    async def find_candidate_urls(self, page: Page) -> List[str]:
        """Read resource timing and keep Elevar config candidates in load order."""
        try:
            names = await page.evaluate(RESOURCE_NAMES_SCRIPT)
        except Exception as e:
            logger.warning(f"Error reading resource timing entries: {e}")
            return []

        if not isinstance(names, list):
            return []
        return filter_elevar_config_urls(names)

    async def fetch_config_text(self, client: httpx.AsyncClient, url: str) -> StageResult[str]:
        """Fetch a candidate's body."""
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            return StageResult.failure(f"fetch failed: {e}")

        if not response.is_success:
            return StageResult.failure(f"fetch failed with status {response.status_code}")

        logger.debug(f"Fetched Elevar candidate {url} ({len(response.text)} bytes)")
        return StageResult.success(response.text)

    async def _try_candidate(self, client: httpx.AsyncClient, url: str) -> Optional[TagManagementConfig]:
        fetched = await self.fetch_config_text(client, url)
        if not fetched.ok:
            logger.info(f"Skipping Elevar candidate {url}: {fetched.reason}")
            return None

        try:
            parsed = parse_config_text(fetched.value)
        except Exception as e:
            logger.warning(f"Skipping Elevar candidate {url}: unexpected error {e!r}")
            return None
        if not parsed.ok:
            logger.info(f"Skipping Elevar candidate {url}: {parsed.reason}")
            return None

        logger.info(f"Elevar configuration parsed from {url}")
        return parsed.value

    def _log_config(self, config: TagManagementConfig) -> None:
        lines = [
            "Elevar configuration details:",
            f"  Shop URL: {config.shop_url}",
            f"  GTM Container: {config.gtm_container_id}",
            f"  Consent Enabled: {config.consent_enabled}",
        ]
        for event, enabled in (config.event_config or {}).items():
            lines.append(f"  {event:<25}: {'on' if enabled else 'off'}")
        logger.info("\n".join(lines))
