"""Browser factory for launching Playwright sessions used by store analysis.

This module provides the BrowserFactory class that launches Chromium with the
flags store analysis needs, and the BrowserSession handle that owns one
isolated context and page. A session is torn down through a single idempotent
``close()`` that every exit path calls: normal completion, errors, task
cancellation and, when enabled, SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    ConsoleMessage,
    Page,
    Playwright,
    async_playwright,
)

from ..errors import BrowserLaunchError

logger = logging.getLogger(__name__)


DEFAULT_LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
    '--window-size=1920,1080',
    '--disable-web-security',
    '--disable-features=IsolateOrigins,site-per-process',
]


class BrowserEngineType:
    """Supported browser engine types."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BrowserConfig:
    """Configuration for browser launch and context setup."""

    def __init__(
        self,
        engine: str = BrowserEngineType.CHROMIUM,
        headless: bool = True,
        launch_args: Optional[List[str]] = None,
        launch_timeout_ms: int = 30000,
        viewport: Optional[Dict[str, int]] = None,
        user_agent: Optional[str] = None,
        ignore_https_errors: bool = True,
        locale: Optional[str] = None,
        forward_console: bool = True,
        **kwargs
    ):
        """Initialize browser configuration.

        Args:
            engine: Browser engine to use (chromium, firefox, webkit)
            headless: Run browser in headless mode
            launch_args: Command line flags passed to the browser
            launch_timeout_ms: Maximum time to wait for the browser to start
            viewport: Viewport size dict with 'width' and 'height'
            user_agent: Custom User-Agent string
            ignore_https_errors: Ignore SSL/TLS certificate errors
            locale: Locale for the browser context
            forward_console: Forward page console messages to the logger
        """
        self.engine = engine
        self.headless = headless
        self.launch_args = list(DEFAULT_LAUNCH_ARGS if launch_args is None else launch_args)
        self.launch_timeout_ms = launch_timeout_ms
        self.viewport = viewport or {'width': 1920, 'height': 1080}
        self.user_agent = user_agent
        self.ignore_https_errors = ignore_https_errors
        self.locale = locale
        self.forward_console = forward_console
        self.extra_options = kwargs

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        options = {
            'headless': self.headless,
            'timeout': self.launch_timeout_ms,
        }

        if self.launch_args and self.engine == BrowserEngineType.CHROMIUM:
            options['args'] = list(self.launch_args)

        options.update(self.extra_options)

        return options

    def to_context_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser context options."""
        options = {}

        if self.viewport:
            options['viewport'] = self.viewport

        if self.user_agent:
            options['user_agent'] = self.user_agent

        if self.ignore_https_errors:
            options['ignore_https_errors'] = True

        if self.locale:
            options['locale'] = self.locale

        return options


class BrowserSession:
    """Handle owning one isolated browser context and its page.

    ``close()`` may be called any number of times and from any exit path,
    including while abandoned page work is still running against the page.
    """

    def __init__(self, factory: "BrowserFactory", context: BrowserContext, page: Page):
        self.factory = factory
        self.context = context
        self.page = page
        self._closed = False
        self._signals: List[int] = []
        self._close_task: Optional[asyncio.Task] = None

    @property
    def is_closed(self) -> bool:
        """Check if the session has been torn down."""
        return self._closed

    async def close(self) -> None:
        """Tear down the page, context and browser. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        self._remove_signal_handlers()

        try:
            await self.context.close()
        except Exception as e:
            logger.warning(f"Error closing browser context: {e}")

        await self.factory.stop()
        logger.info("Browser session closed")

    def install_signal_handlers(self, signals=(signal.SIGINT, signal.SIGTERM)) -> None:
        """Schedule best-effort teardown when the process is interrupted.

        In-flight browser calls are not aborted; they fail on their own once
        the browser goes away and the caller's cleanup path runs ``close()``
        again as a no-op.
        """
        loop = asyncio.get_running_loop()

        for sig in signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                self._signals.append(sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                # Windows event loops and non-main threads cannot install handlers
                logger.debug(f"Signal handler for {sig} not installed: {e}")

    def _on_signal(self, sig: int) -> None:
        logger.warning(f"Received signal {sig}; closing browser session")
        if self._close_task is not None and not self._close_task.done():
            return
        self._close_task = asyncio.ensure_future(self.close())
        self._close_task.add_done_callback(_log_close_result)

    def _remove_signal_handlers(self) -> None:
        if not self._signals:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._signals.clear()
            return
        for sig in self._signals:
            loop.remove_signal_handler(sig)
        self._signals.clear()


class BrowserFactory:
    """Factory for launching a Playwright browser and opening analysis sessions."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        """Initialize browser factory with configuration.

        Args:
            config: Browser configuration object
        """
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def start(self) -> None:
        """Start Playwright and launch browser.

        Raises:
            BrowserLaunchError: If Playwright or the browser cannot be started
        """
        if self.playwright is not None:
            logger.warning("Browser factory already started")
            return

        logger.info(f"Starting browser factory with engine: {self.config.engine}")

        try:
            self.playwright = await async_playwright().start()

            if self.config.engine == BrowserEngineType.FIREFOX:
                browser_type = self.playwright.firefox
            elif self.config.engine == BrowserEngineType.WEBKIT:
                browser_type = self.playwright.webkit
            else:
                browser_type = self.playwright.chromium

            self.browser = await browser_type.launch(**self.config.to_browser_options())

            logger.info(f"Browser launched successfully (headless={self.config.headless})")

        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self.stop()
            raise BrowserLaunchError(f"Browser launch failed: {e}", cause=e) from e

    async def stop(self) -> None:
        """Stop browser and cleanup resources."""
        logger.info("Stopping browser factory")

        try:
            if self.browser:
                await self.browser.close()
                self.browser = None

            if self.playwright:
                await self.playwright.stop()
                self.playwright = None

            logger.info("Browser factory stopped successfully")

        except Exception as e:
            logger.error(f"Error stopping browser factory: {e}")
            self.browser = None
            self.playwright = None

    async def create_session(self) -> BrowserSession:
        """Launch the browser if needed and open an isolated context and page.

        Returns:
            New browser session

        Raises:
            BrowserLaunchError: If the browser or the context cannot be created
        """
        if not self.browser:
            await self.start()

        try:
            context = await self.browser.new_context(**self.config.to_context_options())
            page = await context.new_page()
        except Exception as e:
            logger.error(f"Failed to create browser context: {e}")
            await self.stop()
            raise BrowserLaunchError(f"Browser context creation failed: {e}", cause=e) from e

        if self.config.forward_console:
            page.on("console", _forward_console_message)

        logger.debug("Created isolated browser context")
        return BrowserSession(self, context, page)

    @asynccontextmanager
    async def session(self, handle_signals: bool = False) -> AsyncGenerator[BrowserSession, None]:
        """Context manager for a browser session that is always closed.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers that close the session

        Yields:
            Open browser session
        """
        browser_session = await self.create_session()
        if handle_signals:
            browser_session.install_signal_handlers()

        try:
            yield browser_session
        finally:
            await browser_session.close()

    @property
    def is_running(self) -> bool:
        """Check if browser factory is running."""
        if self.browser is None:
            return False
        try:
            return self.browser.is_connected()
        except Exception:
            return True

    def __repr__(self) -> str:
        """String representation of browser factory."""
        return (
            f"BrowserFactory(engine={self.config.engine}, "
            f"headless={self.config.headless}, "
            f"running={self.is_running})"
        )


def _log_close_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Browser session teardown after signal failed: {error}")


def _forward_console_message(message: ConsoleMessage) -> None:
    try:
        if message.type == "error":
            logger.error(f"[Browser Console Error] {message.text}")
        else:
            logger.debug(f"[Browser Console] {message.text}")
    except Exception as e:
        logger.debug(f"Failed to read console message: {e}")


def create_default_factory(headless: bool = True, **kwargs) -> BrowserFactory:
    """Create browser factory with the default analysis configuration."""
    return BrowserFactory(BrowserConfig(headless=headless, **kwargs))
