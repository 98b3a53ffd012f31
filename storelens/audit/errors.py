"""Exception taxonomy for the store analysis pipeline.

Homepage failures surface to the caller as one of these exceptions with the
triggering exception chained as ``__cause__``. Product-page failures are
caught by the pipeline and never leave it. Elevar configuration lookups and
request interception never raise; they degrade and log instead.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base error for a failed store analysis."""

    def __init__(
        self,
        message: str = "Store analysis failed",
        url: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        self.message = message
        self.url = url
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to a JSON-friendly dictionary."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "url": self.url,
            "cause": str(self.cause) if self.cause else None,
        }


class BrowserLaunchError(AnalysisError):
    """Raised when no browser session could be created."""

    def __init__(self, message: str = "Browser launch failed", cause: Optional[BaseException] = None):
        super().__init__(message=message, cause=cause)


class PageAnalysisError(AnalysisError):
    """Raised when a single page could not be analyzed."""


class NavigationError(PageAnalysisError):
    """Raised when navigation produced no response or did not settle in time."""


class AnalysisTimeoutError(PageAnalysisError):
    """Raised when a page analysis exceeds its time budget.

    The underlying work is abandoned rather than cancelled, so it may still
    be running when this is raised.
    """

    def __init__(self, message: str, url: Optional[str] = None, timeout_s: Optional[float] = None):
        self.timeout_s = timeout_s
        super().__init__(message=message, url=url)
