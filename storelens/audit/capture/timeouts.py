"""Timer races for page analysis budgets.

A budgeted operation runs as its own task and is raced against a timer.
When the timer wins the caller gets ``AnalysisTimeoutError`` immediately,
but the operation is abandoned, not cancelled: it keeps running against the
browser until it finishes or the session is torn down underneath it. Its
late result or exception is retrieved and logged so it never surfaces as an
unhandled task error.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from ..errors import AnalysisTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_abandoned_outcome(label: str):
    def callback(task: "asyncio.Task") -> None:
        if task.cancelled():
            logger.debug(f"Abandoned {label} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(f"Abandoned {label} finished with error: {exc}")
        else:
            logger.debug(f"Abandoned {label} finished after its deadline; result ignored")
    return callback


async def race_with_timeout(
    operation: Awaitable[T],
    timeout_s: float,
    label: str,
    url: Optional[str] = None
) -> T:
    """Await an operation, giving up after ``timeout_s`` seconds.

    Args:
        operation: Coroutine or future to run
        timeout_s: Budget in seconds
        label: Name used in the timeout message and logs
        url: URL the operation concerns, attached to the error

    Returns:
        The operation's result if it finishes first

    Raises:
        AnalysisTimeoutError: If the timer finishes first
        Exception: Whatever the operation raised, if it finished first
    """
    task = asyncio.ensure_future(operation)

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_s)
    except asyncio.CancelledError:
        # Caller was cancelled; the operation is left to finish on its own
        task.add_done_callback(_log_abandoned_outcome(label))
        raise

    if task in done:
        return task.result()

    logger.warning(f"{label} exceeded {timeout_s:.1f}s budget; abandoning it")
    task.add_done_callback(_log_abandoned_outcome(label))
    raise AnalysisTimeoutError(f"{label} timeout", url=url, timeout_s=timeout_s)
