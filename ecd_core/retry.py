"""
Bounded waiting and retry helpers.

Every wait on the rendered page goes through await_condition, so a widget
that never renders turns into a False result rather than a hang. All loops
here have a fixed attempt bound independent of any caller timeout.

Usage:
    from ecd_core.retry import await_condition, try_strategies, race_completion

    opened = await await_condition(lambda: driver.is_list_open(list_id), timeout=1.5)
    name = await try_strategies([("click", click), ("container", click_root)])
    winner = await race_completion({"event": wait_event, "fs": poll_dir}, timeout=15)
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ecd_core.models import RetryPolicy

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """Network-related error (timeout, connection refused, etc.)"""
    pass


async def _call(fn: Callable[[], Any]) -> Any:
    result = fn()
    if inspect.isawaitable(result):
        result = await result
    return result


async def await_condition(
    predicate: Callable[[], Any],
    timeout: float,
    interval: float = 0.3,
) -> bool:
    """
    Poll predicate until it returns truthy or timeout (seconds) elapses.

    The predicate may be sync or async. Exceptions raised by it count as a
    falsy poll. The predicate is always evaluated at least once.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(0.0, timeout)
    while True:
        try:
            if await _call(predicate):
                return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Condition poll raised: {e}")
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval)


async def try_strategies(
    strategies: Sequence[Tuple[str, Callable[[], Awaitable[Any]]]],
) -> Optional[str]:
    """
    Run (name, attempt) pairs in order until one returns truthy.

    Returns the winning name, or None when every strategy failed. A strategy
    that raises is treated as failed and the next one is tried.
    """
    for name, attempt in strategies:
        try:
            if await _call(attempt):
                return name
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Strategy '{name}' failed: {e}")
    return None


async def race_completion(
    signals: Dict[str, Callable[[], Awaitable[Any]]],
    timeout: float,
    trigger: Optional[Callable[[], Awaitable[Any]]] = None,
) -> Optional[Tuple[str, Any]]:
    """
    Start every signal concurrently; first one to return a truthy value wins.

    ``trigger`` runs after all signals are listening (e.g. the click that
    starts a download); a falsy trigger result ends the race at once.
    Returns (name, value) for the winner, or None when all signals finished
    without a value or the timeout expired. Remaining tasks are cancelled.
    """
    tasks = {asyncio.ensure_future(factory()): name for name, factory in signals.items()}
    pending = set(tasks)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    winner: Optional[Tuple[str, Any]] = None
    try:
        if trigger is not None:
            # Let each signal reach its first await before the trigger fires.
            await asyncio.sleep(0)
            if not await trigger():
                logger.debug("Race trigger failed; no completion expected")
                return None
        while pending and winner is None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task.cancelled():
                    continue
                exc = task.exception()
                if exc is not None:
                    logger.debug(f"Completion signal '{tasks[task]}' failed: {exc}")
                    continue
                value = task.result()
                if value and winner is None:
                    winner = (tasks[task], value)
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    if winner is None:
        logger.debug(f"No completion signal fired within {timeout:.1f}s")
    return winner


async def navigate_with_retry(
    page,
    url: str,
    timeout: int = 30000,
    wait_until: str = "networkidle",
    max_attempts: int = 3,
    delay: float = 1.0,
) -> bool:
    """
    Navigate to URL with automatic retry on failure.

    Args:
        page: Playwright page object
        url: URL to navigate to
        timeout: Navigation timeout in milliseconds
        wait_until: Wait condition ('load', 'domcontentloaded', 'networkidle')
        max_attempts: Maximum retry attempts
        delay: Base delay between attempts in seconds

    Returns:
        True if navigation succeeded

    Raises:
        NetworkError: If all retry attempts fail
    """
    last_error = None

    for attempt in range(1, max_attempts + 1):
        try:
            response = await page.goto(url, timeout=timeout, wait_until=wait_until)
            if response and response.status >= 500:
                raise NetworkError(f"Server error: {response.status}")
            if response and not response.ok:
                logger.warning(f"Navigation returned status {response.status}")
            logger.debug(f"Navigation to {url} succeeded on attempt {attempt}")
            return True
        except Exception as e:
            last_error = e
            error_msg = str(e).lower()

            is_retryable = isinstance(e, NetworkError) or any(keyword in error_msg for keyword in [
                'timeout', 'connection', 'network', 'refused',
                'reset', 'aborted', 'failed to load'
            ])

            if not is_retryable:
                logger.error(f"Non-retryable error during navigation: {e}")
                raise NetworkError(f"Navigation failed: {e}") from e

            if attempt < max_attempts:
                wait = delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Navigation attempt {attempt}/{max_attempts} failed: {e}. "
                    f"Retrying in {wait:.1f}s..."
                )
                await asyncio.sleep(wait)
            else:
                logger.error(f"Navigation failed after {max_attempts} attempts: {e}")

    raise NetworkError(f"Navigation to {url} failed after {max_attempts} attempts: {last_error}")


class RetryContext:
    """
    Attempt counter with a fixed delay between attempts.

    Usage:
        ctx = RetryContext(RetryPolicy(max_attempts=3, delay=0.5))
        while ctx.should_retry():
            if await attempt():
                ctx.success()
                break
            await ctx.failed("not verified")
    """

    def __init__(self, policy: Optional[RetryPolicy] = None):
        self.policy = policy or RetryPolicy()
        self.attempt = 0
        self.errors: List[str] = []
        self._succeeded = False

    @property
    def succeeded(self) -> bool:
        return self._succeeded

    def should_retry(self) -> bool:
        return self.attempt < self.policy.max_attempts and not self._succeeded

    def success(self):
        self.attempt += 1
        self._succeeded = True

    async def failed(self, reason: Any = None):
        """Record a failed attempt and sleep before the next one, if any."""
        self.attempt += 1
        if reason is not None:
            self.errors.append(str(reason))
        if self.attempt < self.policy.max_attempts:
            logger.debug(
                f"Attempt {self.attempt}/{self.policy.max_attempts} failed: {reason}. "
                f"Retrying in {self.policy.delay:.1f}s..."
            )
            await asyncio.sleep(self.policy.delay)
