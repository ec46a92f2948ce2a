"""
waits.py - cooperative waiting primitives.

Every polling loop in the platform goes through :func:`wait_until`, every
bounded external wait through :func:`with_timeout` and every "try again a few
times" loop through :func:`retry`.  None of them spin without yielding.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from core.errors import ScrapeError, StageTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _call(fn: Callable[[], Any]) -> Any:
    result = fn()
    if inspect.isawaitable(result):
        result = await result
    return result


async def wait_until(
    check: Callable[[], Any],
    *,
    interval: float,
    timeout: float,
) -> Optional[Any]:
    """
    Call ``check`` every ``interval`` seconds until it returns something
    truthy or ``timeout`` seconds have passed.

    The check runs at least once, so a zero timeout is a single check.
    ``check`` may be a plain callable or a coroutine function.

    Returns
    -------
    The first truthy check value, or ``None`` on timeout.
    """
    deadline = time.monotonic() + timeout
    while True:
        value = await _call(check)
        if value:
            return value
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval, remaining))


async def with_timeout(aw: Awaitable[T], seconds: float, label: str) -> T:
    """Await ``aw`` for at most ``seconds``; raise :class:`StageTimeout` otherwise."""
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise StageTimeout(label) from e


def fixed_delay(seconds: float) -> Callable[[int, BaseException], float]:
    """Delay function for :func:`retry` that always waits ``seconds``."""
    return lambda _attempt, _exc: seconds


async def retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    delay: Callable[[int, BaseException], float],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """
    Run ``operation`` up to ``attempts`` times.

    ``delay(attempt, exc)`` gives the sleep before the next attempt
    (``attempt`` is 1-based).  Exceptions outside ``retry_on`` propagate
    immediately; after the last attempt the most recent error is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt == attempts:
                logger.debug("%s failed after %d attempts: %s", label, attempt, e)
                raise
            sleep_seconds = delay(attempt, e)
            logger.debug(
                "%s failed (attempt %d/%d, retry in %.2fs): %s",
                label, attempt, attempts, sleep_seconds, e,
            )
            await asyncio.sleep(sleep_seconds)

    raise RuntimeError("Unreachable retry loop")


async def wait_for_url_prefix(
    tab: Any,
    prefix: str,
    *,
    attempts: int = 20,
    interval: float = 0.3,
) -> str:
    """Poll ``tab.url`` until it starts with ``prefix``; return the URL."""
    url = await wait_until(
        lambda: tab.url if (tab.url or "").startswith(prefix) else None,
        interval=interval,
        timeout=interval * max(attempts - 1, 0),
    )
    if not url:
        raise ScrapeError(f"Tab did not reach expected URL prefix: {prefix}")
    return url
