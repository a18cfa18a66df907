"""Polling primitive.

``poll`` is the single mechanism used for every "wait until X" in kindsim:
cluster readiness, component start and component stop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from ..errors import WaitTimeoutError
from ..shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL = 0.5

Condition = Callable[[], Awaitable[bool]]


async def poll(
    condition: Condition,
    *,
    timeout: float | None = None,
    interval: float = DEFAULT_INTERVAL,
    immediate: bool = False,
    continue_on_error: int = 0,
) -> None:
    """Evaluate ``condition`` until it returns True.

    Args:
        condition: Async callable; True means done, raising means error.
        timeout: Seconds before giving up. None relies on the caller's
            own cancellation.
        interval: Seconds between evaluations.
        immediate: Evaluate once before the first sleep.
        continue_on_error: Consecutive condition errors tolerated before
            the last one is raised.

    Raises:
        WaitTimeoutError: The deadline passed without success.
        Exception: The condition's error once the error budget is spent.
    """
    deadline = asyncio.timeout(timeout)
    last_error: Exception | None = None
    try:
        async with deadline:
            errors = 0
            if not immediate:
                await asyncio.sleep(interval)
            while True:
                try:
                    done = await condition()
                except Exception as e:
                    errors += 1
                    last_error = e
                    if errors > continue_on_error:
                        raise
                    logger.debug(
                        "Condition failed, retrying",
                        err=str(e),
                        errors=errors,
                        budget=continue_on_error,
                    )
                    done = False
                else:
                    errors = 0
                if done:
                    return
                await asyncio.sleep(interval)
    except TimeoutError as e:
        if not deadline.expired():
            raise
        raise WaitTimeoutError(
            message=f"timed out after {timeout}s waiting for the condition",
            timeout=timeout,
            last_error=last_error,
        ) from e
