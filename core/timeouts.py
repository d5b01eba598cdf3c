"""
Deadline-bounded calls.

Every call into storage, the session store, blob storage or email goes
through ``with_deadline`` (or the ``deadline`` decorator) so that a stalled
collaborator surfaces as ``RequestTimeout`` instead of a hung request.

Usage:
    from core.timeouts import deadline, with_deadline

    @deadline("jobs.list_public", retry_once=True)
    async def list_public_jobs(db, ...):
        ...

    role = await with_deadline(lambda: resolver.resolve_role(pid), 2.0, "auth.bootstrap")
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from core.config import settings
from core.exceptions import RequestTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_deadline(
    call: Callable[[], Awaitable[T]],
    seconds: Optional[float] = None,
    operation: str = "external call",
    retry_once: bool = False,
) -> T:
    """
    Await ``call()`` under a deadline.

    Args:
        call: Zero-argument factory returning a fresh awaitable. A factory is
            required because a coroutine cannot be awaited twice.
        seconds: Deadline in seconds (defaults to settings.request_timeout_seconds)
        operation: Name used in logs and in the raised error
        retry_once: Retry a single time after a timeout. Only for idempotent reads.

    Returns:
        The awaited result

    Raises:
        RequestTimeout: If the deadline is exceeded (on the retry too, when enabled)
    """
    timeout = settings.request_timeout_seconds if seconds is None else seconds
    attempts = 2 if retry_once else 1

    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            if attempt < attempts:
                logger.warning(
                    f"{operation} timed out after {timeout:g}s, retrying once"
                )
                continue
            logger.error(f"{operation} timed out after {timeout:g}s")
            raise RequestTimeout(operation, timeout) from None

    # unreachable, the loop either returns or raises
    raise RequestTimeout(operation, timeout)


def deadline(
    operation: Optional[str] = None,
    seconds: Optional[float] = None,
    retry_once: bool = False,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator form of ``with_deadline`` for async service functions.

    Args:
        operation: Name for logs/errors (defaults to module.function)
        seconds: Deadline in seconds (defaults to settings.request_timeout_seconds)
        retry_once: Retry a single time after a timeout
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = operation or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_deadline(
                lambda: func(*args, **kwargs),
                seconds=seconds,
                operation=name,
                retry_once=retry_once,
            )

        return wrapper

    return decorator
