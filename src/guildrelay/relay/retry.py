"""Bounded timeout and retry around single Discord calls."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, TypeVar
import asyncio
import logging


T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]
RetryPredicate = Callable[[BaseException], bool]


def is_transient_error(exc: BaseException) -> bool:
    """Timeouts, dropped connections and HTTP 5xx responses."""
    if isinstance(exc, (asyncio.TimeoutError, ConnectionError)):
        return True
    # discord.HTTPException and aiohttp response errors both carry ``status``.
    status = getattr(exc, "status", None)
    return isinstance(status, int) and status >= 500


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    step: str,
    attempts: int = 1,
    timeout_seconds: float = 5.0,
    backoff_seconds: float = 0.5,
    retryable: RetryPredicate = is_transient_error,
    sleep: Optional[Sleeper] = None,
    logger: Optional[logging.Logger] = None,
) -> T:
    """Run ``operation`` with a per-attempt timeout.

    Only errors accepted by ``retryable`` are retried; anything else is raised
    from the attempt that hit it. Only pass ``attempts > 1`` for calls that are
    safe to repeat.
    """
    if attempts <= 0:
        raise ValueError("attempts must be a positive integer.")

    _sleep = sleep or asyncio.sleep
    _logger = logger or logging.getLogger("guildrelay.relay.retry")

    attempt = 1
    while True:
        try:
            return await asyncio.wait_for(operation(), timeout=timeout_seconds)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            will_retry = attempt < attempts and retryable(exc)
            _logger.warning(
                "relay_call_failed step=%s attempt=%s/%s error_type=%s retry=%s",
                step,
                attempt,
                attempts,
                type(exc).__name__,
                will_retry,
            )
            if not will_retry:
                raise
        await _sleep(backoff_seconds * (2 ** (attempt - 1)))
        attempt += 1
