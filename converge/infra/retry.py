"""Transport-level retry for SoftLayer calls.

Only the HTTP layer retries. Probe errors seen by the waiter are never
retried there; a probe that wants to tolerate transient errors has to do so
inside its own closure.

Example:
    @retry(on=on_status_code(429, 503), max_attempts=3)
    async def get_power_state(): ...
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeAlias, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_none,
    wait_random,
)

from converge.observability.logging import logger

P = ParamSpec("P")
T = TypeVar("T")

RetryPredicate: TypeAlias = Callable[[BaseException], bool]


def on_status_code(*codes: int) -> RetryPredicate:
    """Match errors whose `status` attribute is one of codes (0 = no response)."""

    def predicate(e: BaseException) -> bool:
        return getattr(e, "status", None) in codes

    return predicate


def _log_retry(name: str, state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.bind(component="retry").warning(
        "{call} failed (attempt {n}): {err}. Retrying in {delay:.1f}s",
        call=name,
        n=state.attempt_number,
        err=error,
        delay=state.next_action.sleep if state.next_action else 0.0,
    )


def retry(
    on: RetryPredicate,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry an async call while `on` accepts the raised error.

    Delays double from base_delay up to max_delay, plus up to 10% random
    jitter. The last error is re-raised unchanged once attempts run out.
    """
    backoff = wait_exponential(multiplier=base_delay, max=max_delay) + (
        wait_random(0, base_delay * 0.1) if jitter else wait_none()
    )

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=backoff,
                retry=retry_if_exception(on),
                before_sleep=functools.partial(_log_retry, func.__qualname__),
                reraise=True,
            ):
                with attempt:
                    return await func(*args, **kwargs)
            raise AssertionError("unreachable")

        return wrapper

    return decorator
