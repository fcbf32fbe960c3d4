"""Bounded-time convergence polling.

A single generic wait primitive parameterized by probe and predicate, shared
by every resource kind and every state definition (power state, pending
operation count, ...). Built on tenacity: only "not yet satisfied" is
retried; any exception raised by the probe itself ends the wait at once.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeAlias, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    wait_fixed,
)

from converge.core.exceptions import ConvergenceTimeout, LifecycleCancelled
from converge.observability.logging import logger

T = TypeVar("T")

Probe: TypeAlias = Callable[[], Awaitable[T]]
Clock: TypeAlias = Callable[[], float]
Sleep: TypeAlias = Callable[[float], Awaitable[None]]


class _Unsatisfied(Exception):
    """Probe returned a value that does not satisfy the condition yet."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"condition not satisfied: {value!r}")


async def await_condition(
    probe: Probe[T],
    is_satisfied: Callable[[T], bool],
    *,
    timeout: float,
    interval: float,
    description: str = "resource",
    resource_id: int | None = None,
    cancel: asyncio.Event | None = None,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Poll probe until is_satisfied accepts its value.

    The first probe runs immediately. After that the probe runs once per
    interval, and never again once the condition holds.

    Args:
        probe: Async function returning the current observed value.
        is_satisfied: Returns True when the observed value is the target.
        timeout: Maximum time to wait in seconds.
        interval: Time between probes in seconds.
        description: What is being waited for, used in errors and logs.
        resource_id: Id of the polled resource, carried into errors.
        cancel: Event checked before every probe.
        clock: Monotonic time source.
        sleep: Async sleep used between probes.

    Returns:
        The first probe value that satisfied the condition.

    Raises:
        ConvergenceTimeout: If timeout elapsed first; carries the last value.
        LifecycleCancelled: If cancel was set before a probe.
        Exception: Whatever the probe raised, unchanged.
    """
    log = logger.bind(component="waiter", resource_id=resource_id)
    start = clock()
    attempts = 0
    last_value: object = None

    async def tick() -> T:
        nonlocal attempts, last_value
        if cancel is not None and cancel.is_set():
            raise LifecycleCancelled(
                f"Cancelled while waiting for {description}",
                resource_id=resource_id,
                last_state=last_value,
            )
        attempts += 1
        value = await probe()
        last_value = value
        log.debug(
            "Probe {n} for {what}: {value!r}",
            n=attempts, what=description, value=value,
        )
        if not is_satisfied(value):
            raise _Unsatisfied(value)
        return value

    def timed_out(_: RetryCallState) -> bool:
        return clock() - start >= timeout

    retrying = AsyncRetrying(
        stop=timed_out,
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(_Unsatisfied),
        sleep=sleep,
        reraise=False,
    )

    try:
        value = await retrying(tick)
    except RetryError as e:
        elapsed = clock() - start
        log.warning(
            "Gave up on {what} after {elapsed:.1f}s, last seen {value!r}",
            what=description, elapsed=elapsed, value=last_value,
        )
        raise ConvergenceTimeout(
            description,
            last_value=last_value,
            elapsed=elapsed,
            attempts=attempts,
            resource_id=resource_id,
        ) from e

    log.debug("{what} satisfied after {n} probes", what=description, n=attempts)
    return value
