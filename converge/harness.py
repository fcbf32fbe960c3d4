"""Entry points for test and automation harnesses.

Each run is bracketed by two sweeps of the run marker: one before (clean
slate) and one after (cleanup), so a leaked resource from an earlier run
never leaks into the next one.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Protocol, TypeVar

from converge.config import Settings, load_settings
from converge.core.exceptions import LifecycleCancelled
from converge.lifecycle import LifecycleOrchestrator
from converge.observability.logging import logger
from converge.providers.base import GuestApi, SSHKeyApi, read_public_key
from converge.providers.softlayer import SoftLayerBackend
from converge.ssh_keys import SSHKeyLifecycle
from converge.sweeper import IsolationSweeper, SweepReport
from converge.types import GuestSpec, Marker, Resource, SSHKeyRecord, SSHKeySpec

T = TypeVar("T")


class Backend(Protocol):
    guests: GuestApi
    ssh_keys: SSHKeyApi

    async def __aenter__(self) -> Any: ...

    async def __aexit__(self, *exc: Any) -> None: ...


@asynccontextmanager
async def _connect(settings: Settings, backend: Backend | None) -> AsyncIterator[Backend]:
    async with backend or SoftLayerBackend.create(settings.softlayer()) as connected:
        yield connected


async def _bracketed(
    sweeper: IsolationSweeper, marker: Marker, run: Callable[[], Awaitable[T]],
) -> T:
    log = logger.bind(component="harness", kind=sweeper.kind, marker=marker.label)
    await sweeper.sweep(marker)

    try:
        result = await run()
    except (LifecycleCancelled, asyncio.CancelledError):
        log.warning("Run cancelled; leaving resources for a later sweep")
        raise
    except Exception:
        try:
            await sweeper.sweep(marker)
        except Exception as sweep_error:
            log.error("Cleanup sweep after failed run also failed: {err}", err=sweep_error)
        raise

    await sweeper.sweep(marker)
    return result


async def run_lifecycle(
    spec: GuestSpec,
    *,
    timeout: float | None = None,
    interval: float | None = None,
    settings: Settings | None = None,
    backend: Backend | None = None,
    cancel: asyncio.Event | None = None,
) -> Resource:
    """Full provision-to-teardown cycle for one guest, swept on both sides."""
    settings = settings or load_settings()
    async with _connect(settings, backend) as connected:
        orchestrator = LifecycleOrchestrator(
            api=connected.guests, marker=settings.marker, cancel=cancel,
        )
        return await _bracketed(
            IsolationSweeper(connected.guests, kind="virtual guest"),
            settings.marker,
            lambda: orchestrator.run_lifecycle(
                spec,
                timeout if timeout is not None else settings.timeout,
                interval if interval is not None else settings.interval,
            ),
        )


async def run_ssh_key_lifecycle(
    *,
    key: str | None = None,
    settings: Settings | None = None,
    backend: Backend | None = None,
) -> SSHKeyRecord:
    """Create then delete an SSH key labelled with the run marker."""
    settings = settings or load_settings()
    if key is None:
        key = read_public_key(settings.ssh_key_path or "~/.ssh/id_rsa.pub")
    spec = SSHKeySpec(key=key, label=settings.marker.label, notes=settings.marker.notes)

    async with _connect(settings, backend) as connected:
        return await _bracketed(
            IsolationSweeper(connected.ssh_keys, kind="ssh key"),
            settings.marker,
            lambda: SSHKeyLifecycle(connected.ssh_keys).run_lifecycle(spec),
        )


async def sweep(
    marker: Marker | None = None,
    *,
    settings: Settings | None = None,
    backend: Backend | None = None,
) -> SweepReport:
    """Reclaim every guest carrying the marker."""
    settings = settings or load_settings()
    async with _connect(settings, backend) as connected:
        return await IsolationSweeper(connected.guests).sweep(marker or settings.marker)
