"""Lifecycle orchestration for virtual guests.

Sequences provision, tag, quiesce and destroy against an eventually
consistent backend. Every transition is confirmed by probing the remote
system; nothing is asserted locally without having been observed.

Happy path::

    UNPROVISIONED -> PROVISIONING -> ACTIVE -> TAGGED
        -> QUIESCING -> QUIESCENT -> DELETING -> DELETED

On failure the resource is left exactly where it is. Nothing is rolled back
or deleted automatically: cleanup belongs to the caller, usually the
sweeper on a later run.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from converge.core.exceptions import (
    ConvergenceTimeout,
    CreationFailed,
    DeletionFailed,
    DeletionNotAcknowledged,
    LifecycleCancelled,
    LifecycleError,
    LifecycleOrderError,
    ProbeFailed,
    ResourceNotFound,
    TaggingFailed,
)
from converge.observability.logging import logger
from converge.providers.base import GuestApi
from converge.types import GuestSpec, Marker, Resource, ResourceState
from converge.wait import Clock, Probe, Sleep, await_condition

T = TypeVar("T")

RUNNING = "RUNNING"


@dataclass
class LifecycleOrchestrator:
    """Drives one virtual guest through its lifecycle.

    One orchestrator owns one resource's convergence. Run several
    orchestrators concurrently for several resources; never share one.

    Example:
        orchestrator = LifecycleOrchestrator(api=guests, marker=Marker("TEST:converge"))
        resource = await orchestrator.run_lifecycle(spec, timeout=300, interval=10)
    """

    api: GuestApi
    marker: Marker
    running_state: str = RUNNING
    cancel: asyncio.Event | None = None
    clock: Clock = time.monotonic
    sleep: Sleep = asyncio.sleep
    resource: Resource | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self._log = logger.bind(component="lifecycle", marker=self.marker.label)

    # =========================================================================
    # Steps
    # =========================================================================

    async def provision(self, spec: GuestSpec) -> Resource:
        """Issue the create call.

        Returns:
            A resource in PROVISIONING with its id assigned.

        Raises:
            CreationFailed: If the call errored or returned an id <= 0.
        """
        resource = Resource(spec=spec)
        self._ensure_not_cancelled(resource, "provision")
        self.resource = resource

        self._log.info("Creating guest {host}.{domain}", host=spec.hostname, domain=spec.domain)
        try:
            resource_id = await self.api.create(spec)
        except Exception as e:
            raise CreationFailed(
                f"Create call failed for {spec.hostname}: {e}",
                last_state=resource.state,
            ) from e

        if resource_id is None or resource_id <= 0:
            raise CreationFailed(
                f"Create call for {spec.hostname} returned invalid id {resource_id!r}",
                last_state=resource.state,
            )

        resource.assign_id(resource_id)
        resource.transition(ResourceState.PROVISIONING)
        self._log.info("Created guest {id}", id=resource_id)
        return resource

    async def await_active(self, resource: Resource, timeout: float, interval: float) -> None:
        """Wait until the power state equals the running sentinel.

        Raises:
            ConvergenceTimeout: If not running in time. The resource moves to
                FAILED_PROVISIONING and is not deleted.
        """
        resource_id = self._require_id(resource, "await_active")
        self._ensure_not_cancelled(resource, "await_active")
        log = self._log.bind(resource_id=resource_id, step="await_active")
        log.info("Waiting for guest to be {state}", state=self.running_state)

        async def power_state() -> str:
            state = await self.api.get_state(resource_id)
            resource.last_observed = state
            return state

        try:
            await self._wait(
                resource,
                power_state,
                lambda state: state == self.running_state,
                timeout=timeout,
                interval=interval,
                description=f"power state {self.running_state}",
            )
        except ConvergenceTimeout:
            resource.transition(ResourceState.FAILED_PROVISIONING)
            raise

        resource.transition(ResourceState.ACTIVE)
        log.info("Guest is {state}", state=self.running_state)

    async def mark_as_managed(self, resource: Resource) -> None:
        """Apply the run marker so the sweeper can reclaim the guest later.

        Idempotent: marking an already-marked resource is a no-op.

        Raises:
            TaggingFailed: If the guest was never observed active, or the
                remote call failed.
        """
        resource_id = self._require_id(resource, "mark_as_managed")
        self._ensure_not_cancelled(resource, "mark_as_managed")

        if not resource.was_active:
            raise TaggingFailed(
                "Refusing to label a guest that was never observed active",
                resource_id=resource_id,
                last_state=resource.state,
            )
        if resource.label == self.marker.label:
            return

        self._log.info("Marking guest {id} with {label}", id=resource_id, label=self.marker.label)
        try:
            await self.api.apply_label(resource_id, self.marker.label, self.marker.notes)
        except Exception as e:
            raise TaggingFailed(
                f"Could not label guest: {e}",
                resource_id=resource_id,
                last_state=resource.state,
            ) from e

        resource.label = self.marker.label
        resource.transition(ResourceState.TAGGED)

    async def await_quiescent(self, resource: Resource, timeout: float, interval: float) -> None:
        """Wait until the guest has no pending background operations.

        Raises:
            ConvergenceTimeout: If operations are still pending at timeout.
                The resource moves to FAILED_QUIESCENCE and still exists.
        """
        resource_id = self._require_id(resource, "await_quiescent")
        self._ensure_not_cancelled(resource, "await_quiescent")
        if not resource.was_active:
            raise LifecycleOrderError(
                "Cannot wait for quiescence before the guest was active",
                resource_id=resource_id,
                last_state=resource.state,
            )

        log = self._log.bind(resource_id=resource_id, step="await_quiescent")
        resource.transition(ResourceState.QUIESCING)
        log.info("Waiting for guest to have no pending operations")

        async def pending_count() -> int:
            operations = await self.api.list_pending_operations(resource_id)
            resource.last_observed = len(operations)
            return len(operations)

        try:
            await self._wait(
                resource,
                pending_count,
                lambda count: count == 0,
                timeout=timeout,
                interval=interval,
                description="zero pending operations",
            )
        except ConvergenceTimeout:
            resource.transition(ResourceState.FAILED_QUIESCENCE)
            raise

        resource.transition(ResourceState.QUIESCENT)
        log.info("Guest is quiescent")

    async def teardown(self, resource: Resource) -> bool:
        """Delete the guest.

        Returns:
            The remote acknowledgement. False means the request was accepted
            but nothing was deleted; the resource moves to PENDING_DELETION
            and the caller should retry or leave it to the sweeper. A guest
            the backend no longer knows counts as deleted.

        Raises:
            LifecycleOrderError: If the guest has not reached quiescence.
            DeletionFailed: On transport error. State is left unchanged.
        """
        resource_id = self._require_id(resource, "teardown")
        self._ensure_not_cancelled(resource, "teardown")
        if resource.state not in (ResourceState.QUIESCENT, ResourceState.PENDING_DELETION):
            raise LifecycleOrderError(
                "Teardown requires a quiescent guest",
                resource_id=resource_id,
                last_state=resource.state,
            )

        self._log.info("Deleting guest {id}", id=resource_id)
        try:
            acknowledged = await self.api.delete(resource_id)
        except ResourceNotFound:
            self._log.info("Guest {id} already gone", id=resource_id)
            acknowledged = True
        except Exception as e:
            raise DeletionFailed(
                f"Delete call failed: {e}",
                resource_id=resource_id,
                last_state=resource.state,
            ) from e

        if not acknowledged:
            self._log.warning("Delete of guest {id} was not acknowledged", id=resource_id)
            resource.transition(ResourceState.PENDING_DELETION)
            return False

        resource.transition(ResourceState.DELETING)
        resource.transition(ResourceState.DELETED)
        return True

    async def await_deleted(self, resource: Resource, timeout: float, interval: float) -> None:
        """Confirm the guest is gone by polling until the backend reports not found."""
        resource_id = self._require_id(resource, "await_deleted")
        self._ensure_not_cancelled(resource, "await_deleted")

        async def still_there() -> str | None:
            try:
                return await self.api.get_state(resource_id)
            except ResourceNotFound:
                return None

        await self._wait(
            resource,
            still_there,
            lambda state: state is None,
            timeout=timeout,
            interval=interval,
            description="guest to disappear",
        )

    # =========================================================================
    # Full run
    # =========================================================================

    async def run_lifecycle(
        self,
        spec: GuestSpec,
        timeout: float,
        interval: float,
        *,
        verify_deletion: bool = False,
    ) -> Resource:
        """Provision, wait active, mark, wait quiescent, tear down.

        Each step either fully succeeds or the call fails, leaving the
        resource for the caller to inspect via ``self.resource``.

        Raises:
            DeletionNotAcknowledged: If the final delete was accepted but
                nothing was deleted.
        """
        resource = await self.provision(spec)
        await self.await_active(resource, timeout, interval)
        await self.mark_as_managed(resource)
        await self.await_quiescent(resource, timeout, interval)

        if not await self.teardown(resource):
            raise DeletionNotAcknowledged(
                "Remote system accepted the delete but reported nothing deleted",
                resource_id=resource.id,
                last_state=resource.state,
            )

        if verify_deletion:
            await self.await_deleted(resource, timeout, interval)

        self._log.info("Lifecycle of guest {id} complete", id=resource.id)
        return resource

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _wait(
        self,
        resource: Resource,
        probe: Probe[T],
        is_satisfied: Callable[[T], bool],
        **kwargs: Any,
    ) -> T:
        try:
            return await await_condition(
                probe,
                is_satisfied,
                resource_id=resource.id,
                cancel=self.cancel,
                clock=self.clock,
                sleep=self.sleep,
                **kwargs,
            )
        except LifecycleError:
            raise
        except Exception as e:
            raise ProbeFailed(
                f"Probe failed while waiting for {kwargs.get('description', 'resource')}: {e}",
                resource_id=resource.id,
                last_state=resource.last_observed,
            ) from e

    def _ensure_not_cancelled(self, resource: Resource, step: str) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise LifecycleCancelled(
                f"Cancelled before {step}",
                resource_id=resource.id,
                last_state=resource.state,
            )

    @staticmethod
    def _require_id(resource: Resource, step: str) -> int:
        if resource.id is None:
            raise LifecycleOrderError(
                f"{step} requires a provisioned resource",
                last_state=resource.state,
            )
        return resource.id
