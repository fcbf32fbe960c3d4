"""Best-effort reclamation of marker-tagged resources.

Run before a lifecycle (clean slate) and after it (cleanup). Matching on the
marker and existing on the account are the only preconditions for deletion;
the resource's state is irrelevant.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeAlias

from converge.core.exceptions import ResourceNotFound, SweepPartialFailure
from converge.observability.logging import logger
from converge.providers.base import Reclaimable
from converge.types import Marker, ResourceSummary

MarkerPredicate: TypeAlias = Callable[[ResourceSummary], bool]


@dataclass(frozen=True, slots=True)
class SweepReport:
    """Outcome of one sweep."""

    kind: str
    matched: tuple[int, ...] = ()
    deleted: tuple[int, ...] = ()
    already_gone: tuple[int, ...] = ()
    failures: dict[int, BaseException] = field(default_factory=dict)

    @property
    def operations(self) -> int:
        return len(self.matched)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True, slots=True)
class IsolationSweeper:
    """Finds and deletes every resource of one kind matching a marker.

    Example:
        sweeper = IsolationSweeper(api=ssh_keys, kind="ssh key")
        await sweeper.sweep(Marker("TEST:converge"))
    """

    api: Reclaimable
    kind: str = "virtual guest"

    async def reclaim_all(self, predicate: MarkerPredicate) -> SweepReport:
        """Delete all matching resources, continuing past individual failures.

        A resource that is already gone counts as reclaimed. An empty match
        set is success.

        Raises:
            SweepPartialFailure: If at least one matched resource could not be
                deleted; carries a failure per resource id.
        """
        log = logger.bind(component="sweeper", kind=self.kind)
        listed = await self.api.list_all()
        matched = tuple(summary.id for summary in listed if predicate(summary))
        log.info("{n} of {total} {kind}(s) match", n=len(matched), total=len(listed), kind=self.kind)

        deleted: list[int] = []
        gone: list[int] = []
        failures: dict[int, BaseException] = {}

        for resource_id in matched:
            try:
                acknowledged = await self.api.delete(resource_id)
            except ResourceNotFound:
                log.debug("{kind} {id} already gone", kind=self.kind, id=resource_id)
                gone.append(resource_id)
                continue
            except Exception as e:
                log.warning("Failed to delete {kind} {id}: {err}", kind=self.kind, id=resource_id, err=e)
                failures[resource_id] = e
                continue

            if acknowledged:
                deleted.append(resource_id)
            elif await self._is_gone(resource_id):
                gone.append(resource_id)
            else:
                log.warning("Delete of {kind} {id} not acknowledged", kind=self.kind, id=resource_id)
                failures[resource_id] = RuntimeError(f"delete of {resource_id} not acknowledged")

        report = SweepReport(
            kind=self.kind,
            matched=matched,
            deleted=tuple(deleted),
            already_gone=tuple(gone),
            failures=failures,
        )
        if failures:
            raise SweepPartialFailure(self.kind, failures, deleted=report.deleted + report.already_gone)
        return report

    async def sweep(self, marker: Marker) -> SweepReport:
        return await self.reclaim_all(marker.predicate())

    async def _is_gone(self, resource_id: int) -> bool:
        listed = await self.api.list_all()
        return all(summary.id != resource_id for summary in listed)
