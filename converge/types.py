"""Domain types for managed remote resources.

Resource is the one mutable type: it is owned by a single orchestrator for
the duration of one lifecycle run. Everything else is an immutable value.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

__all__ = [
    "DiskImage",
    "GuestSpec",
    "Marker",
    "NetworkStorage",
    "Operation",
    "Resource",
    "ResourceState",
    "ResourceSummary",
    "SSHKeyRecord",
    "SSHKeySpec",
]


class ResourceState(StrEnum):
    UNPROVISIONED = "unprovisioned"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    TAGGED = "tagged"
    QUIESCING = "quiescing"
    QUIESCENT = "quiescent"
    DELETING = "deleting"
    DELETED = "deleted"
    UNKNOWN = "unknown"

    FAILED_PROVISIONING = "failed_provisioning"
    FAILED_QUIESCENCE = "failed_quiescence"
    PENDING_DELETION = "pending_deletion"

    @property
    def is_failure(self) -> bool:
        return self in _FAILURE_STATES


_HAPPY_PATH = (
    ResourceState.UNPROVISIONED,
    ResourceState.PROVISIONING,
    ResourceState.ACTIVE,
    ResourceState.TAGGED,
    ResourceState.QUIESCING,
    ResourceState.QUIESCENT,
    ResourceState.DELETING,
    ResourceState.DELETED,
)

_FAILURE_STATES = frozenset({
    ResourceState.FAILED_PROVISIONING,
    ResourceState.FAILED_QUIESCENCE,
    ResourceState.PENDING_DELETION,
    ResourceState.UNKNOWN,
})


@dataclass(frozen=True, slots=True)
class GuestSpec:
    """Creation template for a virtual guest.

    Example:
        >>> spec = GuestSpec(hostname="test", domain="converge.dev", datacenter="ams01")
        >>> spec.to_template()["startCpus"]
        1
    """

    hostname: str
    domain: str
    datacenter: str
    cpus: int = 1
    memory_mb: int = 1024
    hourly_billing: bool = True
    local_disk: bool = True
    os_reference_code: str = "UBUNTU_LATEST"

    def to_template(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "domain": self.domain,
            "startCpus": self.cpus,
            "maxMemory": self.memory_mb,
            "datacenter": {"name": self.datacenter},
            "hourlyBillingFlag": self.hourly_billing,
            "localDiskFlag": self.local_disk,
            "operatingSystemReferenceCode": self.os_reference_code,
        }


@dataclass
class Resource:
    """A compute resource driven through one lifecycle run.

    The id is assigned once, by the orchestrator, after the remote create
    call succeeds. State only moves forward along the happy path; failure
    states may be entered from anywhere.
    """

    spec: GuestSpec
    id: int | None = None
    state: ResourceState = ResourceState.UNPROVISIONED
    label: str | None = None
    last_observed: object = None
    history: list[ResourceState] = field(default_factory=list)

    def assign_id(self, resource_id: int) -> None:
        if self.id is not None:
            raise ValueError(f"Resource id already assigned ({self.id})")
        if resource_id <= 0:
            raise ValueError(f"Invalid resource id: {resource_id}")
        self.id = resource_id

    def transition(self, state: ResourceState) -> None:
        if not state.is_failure and not self.state.is_failure:
            if _HAPPY_PATH.index(state) < _HAPPY_PATH.index(self.state):
                raise ValueError(f"Illegal transition {self.state} -> {state}")
        self.history.append(self.state)
        self.state = state

    @property
    def was_active(self) -> bool:
        return self.state is ResourceState.ACTIVE or ResourceState.ACTIVE in self.history


@dataclass(frozen=True, slots=True)
class Operation:
    """A background transaction still mutating a resource."""

    id: int
    name: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ResourceSummary:
    """One row of an account listing, as seen by the sweeper."""

    id: int
    label: str = ""
    notes: str = ""
    hostname: str = ""
    tags: tuple[str, ...] = ()

    @property
    def marker_text(self) -> tuple[str, ...]:
        return (*self.tags, self.notes, self.label)


@dataclass(frozen=True, slots=True)
class Marker:
    """Run-scoped label that identifies resources a run may reclaim."""

    label: str
    notes: str = ""

    def matches(self, text: str) -> bool:
        return bool(text) and text.startswith(self.label)

    def predicate(self) -> Callable[[ResourceSummary], bool]:
        return lambda summary: any(self.matches(t) for t in summary.marker_text)


@dataclass(frozen=True, slots=True)
class SSHKeySpec:
    key: str
    label: str
    notes: str = ""


@dataclass(frozen=True, slots=True)
class SSHKeyRecord:
    """SSH key as stored by the remote system."""

    id: int
    key: str
    label: str
    notes: str
    fingerprint: str
    create_date: datetime | None
    modify_date: datetime | None = None


@dataclass(frozen=True, slots=True)
class DiskImage:
    id: int
    name: str = ""
    capacity: int | None = None


@dataclass(frozen=True, slots=True)
class NetworkStorage:
    id: int
    username: str = ""
    capacity_gb: int | None = None
    storage_type: str = ""
