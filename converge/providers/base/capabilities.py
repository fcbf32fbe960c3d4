"""Capability protocols consumed by the lifecycle core.

The core depends only on these narrow async contracts, never on a concrete
client. Any backend can be plugged in through an adapter that implements
the same capability set.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from converge.types import (
        DiskImage,
        GuestSpec,
        NetworkStorage,
        Operation,
        ResourceSummary,
        SSHKeyRecord,
        SSHKeySpec,
    )


@runtime_checkable
class Reclaimable(Protocol):
    """Anything the sweeper can list and delete."""

    async def list_all(self) -> Sequence[ResourceSummary]:
        """List every resource of this kind on the account."""
        ...

    async def delete(self, resource_id: int) -> bool:
        """Delete a resource.

        Returns:
            The remote acknowledgement. False means the request was accepted
            but nothing was deleted.

        Raises:
            ResourceNotFound: If the resource no longer exists.
        """
        ...


@runtime_checkable
class GuestApi(Reclaimable, Protocol):
    """Virtual guest operations with asynchronous convergence."""

    async def create(self, spec: GuestSpec) -> int:
        """Create a guest and return the id the remote system assigned."""
        ...

    async def get_state(self, resource_id: int) -> str:
        """Current power state key (e.g., "RUNNING", "HALTED")."""
        ...

    async def list_pending_operations(self, resource_id: int) -> Sequence[Operation]:
        """Background transactions still mutating the guest."""
        ...

    async def apply_label(self, resource_id: int, label: str, notes: str) -> None:
        """Set the guest's label. Applying the same label twice must not duplicate it."""
        ...


@runtime_checkable
class SSHKeyApi(Reclaimable, Protocol):
    """SSH key records. Creation is synchronous: no convergence needed."""

    async def create(self, spec: SSHKeySpec) -> SSHKeyRecord: ...


@runtime_checkable
class AccountApi(Protocol):
    """Read-only account inventory."""

    async def get_virtual_guests(self) -> Sequence[ResourceSummary]: ...

    async def get_ssh_keys(self) -> Sequence[SSHKeyRecord]: ...

    async def get_virtual_disk_images(self) -> Sequence[DiskImage]: ...

    async def get_network_storage(self) -> Sequence[NetworkStorage]: ...
