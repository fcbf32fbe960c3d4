"""SoftLayer adapters implementing the capability protocols."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from converge.core.exceptions import ResourceNotFound
from converge.types import (
    DiskImage,
    GuestSpec,
    NetworkStorage,
    Operation,
    ResourceSummary,
    SSHKeyRecord,
    SSHKeySpec,
)

from .client import SoftLayerClient, SoftLayerError

VIRTUAL_GUEST = "SoftLayer_Virtual_Guest"
SSH_KEY = "SoftLayer_Security_Ssh_Key"
ACCOUNT = "SoftLayer_Account"

GUEST_MASK = "id;hostname;notes;tagReferences.tag.name"
SSH_KEY_MASK = "id;key;label;notes;fingerprint;createDate;modifyDate"


# =============================================================================
# Parsing
# =============================================================================


def parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def parse_guest(data: dict[str, Any]) -> ResourceSummary:
    tags = tuple(
        ref["tag"]["name"]
        for ref in data.get("tagReferences") or ()
        if ref.get("tag", {}).get("name")
    )
    return ResourceSummary(
        id=int(data["id"]),
        notes=data.get("notes") or "",
        hostname=data.get("hostname") or "",
        tags=tags,
    )


def parse_ssh_key(data: dict[str, Any]) -> SSHKeyRecord:
    return SSHKeyRecord(
        id=int(data.get("id") or 0),
        key=data.get("key") or "",
        label=data.get("label") or "",
        notes=data.get("notes") or "",
        fingerprint=data.get("fingerprint") or "",
        create_date=parse_date(data.get("createDate")),
        modify_date=parse_date(data.get("modifyDate")),
    )


def parse_operation(data: dict[str, Any]) -> Operation:
    status = data.get("transactionStatus") or {}
    return Operation(
        id=int(data["id"]),
        name=status.get("name", ""),
        created_at=parse_date(data.get("createDate")),
    )


async def _delete(client: SoftLayerClient, service: str, resource_id: int) -> bool:
    try:
        result = await client.call(service, resource_id=resource_id, verb="DELETE")
    except SoftLayerError as e:
        if e.not_found:
            raise ResourceNotFound(resource_id) from e
        raise
    return result is True


# =============================================================================
# Adapters
# =============================================================================


@dataclass(frozen=True, slots=True)
class SoftLayerGuestApi:
    """GuestApi over SoftLayer_Virtual_Guest."""

    client: SoftLayerClient

    async def create(self, spec: GuestSpec) -> int:
        data = await self.client.call(VIRTUAL_GUEST, parameters=[spec.to_template()])
        return int(data.get("id") or 0) if isinstance(data, dict) else 0

    async def delete(self, resource_id: int) -> bool:
        return await _delete(self.client, VIRTUAL_GUEST, resource_id)

    async def get_state(self, resource_id: int) -> str:
        try:
            data = await self.client.call(VIRTUAL_GUEST, "getPowerState", resource_id)
        except SoftLayerError as e:
            if e.not_found:
                raise ResourceNotFound(resource_id) from e
            raise
        return data["keyName"]

    async def list_pending_operations(self, resource_id: int) -> Sequence[Operation]:
        data = await self.client.call(VIRTUAL_GUEST, "getActiveTransactions", resource_id)
        return [parse_operation(item) for item in data or ()]

    async def apply_label(self, resource_id: int, label: str, notes: str) -> None:
        # setTags replaces the whole tag set, so repeating it cannot duplicate.
        await self.client.call(
            VIRTUAL_GUEST, resource_id=resource_id, parameters=[{"notes": notes or label}], verb="PUT",
        )
        await self.client.call(VIRTUAL_GUEST, "setTags", resource_id, parameters=[label])

    async def list_all(self) -> Sequence[ResourceSummary]:
        return await SoftLayerAccountApi(self.client).get_virtual_guests()


@dataclass(frozen=True, slots=True)
class SoftLayerSSHKeyApi:
    """SSHKeyApi over SoftLayer_Security_Ssh_Key."""

    client: SoftLayerClient

    async def create(self, spec: SSHKeySpec) -> SSHKeyRecord:
        data = await self.client.call(
            SSH_KEY,
            parameters=[{"key": spec.key, "label": spec.label, "notes": spec.notes}],
        )
        return parse_ssh_key(data)

    async def delete(self, resource_id: int) -> bool:
        return await _delete(self.client, SSH_KEY, resource_id)

    async def list_all(self) -> Sequence[ResourceSummary]:
        return [
            ResourceSummary(id=key.id, label=key.label, notes=key.notes)
            for key in await SoftLayerAccountApi(self.client).get_ssh_keys()
        ]


@dataclass(frozen=True, slots=True)
class SoftLayerAccountApi:
    """AccountApi over SoftLayer_Account."""

    client: SoftLayerClient

    async def get_virtual_guests(self) -> Sequence[ResourceSummary]:
        data = await self.client.call(ACCOUNT, "getVirtualGuests", mask=GUEST_MASK)
        return [parse_guest(item) for item in data or ()]

    async def get_ssh_keys(self) -> Sequence[SSHKeyRecord]:
        data = await self.client.call(ACCOUNT, "getSshKeys", mask=SSH_KEY_MASK)
        return [parse_ssh_key(item) for item in data or ()]

    async def get_virtual_disk_images(self) -> Sequence[DiskImage]:
        data = await self.client.call(ACCOUNT, "getVirtualDiskImages")
        return [
            DiskImage(id=int(item["id"]), name=item.get("name") or "", capacity=item.get("capacity"))
            for item in data or ()
        ]

    async def get_network_storage(self) -> Sequence[NetworkStorage]:
        data = await self.client.call(ACCOUNT, "getNetworkStorage")
        return [
            NetworkStorage(
                id=int(item["id"]),
                username=item.get("username") or "",
                capacity_gb=item.get("capacityGb"),
                storage_type=item.get("nasType") or "",
            )
            for item in data or ()
        ]
