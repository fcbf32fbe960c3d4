"""SSH key create / verify / delete.

SSH keys converge synchronously: the create call returns the stored record,
so there is nothing to poll. The record is still checked field by field,
since the remote system derives several of them.
"""

from __future__ import annotations

from dataclasses import dataclass

from converge.core.exceptions import (
    CreationFailed,
    DeletionFailed,
    DeletionNotAcknowledged,
)
from converge.observability.logging import logger
from converge.providers.base import SSHKeyApi, compute_fingerprint
from converge.types import SSHKeyRecord, SSHKeySpec


def _fingerprint_or_none(key: str) -> str | None:
    try:
        return compute_fingerprint(key)
    except ValueError:
        return None


def verify_record(spec: SSHKeySpec, record: SSHKeyRecord) -> None:
    """Check a freshly created record against the request.

    Raises:
        CreationFailed: Naming every field that does not match.
    """
    problems: list[str] = []
    if record.id is None or record.id <= 0:
        problems.append(f"id={record.id!r}")
    if record.key != spec.key:
        problems.append("key")
    if record.label != spec.label:
        problems.append(f"label={record.label!r}")
    if record.notes != spec.notes:
        problems.append(f"notes={record.notes!r}")
    if not record.fingerprint:
        problems.append("fingerprint empty")
    elif (expected := _fingerprint_or_none(spec.key)) and record.fingerprint != expected:
        problems.append(f"fingerprint={record.fingerprint!r}")
    if record.create_date is None:
        problems.append("create_date missing")
    if record.modify_date is not None:
        problems.append("modify_date set on a new key")

    if problems:
        raise CreationFailed(
            f"SSH key record does not match request: {', '.join(problems)}",
            resource_id=record.id if record.id and record.id > 0 else None,
        )


@dataclass(frozen=True, slots=True)
class SSHKeyLifecycle:
    """Creates and deletes SSH key records through an SSHKeyApi."""

    api: SSHKeyApi

    async def create(self, spec: SSHKeySpec) -> SSHKeyRecord:
        log = logger.bind(component="ssh_keys")
        log.info("Creating SSH key {label}", label=spec.label)
        try:
            record = await self.api.create(spec)
        except Exception as e:
            raise CreationFailed(f"Create call failed for SSH key {spec.label}: {e}") from e

        verify_record(spec, record)
        log.info("Created SSH key {id} ({fp})", id=record.id, fp=record.fingerprint)
        return record

    async def delete(self, record: SSHKeyRecord) -> bool:
        try:
            return await self.api.delete(record.id)
        except Exception as e:
            raise DeletionFailed(f"Delete call failed: {e}", resource_id=record.id) from e

    async def run_lifecycle(self, spec: SSHKeySpec) -> SSHKeyRecord:
        record = await self.create(spec)
        if not await self.delete(record):
            raise DeletionNotAcknowledged(
                "Remote system accepted the delete but reported nothing deleted",
                resource_id=record.id,
            )
        return record
