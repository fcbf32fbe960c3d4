"""SoftLayer backend: one client, every capability adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from converge.providers.base import AccountApi, GuestApi, SSHKeyApi

from .client import SoftLayerClient
from .config import SoftLayer
from .services import SoftLayerAccountApi, SoftLayerGuestApi, SoftLayerSSHKeyApi


@dataclass(frozen=True, slots=True)
class SoftLayerBackend:
    """Capability adapters sharing one SoftLayer client.

    Example:
        async with SoftLayerBackend.create(config) as backend:
            await IsolationSweeper(backend.guests).sweep(marker)
    """

    client: SoftLayerClient
    guests: GuestApi
    ssh_keys: SSHKeyApi
    account: AccountApi

    @classmethod
    def create(cls, config: SoftLayer, client: SoftLayerClient | None = None) -> SoftLayerBackend:
        client = client or SoftLayerClient(config)
        return cls(
            client=client,
            guests=SoftLayerGuestApi(client),
            ssh_keys=SoftLayerSSHKeyApi(client),
            account=SoftLayerAccountApi(client),
        )

    async def __aenter__(self) -> SoftLayerBackend:
        await self.client.__aenter__()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.client.__aexit__(*exc)
