"""SoftLayer adapter tests against a recorded transport (no network)."""

from datetime import datetime
from typing import Any

import pytest

from converge.core.exceptions import ResourceNotFound
from converge.infra.http import HttpError
from converge.providers.base import AccountApi, GuestApi, Reclaimable, SSHKeyApi
from converge.providers.softlayer import (
    SoftLayer,
    SoftLayerBackend,
    SoftLayerClient,
    SoftLayerError,
)
from converge.types import GuestSpec, Marker, SSHKeySpec
from tests.fakes import TEST_KEY


class Replies(list):
    """Successive responses for one route; exceptions are raised."""


class RecordingHttp:
    """Stands in for HttpClient: routes (verb, path) to canned responses."""

    def __init__(self, routes: dict[tuple[str, str], Any]) -> None:
        self.routes = routes
        self.requests: list[tuple[str, str, Any, Any]] = []

    async def request(self, method: str, path: str, *, json: Any = None, params: Any = None) -> Any:
        self.requests.append((method, path, json, params))
        response = self.routes[(method, path)]
        if isinstance(response, Replies):
            response = response.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def __aenter__(self) -> "RecordingHttp":
        return self

    async def __aexit__(self, *_: Any) -> None:
        pass


CONFIG = SoftLayer(username="me", api_key="secret")


def backend_for(routes: dict[tuple[str, str], Any]) -> tuple[SoftLayerBackend, RecordingHttp]:
    http = RecordingHttp(routes)
    client = SoftLayerClient(CONFIG, http=http, retry_delay=0)  # type: ignore[arg-type]
    return SoftLayerBackend.create(CONFIG, client), http


def test_adapters_satisfy_capability_protocols():
    backend, _ = backend_for({})

    assert isinstance(backend.guests, GuestApi)
    assert isinstance(backend.ssh_keys, SSHKeyApi)
    assert isinstance(backend.ssh_keys, Reclaimable)
    assert isinstance(backend.account, AccountApi)


class TestGuestApi:
    @pytest.mark.asyncio
    async def test_create_posts_template(self):
        backend, http = backend_for({("POST", "/SoftLayer_Virtual_Guest.json"): {"id": 1234}})
        spec = GuestSpec(hostname="test", domain="softlayergo.com", datacenter="ams01")

        assert await backend.guests.create(spec) == 1234

        method, path, body, _ = http.requests[0]
        assert body == {"parameters": [spec.to_template()]}

    @pytest.mark.asyncio
    async def test_power_state_key(self):
        backend, _ = backend_for({
            ("GET", "/SoftLayer_Virtual_Guest/7/getPowerState.json"): {"keyName": "RUNNING", "name": "Running"},
        })

        assert await backend.guests.get_state(7) == "RUNNING"

    @pytest.mark.asyncio
    async def test_power_state_of_missing_guest(self):
        backend, _ = backend_for({
            ("GET", "/SoftLayer_Virtual_Guest/7/getPowerState.json"): HttpError(
                404, '{"error": "Unable to find object with id of 7.", "code": "SoftLayer_Exception_ObjectNotFound"}',
            ),
        })

        with pytest.raises(ResourceNotFound):
            await backend.guests.get_state(7)

    @pytest.mark.asyncio
    async def test_active_transactions(self):
        backend, _ = backend_for({
            ("GET", "/SoftLayer_Virtual_Guest/7/getActiveTransactions.json"): [
                {"id": 1, "transactionStatus": {"name": "CLOUD_CONFIGURE"}, "createDate": "2015-02-01T10:00:00-06:00"},
            ],
        })

        operations = await backend.guests.list_pending_operations(7)

        assert len(operations) == 1
        assert operations[0].name == "CLOUD_CONFIGURE"
        assert isinstance(operations[0].created_at, datetime)

    @pytest.mark.asyncio
    async def test_apply_label_replaces_tags(self):
        backend, http = backend_for({
            ("PUT", "/SoftLayer_Virtual_Guest/7.json"): True,
            ("POST", "/SoftLayer_Virtual_Guest/7/setTags.json"): True,
        })

        await backend.guests.apply_label(7, "TEST:converge", "TEST:converge")

        assert [(m, p, b) for m, p, b, _ in http.requests] == [
            ("PUT", "/SoftLayer_Virtual_Guest/7.json", {"parameters": [{"notes": "TEST:converge"}]}),
            ("POST", "/SoftLayer_Virtual_Guest/7/setTags.json", {"parameters": ["TEST:converge"]}),
        ]

    @pytest.mark.asyncio
    async def test_delete_acknowledgement(self):
        backend, _ = backend_for({
            ("DELETE", "/SoftLayer_Virtual_Guest/7.json"): True,
            ("DELETE", "/SoftLayer_Virtual_Guest/8.json"): False,
        })

        assert await backend.guests.delete(7) is True
        assert await backend.guests.delete(8) is False

    @pytest.mark.asyncio
    async def test_list_all_uses_mask_and_parses_tags(self):
        backend, http = backend_for({
            ("GET", "/SoftLayer_Account/getVirtualGuests.json"): [
                {"id": 1, "hostname": "test", "notes": "TEST:converge",
                 "tagReferences": [{"tag": {"name": "TEST:converge"}}]},
                {"id": 2, "hostname": "prod"},
            ],
        })

        summaries = await backend.guests.list_all()

        assert [s.id for s in summaries if Marker("TEST:converge").predicate()(s)] == [1]
        assert http.requests[0][3] == {"objectMask": "mask[id;hostname;notes;tagReferences.tag.name]"}


class TestSSHKeyApi:
    @pytest.mark.asyncio
    async def test_create_parses_record(self):
        backend, _ = backend_for({
            ("POST", "/SoftLayer_Security_Ssh_Key.json"): {
                "id": 99, "key": TEST_KEY, "label": "TEST:converge", "notes": "n",
                "fingerprint": "aa:bb", "createDate": "2015-02-01T10:00:00-06:00", "modifyDate": None,
            },
        })

        record = await backend.ssh_keys.create(SSHKeySpec(key=TEST_KEY, label="TEST:converge", notes="n"))

        assert record.id == 99
        assert record.fingerprint == "aa:bb"
        assert record.create_date is not None
        assert record.modify_date is None

    @pytest.mark.asyncio
    async def test_delete_missing_key(self):
        backend, _ = backend_for({
            ("DELETE", "/SoftLayer_Security_Ssh_Key/5.json"): HttpError(404, "not found"),
        })

        with pytest.raises(ResourceNotFound):
            await backend.ssh_keys.delete(5)


class TestAccountApi:
    @pytest.mark.asyncio
    async def test_listings(self):
        backend, _ = backend_for({
            ("GET", "/SoftLayer_Account/getVirtualDiskImages.json"): [{"id": 1, "name": "disk", "capacity": 25}],
            ("GET", "/SoftLayer_Account/getNetworkStorage.json"): [{"id": 2, "username": "SL01", "capacityGb": 20, "nasType": "ISCSI"}],
            ("GET", "/SoftLayer_Account/getSshKeys.json"): [],
            ("GET", "/SoftLayer_Account/getVirtualGuests.json"): None,
        })

        images = await backend.account.get_virtual_disk_images()
        storage = await backend.account.get_network_storage()

        assert images[0].capacity == 25
        assert storage[0].storage_type == "ISCSI"
        assert await backend.account.get_ssh_keys() == []
        assert await backend.account.get_virtual_guests() == []


class TestClient:
    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        backend, http = backend_for({
            ("GET", "/SoftLayer_Virtual_Guest/7/getPowerState.json"): Replies([HttpError(503, "busy"), {"keyName": "HALTED"}]),
        })

        assert await backend.guests.get_state(7) == "HALTED"
        assert len(http.requests) == 2

    @pytest.mark.asyncio
    async def test_api_error_is_decoded(self):
        backend, _ = backend_for({
            ("GET", "/SoftLayer_Account/getSshKeys.json"): HttpError(
                401, '{"error": "Access Denied.", "code": "SoftLayer_Exception_Public"}',
            ),
        })

        with pytest.raises(SoftLayerError) as exc_info:
            await backend.account.get_ssh_keys()

        assert exc_info.value.status == 401
        assert exc_info.value.code == "SoftLayer_Exception_Public"
        assert exc_info.value.message == "Access Denied."
