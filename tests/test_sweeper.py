import pytest

from converge.core.exceptions import ResourceNotFound, SweepPartialFailure
from converge.sweeper import IsolationSweeper
from converge.types import Marker
from tests.fakes import FakeGuestApi, FakeSSHKeyApi

MARKER = Marker(label="TEST:converge", notes="TEST:converge")


def populated_api(**kwargs) -> FakeGuestApi:
    api = FakeGuestApi(**kwargs)
    api.add(1, hostname="prod-db")
    api.add(2, tags=("TEST:converge",), hostname="test")
    api.add(3, notes="keep me")
    api.add(4, notes="TEST:converge run 17", hostname="test")
    api.add(5, tags=("converge",), notes="TEST:other")
    return api


class TestReclaimAll:
    @pytest.mark.asyncio
    async def test_deletes_only_matching_resources(self):
        api = populated_api()

        report = await IsolationSweeper(api).sweep(MARKER)

        assert report.matched == (2, 4)
        assert report.deleted == (2, 4)
        assert report.ok
        assert sorted(api.guests) == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_partial_failure_continues_and_names_failed_id(self):
        api = populated_api(delete_errors={2: RuntimeError("locked by transaction")})

        with pytest.raises(SweepPartialFailure) as exc_info:
            await IsolationSweeper(api).sweep(MARKER)

        err = exc_info.value
        assert list(err.failures) == [2]
        assert err.deleted == (4,)
        assert "2" in str(err)
        assert 4 not in api.guests
        assert 2 in api.guests

    @pytest.mark.asyncio
    async def test_second_sweep_performs_no_deletions(self):
        api = populated_api()
        sweeper = IsolationSweeper(api)
        await sweeper.sweep(MARKER)
        deletes_after_first = api.count("delete")

        report = await sweeper.sweep(MARKER)

        assert report.operations == 0
        assert api.count("delete") == deletes_after_first

    @pytest.mark.asyncio
    async def test_empty_match_set_is_success(self):
        api = FakeGuestApi()
        api.add(1, notes="unrelated")

        report = await IsolationSweeper(api).sweep(MARKER)

        assert report.matched == ()
        assert report.ok
        assert api.count("delete") == 0

    @pytest.mark.asyncio
    async def test_already_gone_counts_as_reclaimed(self):
        api = populated_api(delete_errors={4: ResourceNotFound(4)})

        report = await IsolationSweeper(api).sweep(MARKER)

        assert report.deleted == (2,)
        assert report.already_gone == (4,)
        assert report.ok

    @pytest.mark.asyncio
    async def test_unacknowledged_delete_of_present_resource_is_failure(self):
        api = populated_api(delete_result=False)

        with pytest.raises(SweepPartialFailure) as exc_info:
            await IsolationSweeper(api).sweep(MARKER)

        assert sorted(exc_info.value.failures) == [2, 4]

    @pytest.mark.asyncio
    async def test_unacknowledged_delete_of_vanished_resource_is_success(self):
        class VanishingApi(FakeGuestApi):
            async def delete(self, resource_id: int) -> bool:
                self.guests.pop(resource_id, None)
                return False

        api = VanishingApi()
        api.add(9, tags=("TEST:converge",))

        report = await IsolationSweeper(api).sweep(MARKER)

        assert report.already_gone == (9,)

    @pytest.mark.asyncio
    async def test_custom_predicate(self):
        api = populated_api()

        report = await IsolationSweeper(api).reclaim_all(lambda s: s.hostname == "prod-db")

        assert report.deleted == (1,)

    @pytest.mark.asyncio
    async def test_sweeps_ssh_keys_by_label(self):
        keys = FakeSSHKeyApi()
        keys.add(10, label="TEST:converge")
        keys.add(11, label="laptop")
        keys.add(12, label="TEST:converge-ci", notes="ci")

        report = await IsolationSweeper(keys, kind="ssh key").sweep(MARKER)

        assert report.deleted == (10, 12)
        assert list(keys.keys) == [11]


class TestMarker:
    def test_prefix_match(self):
        assert MARKER.matches("TEST:converge")
        assert MARKER.matches("TEST:converge run 3")
        assert not MARKER.matches("PROD TEST:converge")
        assert not MARKER.matches("")
