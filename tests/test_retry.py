import pytest

from converge.infra.http import HttpError
from converge.infra.retry import on_status_code, retry


class Flaky:
    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


@pytest.mark.asyncio
async def test_retries_matching_status_until_success():
    flaky = Flaky([HttpError(503, "busy"), HttpError(429, "slow down")])
    wrapped = retry(on=on_status_code(429, 503), base_delay=0, jitter=False)(flaky)

    assert await wrapped() == "ok"
    assert flaky.calls == 3


@pytest.mark.asyncio
async def test_does_not_retry_other_errors():
    flaky = Flaky([HttpError(400, "bad request")])
    wrapped = retry(on=on_status_code(429, 503), base_delay=0)(flaky)

    with pytest.raises(HttpError) as exc_info:
        await wrapped()

    assert exc_info.value.status == 400
    assert flaky.calls == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    flaky = Flaky([HttpError(503, "busy")] * 5)
    wrapped = retry(on=lambda e: isinstance(e, HttpError), max_attempts=3, base_delay=0)(flaky)

    with pytest.raises(HttpError):
        await wrapped()

    assert flaky.calls == 3
