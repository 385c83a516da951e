try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from typing import Dict, List

import pytest

from aliwarehouse.clients.aliexpress import ApiResult, ErrorKind
from aliwarehouse.services.country_fallback import (
    EXHAUSTED_MESSAGE,
    CountryFallbackStrategy,
)


class ScriptedClient:
    """Returns queued results per country and records every call."""

    def __init__(self, responses: Dict[str, List[ApiResult]]) -> None:
        self._responses = {country: list(items) for country, items in responses.items()}
        self.calls: List[str] = []

    async def get_product(self, product_id: str, country: str = "EE", **_: str) -> ApiResult:
        self.calls.append(country)
        return self._responses[country].pop(0)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _ok(country: str) -> ApiResult:
    return ApiResult(success=True, data={"country": country})


def _strategy(client: ScriptedClient, countries, sleep: RecordingSleep) -> CountryFallbackStrategy:
    return CountryFallbackStrategy(
        client,
        countries=countries,
        skip_delay_seconds=1.5,
        rate_limit_delay_seconds=2.0,
        sleep=sleep,
    )


@pytest.mark.anyio
async def test_unavailable_country_is_skipped_until_success() -> None:
    client = ScriptedClient(
        {
            "A": [ApiResult.failure("Product is prohibited for this destination")],
            "B": [_ok("B")],
            "C": [_ok("C")],
        }
    )
    sleep = RecordingSleep()

    result = await _strategy(client, ["A", "B", "C"], sleep).fetch_product("100")

    assert result.success
    assert result.country == "B"
    assert result.data == {"country": "B"}
    assert client.calls == ["A", "B"]
    assert sleep.delays == [1.5]
    assert [attempt.country for attempt in result.attempts] == ["A"]


@pytest.mark.anyio
async def test_unknown_error_aborts_without_trying_more_countries() -> None:
    client = ScriptedClient(
        {"A": [ApiResult.failure("Invalid signature")], "B": [_ok("B")]}
    )

    result = await _strategy(client, ["A", "B"], RecordingSleep()).fetch_product("100")

    assert not result.success
    assert result.error == "Invalid signature"
    assert result.error_kind is ErrorKind.UNKNOWN
    assert client.calls == ["A"]


@pytest.mark.anyio
async def test_rate_limit_retries_same_country_once() -> None:
    client = ScriptedClient(
        {"A": [ApiResult.failure("Api call frequency exceeded"), _ok("A")], "B": [_ok("B")]}
    )
    sleep = RecordingSleep()

    result = await _strategy(client, ["A", "B"], sleep).fetch_product("100")

    assert result.success
    assert result.country == "A"
    assert client.calls == ["A", "A"]
    assert sleep.delays == [2.0]


@pytest.mark.anyio
async def test_failed_retry_moves_to_next_country() -> None:
    client = ScriptedClient(
        {
            "A": [ApiResult.failure("frequency exceeded"), ApiResult.failure("frequency exceeded")],
            "B": [_ok("B")],
        }
    )

    result = await _strategy(client, ["A", "B"], RecordingSleep()).fetch_product("100")

    assert result.success
    assert result.country == "B"
    assert client.calls == ["A", "A", "B"]
    assert result.attempts[-1].retried


@pytest.mark.anyio
async def test_all_countries_unavailable_reports_exhaustion() -> None:
    client = ScriptedClient(
        {
            "A": [ApiResult.failure("SKU not available")],
            "B": [ApiResult.failure("product prohibited")],
        }
    )

    result = await _strategy(client, ["A", "B"], RecordingSleep()).fetch_product("100")

    assert not result.success
    assert result.error == EXHAUSTED_MESSAGE
    assert result.error_kind is ErrorKind.UNAVAILABLE
    assert len(result.attempts) == 2


def test_empty_country_list_is_rejected() -> None:
    with pytest.raises(ValueError):
        CountryFallbackStrategy(ScriptedClient({}), countries=[])
