try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from aliwarehouse.clients.aliexpress_auth import (
    AuthorizationRequiredError,
    OAuthTokenExchangeError,
)
from aliwarehouse.models.oauth import OAuthTokenRecord
from aliwarehouse.services.aliexpress_tokens import (
    AliExpressTokenService,
    TokenState,
    format_remaining,
)
from aliwarehouse.services.token_store import InMemoryTokenStore, TokenStoreError

NOW = 1_700_000_000.0
NOW_MS = int(NOW * 1000)
MINUTE_MS = 60_000


def _record(access_in_ms: int, refresh_in_ms: int = 30 * 24 * 60 * MINUTE_MS) -> OAuthTokenRecord:
    return OAuthTokenRecord(
        access_token="access-old",
        refresh_token="refresh-old",
        expires_at=NOW_MS + access_in_ms,
        refresh_expires_at=NOW_MS + refresh_in_ms,
        user_id="seller-1",
    )


class DummyOAuthClient:
    def __init__(self) -> None:
        self.refreshed_with: list[str] = []
        self.codes: list[str] = []

    def build_authorization_url(self, state=None) -> str:
        return f"https://auth.example/authorize?state={state}"

    async def refresh_token(self, refresh_token: str) -> OAuthTokenRecord:
        self.refreshed_with.append(refresh_token)
        return OAuthTokenRecord(
            access_token="access-new",
            refresh_token="refresh-new",
            expires_at=NOW_MS + 24 * 60 * MINUTE_MS,
            refresh_expires_at=NOW_MS + 48 * 60 * MINUTE_MS,
        )

    async def exchange_authorization_code(self, code: str) -> OAuthTokenRecord:
        self.codes.append(code)
        return _record(60 * MINUTE_MS)


def _service(record=None):
    store = InMemoryTokenStore(record)
    oauth = DummyOAuthClient()
    return AliExpressTokenService(store, oauth, clock=lambda: NOW), store, oauth


@pytest.mark.anyio
async def test_token_ten_minutes_ahead_is_used_without_refresh() -> None:
    service, store, oauth = _service(_record(10 * MINUTE_MS))

    assert service.state() is TokenState.ACCESS_VALID
    assert await service.get_valid_access_token() == "access-old"
    assert oauth.refreshed_with == []
    assert store.saves == 0


@pytest.mark.anyio
async def test_token_four_minutes_ahead_triggers_refresh() -> None:
    service, store, oauth = _service(_record(4 * MINUTE_MS))

    assert service.state() is TokenState.ACCESS_EXPIRED_REFRESH_VALID
    assert await service.get_valid_access_token() == "access-new"
    assert oauth.refreshed_with == ["refresh-old"]
    assert store.load().access_token == "access-new"
    assert store.saves == 1


@pytest.mark.anyio
async def test_expired_refresh_token_requires_reauthorization() -> None:
    service, _, oauth = _service(_record(-MINUTE_MS, refresh_in_ms=-MINUTE_MS))

    assert service.state() is TokenState.ALL_EXPIRED
    with pytest.raises(AuthorizationRequiredError, match="Re-authorization required"):
        await service.get_valid_access_token()
    assert oauth.refreshed_with == []


@pytest.mark.anyio
async def test_missing_tokens_require_authorization() -> None:
    service, _, _ = _service(None)

    assert not service.is_authorized()
    with pytest.raises(AuthorizationRequiredError, match="No tokens found"):
        await service.get_valid_access_token()


@pytest.mark.anyio
async def test_authorize_persists_exchanged_tokens() -> None:
    service, store, oauth = _service(None)

    record = await service.authorize("one-time-code")

    assert oauth.codes == ["one-time-code"]
    assert store.load() == record
    assert service.is_authorized()


def test_status_reports_remaining_time() -> None:
    service, _, _ = _service(_record(90 * MINUTE_MS))

    status = service.status()

    assert status.authorized
    assert status.access_token_valid
    assert status.expires_in == "1h 30m"
    assert status.user_id == "seller-1"


def test_status_without_tokens() -> None:
    service, _, _ = _service(None)
    status = service.status()
    assert not status.authorized
    assert status.expires_in is None


class RejectingOAuthClient(DummyOAuthClient):
    async def refresh_token(self, refresh_token: str) -> OAuthTokenRecord:
        self.refreshed_with.append(refresh_token)
        raise OAuthTokenExchangeError("OAuth error: refresh token invalid (IllegalRefreshToken)")


class ReadOnlyTokenStore(InMemoryTokenStore):
    def save(self, record: OAuthTokenRecord) -> None:
        raise TokenStoreError("Token file is not writable")


@pytest.mark.anyio
async def test_rejected_refresh_requires_reauthorization() -> None:
    store = InMemoryTokenStore(_record(MINUTE_MS))
    oauth = RejectingOAuthClient()
    service = AliExpressTokenService(store, oauth, clock=lambda: NOW)

    with pytest.raises(AuthorizationRequiredError, match="IllegalRefreshToken"):
        await service.get_valid_access_token()
    assert oauth.refreshed_with == ["refresh-old"]
    assert store.load().access_token == "access-old"


@pytest.mark.anyio
async def test_unsaved_refresh_requires_reauthorization() -> None:
    service = AliExpressTokenService(
        ReadOnlyTokenStore(_record(MINUTE_MS)), DummyOAuthClient(), clock=lambda: NOW
    )

    with pytest.raises(AuthorizationRequiredError, match="not writable"):
        await service.get_valid_access_token()


def test_status_with_every_token_expired_is_not_authorized() -> None:
    service, _, _ = _service(_record(-MINUTE_MS, refresh_in_ms=-MINUTE_MS))

    status = service.status()

    assert not status.authorized
    assert not status.access_token_valid
    assert not status.refresh_token_valid
    assert status.authorized == service.is_authorized()


@pytest.mark.parametrize(
    "milliseconds, expected",
    [(45 * MINUTE_MS, "45m"), (60 * MINUTE_MS, "60m"), (125 * MINUTE_MS, "2h 5m"), (-5, "0m")],
)
def test_format_remaining(milliseconds: int, expected: str) -> None:
    assert format_remaining(milliseconds) == expected
