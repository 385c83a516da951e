"""
Helpers for retrieving and refreshing AliExpress OAuth tokens.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from aliwarehouse.clients.aliexpress_auth import (
    AliExpressOAuthClient,
    AuthorizationRequiredError,
    OAuthTokenExchangeError,
)
from aliwarehouse.models.oauth import OAuthTokenRecord
from aliwarehouse.services.token_store import TokenStore, TokenStoreError

logger = logging.getLogger(__name__)


class TokenState(str, enum.Enum):
    UNAUTHORIZED = "unauthorized"
    ACCESS_VALID = "access_valid"
    ACCESS_EXPIRED_REFRESH_VALID = "access_expired_refresh_valid"
    ALL_EXPIRED = "all_expired"


@dataclass(frozen=True)
class TokenStatus:
    authorized: bool
    access_token_valid: bool
    refresh_token_valid: bool
    expires_in: Optional[str]
    user_id: Optional[str] = None


def format_remaining(milliseconds: int) -> str:
    """Render a remaining duration as ``"Xh Ym"`` above one hour, else ``"Ym"``."""
    minutes = max(milliseconds, 0) // 60_000
    if minutes > 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes}m"


class AliExpressTokenService:
    """Manages access to the persisted AliExpress token pair."""

    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        store: TokenStore,
        oauth_client: AliExpressOAuthClient,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _load(self) -> Optional[OAuthTokenRecord]:
        try:
            return self._store.load()
        except TokenStoreError as exc:
            raise AuthorizationRequiredError(
                f"Stored tokens are unusable ({exc}). Re-authorization required."
            ) from exc

    def state(self, record: Optional[OAuthTokenRecord] = None) -> TokenState:
        record = record if record is not None else self._load()
        if record is None:
            return TokenState.UNAUTHORIZED
        now_ms = self._now_ms()
        buffer_ms = int(self._REFRESH_WINDOW.total_seconds() * 1000)
        if record.access_valid_at(now_ms, buffer_ms=buffer_ms):
            return TokenState.ACCESS_VALID
        if record.refresh_valid_at(now_ms):
            return TokenState.ACCESS_EXPIRED_REFRESH_VALID
        return TokenState.ALL_EXPIRED

    async def get_valid_access_token(self) -> str:
        """Return a usable access token, refreshing when inside the expiry window."""
        record = self._load()
        state = self.state(record)
        if state is TokenState.UNAUTHORIZED:
            raise AuthorizationRequiredError("No tokens found. Authorization required.")
        if state is TokenState.ACCESS_VALID:
            return record.access_token
        if state is TokenState.ACCESS_EXPIRED_REFRESH_VALID:
            logger.info("AliExpress access token expired; refreshing")
            refreshed = await self._refresh_with(record.refresh_token)
            return refreshed.access_token
        raise AuthorizationRequiredError("All tokens expired. Re-authorization required.")

    def authorization_url(self, state: Optional[str] = None) -> str:
        return self._oauth.build_authorization_url(state=state)

    async def authorize(self, code: str) -> OAuthTokenRecord:
        """Exchange an authorization code and persist the resulting tokens."""
        record = await self._oauth.exchange_authorization_code(code)
        self._store.save(record)
        logger.info("AliExpress authorization stored for user %s", record.user_id or "-")
        return record

    async def refresh(self) -> OAuthTokenRecord:
        """Force a refresh using the stored refresh token."""
        record = self._load()
        if record is None or not record.refresh_token:
            raise AuthorizationRequiredError(
                "No refresh token available. Re-authorization required."
            )
        if not record.refresh_valid_at(self._now_ms()):
            raise AuthorizationRequiredError("All tokens expired. Re-authorization required.")
        return await self._refresh_with(record.refresh_token)

    async def _refresh_with(self, refresh_token: str) -> OAuthTokenRecord:
        try:
            refreshed = await self._oauth.refresh_token(refresh_token)
            self._store.save(refreshed)
        except (OAuthTokenExchangeError, TokenStoreError) as exc:
            logger.error("AliExpress token refresh failed: %s", exc)
            raise AuthorizationRequiredError(
                f"Token refresh failed ({exc}). Re-authorization required."
            ) from exc
        return refreshed

    def status(self) -> TokenStatus:
        try:
            record = self._load()
        except AuthorizationRequiredError as exc:
            logger.warning("%s", exc)
            record = None
        if record is None:
            return TokenStatus(
                authorized=False,
                access_token_valid=False,
                refresh_token_valid=False,
                expires_in=None,
            )
        now_ms = self._now_ms()
        access_valid = record.access_valid_at(now_ms)
        return TokenStatus(
            authorized=record.refresh_valid_at(now_ms),
            access_token_valid=access_valid,
            refresh_token_valid=record.refresh_valid_at(now_ms),
            expires_in=format_remaining(record.expires_at - now_ms) if access_valid else None,
            user_id=record.user_id,
        )

    def is_authorized(self) -> bool:
        try:
            state = self.state()
        except AuthorizationRequiredError:
            return False
        return state in (
            TokenState.ACCESS_VALID,
            TokenState.ACCESS_EXPIRED_REFRESH_VALID,
        )


__all__ = [
    "AliExpressTokenService",
    "AuthorizationRequiredError",
    "TokenState",
    "TokenStatus",
    "format_remaining",
]
