"""
AliExpress OAuth utilities.

These helpers build the seller authorization URL and talk to the IOP token
endpoints (`/auth/token/create`, `/auth/token/refresh`).
"""

from __future__ import annotations

import base64
import hmac
import json
import time
from hashlib import sha256
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException, status

from aliwarehouse.clients.aliexpress_signing import signed_params
from aliwarehouse.core.config import AliExpressSettings
from aliwarehouse.models.oauth import OAuthTokenRecord

DEFAULT_ACCESS_TTL_SECONDS = 2_592_000
DEFAULT_REFRESH_TTL_SECONDS = 5_184_000


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed OAuth state.",
            ) from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid OAuth state signature.",
            )
        return json.loads(serialized)


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class AuthorizationRequiredError(Exception):
    """Raised when no usable token exists and an operator must re-authorize."""


class AliExpressOAuthClient:
    """Build authorization URLs and exchange or refresh AliExpress tokens."""

    CREATE_PATH = "/auth/token/create"
    REFRESH_PATH = "/auth/token/refresh"

    def __init__(
        self,
        settings: AliExpressSettings,
        *,
        clock: Callable[[], float] = time.time,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._transport = transport

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Construct the seller consent URL."""
        params = {
            "response_type": "code",
            "force_auth": "true",
            "client_id": self._settings.app_key,
            "redirect_uri": str(self._settings.callback_url),
        }
        if state:
            params["state"] = state
        return f"{self._settings.auth_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> OAuthTokenRecord:
        """Exchange a one-time authorization code for a token record."""
        if not code:
            raise OAuthTokenExchangeError("Authorization code is required.")
        return await self._token_call(self.CREATE_PATH, {"code": code})

    async def refresh_token(self, refresh_token: str) -> OAuthTokenRecord:
        """Obtain a fresh token pair using a stored refresh token."""
        return await self._token_call(self.REFRESH_PATH, {"refresh_token": refresh_token})

    async def _token_call(self, path: str, extra: Dict[str, str]) -> OAuthTokenRecord:
        now_ms = int(self._clock() * 1000)
        params = signed_params(
            {
                "app_key": self._settings.app_key,
                "timestamp": str(now_ms),
                "sign_method": "sha256",
                **extra,
            },
            self._settings.app_secret,
            signing_path=path,
        )
        url = f"{self._settings.rest_url.rstrip('/')}{path}"

        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            try:
                response = await client.post(url, data=params)
            except httpx.HTTPError as exc:
                raise OAuthTokenExchangeError(f"Token endpoint unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError(
                f"Token endpoint returned non-JSON response ({response.status_code})."
            ) from exc

        return self._parse_token_payload(payload, now_ms)

    @staticmethod
    def _parse_token_payload(payload: Dict[str, Any], now_ms: int) -> OAuthTokenRecord:
        error = payload.get("error_response")
        code = payload.get("code")
        if error or (code is not None and str(code) != "0"):
            message = payload.get("message") or (error or {}).get("msg") or "unknown error"
            raise OAuthTokenExchangeError(f"OAuth error: {message} ({code})")

        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        if not access_token or not refresh_token:
            raise OAuthTokenExchangeError("Incomplete token payload returned from AliExpress.")

        expires_at = payload.get("expire_time") or (
            now_ms + int(payload.get("expires_in") or DEFAULT_ACCESS_TTL_SECONDS) * 1000
        )
        refresh_expires_at = payload.get("refresh_token_valid_time") or (
            now_ms
            + int(payload.get("refresh_expires_in") or DEFAULT_REFRESH_TTL_SECONDS) * 1000
        )
        user_id = payload.get("user_id") or payload.get("seller_id")

        return OAuthTokenRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=int(expires_at),
            refresh_expires_at=int(refresh_expires_at),
            user_id=str(user_id) if user_id else None,
        )


__all__ = [
    "AliExpressOAuthClient",
    "AuthorizationRequiredError",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
]
