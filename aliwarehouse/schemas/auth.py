"""Schemas for the AliExpress OAuth endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Query parameters AliExpress appends when redirecting back after consent."""

    code: str = Field(..., description="Authorization code returned by AliExpress.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class TokenStatusResponse(BaseModel):
    authorized: bool
    access_token_valid: bool = Field(..., alias="accessTokenValid")
    refresh_token_valid: bool = Field(..., alias="refreshTokenValid")
    expires_in: Optional[str] = Field(None, alias="expiresIn")
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = {"populate_by_name": True}


class AuthorizationResult(BaseModel):
    success: bool = True
    message: str
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = {"populate_by_name": True}


__all__ = ["AuthorizationResult", "OAuthCallbackPayload", "TokenStatusResponse"]
