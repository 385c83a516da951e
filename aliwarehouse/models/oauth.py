"""
Domain models for AliExpress OAuth token persistence.
"""

from typing import Optional

from pydantic import BaseModel, Field


class OAuthTokenRecord(BaseModel):
    """Represents the token file contents.

    Expiries are absolute epoch milliseconds, the format the token file has
    always used.
    """

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: int = Field(..., description="Access token expiry, epoch ms.")
    refresh_expires_at: int = Field(..., description="Refresh token expiry, epoch ms.")
    user_id: Optional[str] = None

    def access_valid_at(self, now_ms: int, *, buffer_ms: int = 0) -> bool:
        return self.expires_at > now_ms + buffer_ms

    def refresh_valid_at(self, now_ms: int) -> bool:
        return self.refresh_expires_at > now_ms


__all__ = ["OAuthTokenRecord"]
