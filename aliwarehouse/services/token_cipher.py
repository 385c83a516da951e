"""Fernet encryption for the token strings kept in the token file."""

from __future__ import annotations

import base64
import hashlib
from typing import Any, Dict, Iterable

from cryptography.fernet import Fernet, InvalidToken

TOKEN_FIELDS = ("access_token", "refresh_token")


class TokenDecryptionError(ValueError):
    """Raised when a stored token was encrypted with a different secret or is corrupt."""


class TokenCipherService:
    """Encrypt token fields with a Fernet key derived from ``TOKEN_ENCRYPTION_SECRET``."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise TokenDecryptionError(
                "Failed to decrypt stored token; check TOKEN_ENCRYPTION_SECRET."
            ) from exc
        return plaintext.decode("utf-8")

    def encrypt_fields(
        self, payload: Dict[str, Any], fields: Iterable[str] = TOKEN_FIELDS
    ) -> Dict[str, Any]:
        """Return a copy of ``payload`` with the named non-empty string fields encrypted."""
        result = dict(payload)
        for name in fields:
            if result.get(name):
                result[name] = self.encrypt(result[name])
        return result

    def decrypt_fields(
        self, payload: Dict[str, Any], fields: Iterable[str] = TOKEN_FIELDS
    ) -> Dict[str, Any]:
        result = dict(payload)
        for name in fields:
            if result.get(name):
                result[name] = self.decrypt(result[name])
        return result


__all__ = ["TOKEN_FIELDS", "TokenCipherService", "TokenDecryptionError"]
