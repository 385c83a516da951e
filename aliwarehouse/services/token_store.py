"""
Persistence backends for AliExpress OAuth tokens.

The file backend keeps the historical token-file layout (epoch millisecond
expiries) so existing `.tokens.json` files keep working.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from aliwarehouse.models.oauth import OAuthTokenRecord
from aliwarehouse.services.token_cipher import TokenCipherService, TokenDecryptionError

logger = logging.getLogger(__name__)

_ENCRYPTED_MARKER = "encrypted"


class TokenStoreError(RuntimeError):
    """Raised when persisted tokens cannot be read or written."""


class TokenStore(Protocol):
    def load(self) -> Optional[OAuthTokenRecord]: ...

    def save(self, record: OAuthTokenRecord) -> None: ...

    def clear(self) -> None: ...


class InMemoryTokenStore:
    """Keeps the token record in process memory. Used by tests and dry runs."""

    def __init__(self, record: Optional[OAuthTokenRecord] = None) -> None:
        self._record = record
        self.saves = 0

    def load(self) -> Optional[OAuthTokenRecord]:
        return self._record

    def save(self, record: OAuthTokenRecord) -> None:
        self._record = record
        self.saves += 1

    def clear(self) -> None:
        self._record = None


class FileTokenStore:
    """JSON token file rewritten atomically on every save."""

    def __init__(
        self, path: Path | str, *, cipher: Optional[TokenCipherService] = None
    ) -> None:
        self._path = Path(path)
        self._cipher = cipher

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[OAuthTokenRecord]:
        if not self._path.exists():
            return None
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise TokenStoreError(f"Token file {self._path} is unreadable: {exc}") from exc
        if not isinstance(payload, dict):
            raise TokenStoreError(f"Token file {self._path} must contain a JSON object.")

        if payload.pop(_ENCRYPTED_MARKER, False):
            if self._cipher is None:
                raise TokenStoreError(
                    "Token file is encrypted but TOKEN_ENCRYPTION_SECRET is not configured."
                )
            try:
                payload = self._cipher.decrypt_fields(payload)
            except TokenDecryptionError as exc:
                raise TokenStoreError(str(exc)) from exc

        try:
            return OAuthTokenRecord.model_validate(payload)
        except ValidationError as exc:
            raise TokenStoreError(f"Token file {self._path} is invalid: {exc}") from exc

    def save(self, record: OAuthTokenRecord) -> None:
        payload = record.model_dump()
        if self._cipher is not None:
            payload = self._cipher.encrypt_fields(payload)
            payload[_ENCRYPTED_MARKER] = True

        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".tokens-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise TokenStoreError(f"Failed to write token file {self._path}: {exc}") from exc
        logger.info("Saved AliExpress tokens to %s", self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


__all__ = ["FileTokenStore", "InMemoryTokenStore", "TokenStore", "TokenStoreError"]
