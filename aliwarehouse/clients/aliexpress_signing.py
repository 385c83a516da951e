"""
Request signing for the AliExpress Open Platform.

Two schemes are in use: MD5 for the ``/sync`` business API and HMAC-SHA256 for
the ``/auth/token/*`` endpoints. Both sort parameters by key and concatenate
``key + value`` pairs before hashing; digests are uppercase hex.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Mapping, Union

ParamValue = Union[str, int, float, bool]


class SigningError(ValueError):
    """Raised when a request cannot be signed."""


def _stringify(value: ParamValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def canonical_string(params: Mapping[str, ParamValue]) -> str:
    """Concatenate ``key + value`` pairs in lexicographic key order."""
    if "sign" in params:
        raise SigningError("Parameters must not already contain a 'sign' key.")
    return "".join(f"{key}{_stringify(params[key])}" for key in sorted(params))


def sign_md5(params: Mapping[str, ParamValue], secret: str) -> str:
    """MD5(secret + sorted pairs + secret), uppercase hex."""
    if not secret:
        raise SigningError("App secret is required for signing.")
    payload = f"{secret}{canonical_string(params)}{secret}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest().upper()


def sign_hmac_sha256(
    params: Mapping[str, ParamValue], secret: str, signing_path: str = ""
) -> str:
    """HMAC-SHA256(secret, signing_path + sorted pairs), uppercase hex."""
    if not secret:
        raise SigningError("App secret is required for signing.")
    payload = f"{signing_path}{canonical_string(params)}"
    digest = hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256)
    return digest.hexdigest().upper()


def signed_params(
    params: Mapping[str, ParamValue],
    secret: str,
    *,
    signing_path: str | None = None,
) -> dict[str, str]:
    """Return a copy of ``params`` stringified with the ``sign`` field appended.

    The signing scheme follows the declared ``sign_method``; ``signing_path``
    is only meaningful for the HMAC scheme.
    """
    method = str(params.get("sign_method", "md5")).lower()
    if method == "md5":
        sign = sign_md5(params, secret)
    elif method in ("sha256", "hmac-sha256", "hmac_sha256"):
        sign = sign_hmac_sha256(params, secret, signing_path or "")
    else:
        raise SigningError(f"Unsupported sign_method {method!r}.")
    result = {key: _stringify(value) for key, value in params.items()}
    result["sign"] = sign
    return result


__all__ = [
    "ParamValue",
    "SigningError",
    "canonical_string",
    "sign_hmac_sha256",
    "sign_md5",
    "signed_params",
]
