try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import hashlib
import hmac

import pytest

from aliwarehouse.clients.aliexpress_signing import (
    SigningError,
    canonical_string,
    sign_hmac_sha256,
    sign_md5,
    signed_params,
)

PARAMS = {
    "method": "aliexpress.ds.product.get",
    "app_key": "12345",
    "timestamp": "2024-01-01 00:00:00",
    "sign_method": "md5",
}


def test_canonical_string_sorts_keys() -> None:
    assert canonical_string({"b": "2", "a": "1", "c": True}) == "a1b2ctrue"


def test_md5_matches_known_construction() -> None:
    expected = hashlib.md5(
        ("secret" + canonical_string(PARAMS) + "secret").encode("utf-8")
    ).hexdigest().upper()
    assert sign_md5(PARAMS, "secret") == expected


def test_md5_is_deterministic_and_order_independent() -> None:
    reordered = dict(reversed(list(PARAMS.items())))
    assert sign_md5(PARAMS, "secret") == sign_md5(reordered, "secret")


def test_changing_a_value_changes_both_digests() -> None:
    changed = {**PARAMS, "app_key": "12346"}
    assert sign_md5(PARAMS, "secret") != sign_md5(changed, "secret")
    assert sign_hmac_sha256(PARAMS, "secret", "/auth/token/create") != sign_hmac_sha256(
        changed, "secret", "/auth/token/create"
    )


def test_hmac_includes_signing_path() -> None:
    params = {"app_key": "k", "code": "abc", "sign_method": "sha256", "timestamp": "1"}
    expected = hmac.new(
        b"secret",
        ("/auth/token/create" + canonical_string(params)).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest().upper()

    assert sign_hmac_sha256(params, "secret", "/auth/token/create") == expected
    assert sign_hmac_sha256(params, "secret", "/auth/token/refresh") != expected


def test_signed_params_appends_sign_and_stringifies() -> None:
    result = signed_params({**PARAMS, "page_size": 20, "force": False}, "secret")

    assert result["page_size"] == "20"
    assert result["force"] == "false"
    assert result["sign"] == sign_md5({**PARAMS, "page_size": 20, "force": False}, "secret")


def test_signed_params_uses_hmac_for_sha256() -> None:
    params = {"app_key": "k", "sign_method": "sha256", "timestamp": "1"}
    result = signed_params(params, "secret", signing_path="/auth/token/refresh")
    assert result["sign"] == sign_hmac_sha256(params, "secret", "/auth/token/refresh")


@pytest.mark.parametrize(
    "params, secret",
    [
        ({"a": "1"}, ""),
        ({"a": "1", "sign": "x"}, "secret"),
        ({"a": "1", "sign_method": "rsa"}, "secret"),
    ],
)
def test_signing_rejects_invalid_input(params, secret) -> None:
    with pytest.raises(SigningError):
        signed_params(params, secret)
