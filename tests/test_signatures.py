"""
tests/test_signatures.py -- Unit tests for HMAC request signing.

Covers:
  - compute_signature matches a hand-built HMAC-SHA256 over the concatenation
  - a one-byte change in timestamp, method, path or body causes rejection
  - wrong secret key is rejected
  - verify_request: missing headers, unknown key and bad signature all raise
    the same Unauthorized
  - stale timestamps are accepted (no replay window)
"""

from __future__ import annotations

import hashlib
import hmac

import pytest

from auth.errors import Unauthorized
from auth.models import Application
from auth.signatures import compute_signature, signing_payload, verify_request, verify_signature
from auth.store import AuthStore

SECRET = "sk_test_secret_value_for_signing_0001"
TS = "1700000000000"
METHOD = "POST"
PATH = "/api/users/login"
BODY = b'{"email":"u@x.com","password":"pw123456"}'


def _flip_first(value: str) -> str:
    return chr(ord(value[0]) ^ 1) + value[1:]


@pytest.fixture
def application(store: AuthStore) -> Application:
    app = Application(
        id="app-1",
        developer_id="dev-1",
        name="Demo",
        domain="demo.example.com",
        public_key="pk_test_public_value_0001",
        secret_key=SECRET,
    )
    return store.create_application(app)


class TestComputeSignature:
    def test_payload_is_plain_concatenation(self) -> None:
        assert signing_payload(TS, METHOD, PATH, BODY) == TS.encode() + b"POST" + PATH.encode() + BODY

    def test_timestamp_hashed_as_raw_header_bytes(self) -> None:
        # "é" sent as UTF-8 arrives from Starlette as two latin-1 characters.
        raw = "é1700000000".encode("utf-8")
        header_value = raw.decode("latin-1")
        assert signing_payload(header_value, METHOD, PATH, b"").startswith(raw + b"POST")

    def test_matches_reference_hmac(self) -> None:
        expected = hmac.new(SECRET.encode(), (TS + METHOD + PATH).encode() + BODY, hashlib.sha256).hexdigest()
        assert compute_signature(SECRET, TS, METHOD, PATH, BODY) == expected

    def test_exact_digest_accepted(self) -> None:
        sig = compute_signature(SECRET, TS, METHOD, PATH, BODY)
        assert verify_signature(SECRET, TS, METHOD, PATH, BODY, sig)


class TestTamperedComponents:
    """Changing any single part of the signed payload must break verification."""

    @pytest.fixture
    def signature(self) -> str:
        return compute_signature(SECRET, TS, METHOD, PATH, BODY)

    def test_timestamp_changed(self, signature: str) -> None:
        assert not verify_signature(SECRET, _flip_first(TS), METHOD, PATH, BODY, signature)

    def test_method_changed(self, signature: str) -> None:
        assert not verify_signature(SECRET, TS, "PUT", PATH, BODY, signature)

    def test_path_changed(self, signature: str) -> None:
        assert not verify_signature(SECRET, TS, METHOD, _flip_first(PATH), BODY, signature)

    def test_body_changed(self, signature: str) -> None:
        tampered = bytes([BODY[0] ^ 1]) + BODY[1:]
        assert not verify_signature(SECRET, TS, METHOD, PATH, tampered, signature)

    def test_wrong_secret(self, signature: str) -> None:
        assert not verify_signature("sk_some_other_secret", TS, METHOD, PATH, BODY, signature)

    def test_non_ascii_signature_is_rejected_not_raised(self) -> None:
        assert not verify_signature(SECRET, TS, METHOD, PATH, BODY, "é" * 64)


class TestVerifyRequest:
    def test_valid_request_returns_application(self, store: AuthStore, application: Application) -> None:
        sig = compute_signature(SECRET, TS, METHOD, PATH, BODY)
        resolved = verify_request(store, application.public_key, TS, sig, METHOD, PATH, BODY)
        assert resolved.id == application.id

    @pytest.mark.parametrize("missing", ["public_key", "timestamp", "signature"])
    def test_missing_header(self, store: AuthStore, application: Application, missing: str) -> None:
        args = {
            "public_key": application.public_key,
            "timestamp": TS,
            "signature": compute_signature(SECRET, TS, METHOD, PATH, BODY),
        }
        args[missing] = None
        with pytest.raises(Unauthorized) as exc_info:
            verify_request(store, method=METHOD, path=PATH, body=BODY, **args)
        assert exc_info.value.message == Unauthorized.message

    def test_unknown_public_key(self, store: AuthStore, application: Application) -> None:
        sig = compute_signature(SECRET, TS, METHOD, PATH, BODY)
        with pytest.raises(Unauthorized) as exc_info:
            verify_request(store, "pk_does_not_exist", TS, sig, METHOD, PATH, BODY)
        assert exc_info.value.message == Unauthorized.message

    def test_bad_signature(self, store: AuthStore, application: Application) -> None:
        sig = compute_signature("sk_wrong", TS, METHOD, PATH, BODY)
        with pytest.raises(Unauthorized) as exc_info:
            verify_request(store, application.public_key, TS, sig, METHOD, PATH, BODY)
        assert exc_info.value.message == Unauthorized.message

    def test_stale_timestamp_still_accepted(self, store: AuthStore, application: Application) -> None:
        """The timestamp is signed but not checked against the clock."""
        old = "1"
        sig = compute_signature(SECRET, old, METHOD, PATH, BODY)
        assert verify_request(store, application.public_key, old, sig, METHOD, PATH, BODY).id == application.id
