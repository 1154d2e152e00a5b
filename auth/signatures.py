"""
auth/signatures.py -- HMAC request signing for application backends.

An application's backend proves itself on every request, with no handshake,
by sending three headers:

    X-Public-Key   identifies the application
    X-Timestamp    any caller-chosen string, usually epoch milliseconds
    X-Signature    hex HMAC-SHA256(secret_key, timestamp + METHOD + path + body)

The payload is the byte-exact concatenation of the four parts with no
delimiter. path is the URL path without the query string. The timestamp is
hashed as the raw header bytes.

Comparison uses hmac.compare_digest. An unknown public key still costs one
HMAC computation against a dummy secret, and every failure raises the same
Unauthorized, so a caller cannot tell which check failed.

The timestamp is signed but never compared with the clock, and there is no
nonce cache: a captured request can be replayed. See DESIGN.md.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import TYPE_CHECKING

from auth.errors import Unauthorized
from auth.models import Application

if TYPE_CHECKING:
    from auth.store import AuthStore

logger = logging.getLogger("tenantauth.auth")

PUBLIC_KEY_HEADER = "X-Public-Key"
SIGNATURE_HEADER = "X-Signature"
TIMESTAMP_HEADER = "X-Timestamp"

_DUMMY_SECRET = "sk_timing_equalization_only"


def signing_payload(timestamp: str, method: str, path: str, body: bytes) -> bytes:
    """Concatenate the signed parts.

    Starlette decodes header values as latin-1, so encoding the timestamp back
    with latin-1 restores the exact bytes the client sent.
    """
    return timestamp.encode("latin-1") + method.upper().encode("utf-8") + path.encode("utf-8") + body


def compute_signature(secret_key: str, timestamp: str, method: str, path: str, body: bytes = b"") -> str:
    """Return the lowercase hex HMAC-SHA256 a client must send in X-Signature."""
    return hmac.new(
        secret_key.encode("utf-8"),
        signing_payload(timestamp, method, path, body),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(
    secret_key: str,
    timestamp: str,
    method: str,
    path: str,
    body: bytes,
    signature: str,
) -> bool:
    """Return True only if signature is exactly the expected hex digest (constant-time)."""
    expected = compute_signature(secret_key, timestamp, method, path, body)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def verify_request(
    store: AuthStore,
    public_key: str | None,
    timestamp: str | None,
    signature: str | None,
    method: str,
    path: str,
    body: bytes,
) -> Application:
    """Resolve and authenticate the calling application.

    Raises Unauthorized for missing headers, an unknown public key, or a
    signature mismatch -- always with the same message.
    """
    if not public_key or not timestamp or not signature:
        logger.info("Signed request rejected on %s %s", method, path)
        raise Unauthorized()

    application = store.get_application_by_public_key(public_key)
    secret = application.secret_key if application is not None else _DUMMY_SECRET
    valid = verify_signature(secret, timestamp, method, path, body, signature)
    if application is None or not valid:
        logger.info("Signed request rejected on %s %s", method, path)
        raise Unauthorized()
    return application
