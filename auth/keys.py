"""
auth/keys.py -- Application signing-key pair generation.

Each application gets a public key (identifies it on signed requests) and a
secret key (the HMAC key). Both are 32 bytes from the secrets module,
rendered as unpadded URL-safe base64 (43 chars) and prefixed with a role tag
so the two are never mistaken for each other:

    pk_<43 chars>   public
    sk_<43 chars>   secret

Keys are generated once, at application creation. There is no rotation.
"""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass

from auth.errors import KeyGenerationError

PUBLIC_KEY_PREFIX = "pk_"
SECRET_KEY_PREFIX = "sk_"
KEY_BYTES = 32


@dataclass(frozen=True)
class KeyPair:
    public_key: str
    secret_key: str


def generate_key(prefix: str, length: int = KEY_BYTES) -> str:
    """Return prefix + URL-safe base64 of `length` random bytes, padding stripped."""
    try:
        raw = secrets.token_bytes(length)
    except (OSError, NotImplementedError) as exc:
        raise KeyGenerationError() from exc
    return prefix + base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def issue_keypair() -> KeyPair:
    return KeyPair(
        public_key=generate_key(PUBLIC_KEY_PREFIX),
        secret_key=generate_key(SECRET_KEY_PREFIX),
    )
