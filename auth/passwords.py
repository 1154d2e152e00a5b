"""
auth/passwords.py -- Password hashing and timing-equalized verification.

bcrypt is used directly (no passlib wrapper). Its adaptive cost makes offline
brute force of low-entropy secrets expensive; the default work factor from
bcrypt.gensalt() is used for every hash.

Passwords longer than 72 bytes are rejected by bcrypt. The API layer caps
passwords at 72 UTF-8 bytes (api/models.py) so well-formed requests never
reach that limit.

Neither the plaintext nor the hash is ever logged.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import Optional

import bcrypt

from auth.errors import HashingError

logger = logging.getLogger("tenantauth.auth")


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    Raises HashingError if the salt cannot be generated (OS random source
    unavailable) or bcrypt refuses the input.
    """
    try:
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")
    except (OSError, NotImplementedError, ValueError) as exc:
        logger.error("Password hashing failed: %s", type(exc).__name__)
        raise HashingError() from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash counts
    as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at import so the first unknown-email login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("tenantauth_timing_dummy")


def check_credentials(password_hash: Optional[str], password: str) -> bool:
    """Verify a login attempt against a possibly-missing account.

    Always runs bcrypt: against the real hash when the account exists, against
    _DUMMY_HASH when it does not. Response time therefore does not reveal
    whether the email is registered.
    """
    if password_hash is None:
        verify_password(password, _DUMMY_HASH)
        return False
    return verify_password(password, password_hash)
