"""
auth/tokens.py -- Developer bearer tokens (JWT).

Security design decisions:
  python-jose with HS256. Tokens are signed with SECRET_KEY and carry only the
  developer id (sub), the issue time (iat) and an absolute expiry (exp).

  Validation pins the algorithm twice: the unverified header must say HS256
  before any key is used, and jwt.decode() is given algorithms=["HS256"].
  Tokens declaring "none", RS256 or anything else are rejected, which closes
  the algorithm-substitution hole.

  Every failure -- malformed, wrong signature, expired, missing subject --
  raises the same InvalidToken. Callers must not try to tell them apart.

  The issuer is constructed from Settings in api.main.lifespan; no module
  reads the secret at import time.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import InvalidToken

logger = logging.getLogger("tenantauth.auth")

ALGORITHM = "HS256"
DEFAULT_LIFETIME_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenIssuer:
    """Issues and validates developer bearer tokens.

    Usage:
        issuer = TokenIssuer(settings.secret_key, settings.token_expire_seconds)
        issued = issuer.issue(developer.id)
        developer_id = issuer.validate(issued.token)
    """

    def __init__(self, secret_key: str, lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.lifetime_seconds = lifetime_seconds

    def issue(self, developer_id: str, expire_seconds: int = 0) -> IssuedToken:
        """Encode a signed JWT for developer_id.

        expire_seconds overrides the configured lifetime when positive.
        """
        duration = expire_seconds if expire_seconds > 0 else self.lifetime_seconds
        now = datetime.now(timezone.utc)
        expire = now + timedelta(seconds=duration)
        payload = {
            "sub": developer_id,
            "iat": now,
            "exp": expire,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_at=expire)

    def validate(self, token: str) -> str:
        """Verify a JWT and return its subject (the developer id).

        Raises InvalidToken on any failure.
        """
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != ALGORITHM:
                raise InvalidToken()
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError as exc:
            raise InvalidToken() from exc

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidToken()
        if "exp" not in payload:
            raise InvalidToken()
        return subject
