"""
auth/sessions.py -- End-user session issue, lookup and invalidation.

Session tokens are opaque: secrets.token_urlsafe(32), never derived from user
data. A session is valid iff now < expires_at. Expiry is enforced lazily at
lookup time; expired rows stay in the table until something deletes them.

lookup() distinguishes NOT_FOUND from EXPIRED for logging and tests. Callers
outside this module only ever see resolve(), which collapses both (and a
session presented under the wrong application) to None.
"""

from __future__ import annotations

import enum
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from auth.models import EndUser, Session
from auth.store import AuthStore

logger = logging.getLogger("tenantauth.auth")

DEFAULT_LIFETIME_SECONDS = 24 * 60 * 60


class SessionStatus(enum.Enum):
    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionLookup:
    status: SessionStatus
    session: Optional[Session] = None


def is_expired(session: Session, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    expires_at = datetime.fromisoformat(session.expires_at)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= now


class SessionManager:
    """Creates, resolves and invalidates end-user sessions against an AuthStore."""

    def __init__(self, store: AuthStore, lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS) -> None:
        self.store = store
        self.lifetime_seconds = lifetime_seconds

    def create(self, user_id: str, application_id: str) -> Session:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.lifetime_seconds)
        session = Session(
            id=str(uuid.uuid4()),
            user_id=user_id,
            application_id=application_id,
            token=secrets.token_urlsafe(32),
            expires_at=expires_at.isoformat(),
        )
        return self.store.create_session(session)

    def lookup(self, token: str) -> SessionLookup:
        session = self.store.get_session_by_token(token)
        if session is None:
            return SessionLookup(SessionStatus.NOT_FOUND)
        if is_expired(session):
            return SessionLookup(SessionStatus.EXPIRED, session)
        return SessionLookup(SessionStatus.VALID, session)

    def resolve_session(self, token: str, application_id: Optional[str] = None) -> Optional[tuple[Session, EndUser]]:
        """Return (session, user) for a live token, or None.

        When application_id is given, a session issued under any other
        application is treated as not found.
        """
        if not token:
            return None
        result = self.lookup(token)
        if result.status is not SessionStatus.VALID:
            logger.info("Session rejected (%s)", result.status.value)
            return None
        session = result.session
        if application_id is not None and session.application_id != application_id:
            logger.info("Session rejected (application mismatch)")
            return None
        user = self.store.get_user_by_id(session.user_id)
        if user is None or user.application_id != session.application_id:
            return None
        return session, user

    def resolve(self, token: str, application_id: Optional[str] = None) -> Optional[EndUser]:
        resolved = self.resolve_session(token, application_id)
        return resolved[1] if resolved is not None else None

    def invalidate(self, session_id: str) -> None:
        """Delete a session. Deleting one that does not exist is not an error."""
        self.store.delete_session(session_id)
