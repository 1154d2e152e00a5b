"""
auth/models.py -- Domain dataclasses for authentication entities and identities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these own the domain shape.

Two groups live here:
  Entities   -- Developer, Application, EndUser, Session: one per table.
  Identities -- the tagged variant a gate policy resolves a request to,
                discriminated by `kind`: developer, application, user or
                anonymous.
                Handlers receive exactly one of these as a typed parameter;
                nothing is attached to an untyped per-request context.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Developer:
    """A platform account that owns applications.

    password_hash never leaves the store and auth.passwords; response
    models in api/models.py omit it.
    """

    id: str
    email: str
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Application:
    """A tenant registered by a developer.

    public_key identifies the application on signed requests. secret_key is
    the HMAC key; it is shown to the owning developer and never to end users.
    Only name and domain are mutable.
    """

    id: str
    developer_id: str
    name: str
    domain: str
    public_key: str
    secret_key: str
    created_at: str = ""


@dataclass
class EndUser:
    """An identity scoped to exactly one application.

    The same email may exist under different applications as distinct users.
    """

    id: str
    application_id: str
    email: str
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    created_at: str = ""


@dataclass
class Session:
    """Opaque, time-bounded credential for an end user. Valid iff now < expires_at."""

    id: str
    user_id: str
    application_id: str
    token: str
    expires_at: str  # ISO 8601 UTC
    created_at: str = ""


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeveloperIdentity:
    developer_id: str
    kind: Literal["developer"] = "developer"


@dataclass(frozen=True)
class ApplicationIdentity:
    application: Application
    kind: Literal["application"] = "application"


@dataclass(frozen=True)
class UserIdentity:
    """An end user proven by a session token inside a signed application request."""

    user: EndUser
    session: Session
    application: Application
    kind: Literal["user"] = "user"


@dataclass(frozen=True)
class Anonymous:
    """Caller on a public route. No credential was presented or checked."""

    kind: Literal["anonymous"] = "anonymous"
