"""
API request and response models for the auth service REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format: camelCase field names (firstName, publicKey, expiresAt ...).
Every response body is wrapped in the envelope built by api.responses:
    {"success": bool, "error": str?, "data": ...?}

Password hashes have no field on any response model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Application, Developer, EndUser

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
MAX_PASSWORD_BYTES = 72


def format_timestamp(value: datetime | str) -> str:
    """Render a UTC instant as RFC 3339 with a trailing Z (2024-01-31T12:00:00Z)."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _Credentials(_CamelModel):
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        """Strip and lowercase before the pattern check. Passwords are never touched."""
        if isinstance(value, str):
            return value.strip().lower()
        return value


class LoginRequest(_Credentials):
    """Request body for POST /api/auth/login and POST /api/users/login.

    No length floor on login: a wrong password of any length is just a
    failed login, not a malformed request.
    """

    password: str = Field(min_length=1, max_length=255)


class _Registration(_Credentials):
    password: str = Field(min_length=8)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class DeveloperRegisterRequest(_Registration):
    """Request body for POST /api/auth/register."""


class UserRegisterRequest(_Registration):
    """Request body for POST /api/users/register (application-signed)."""


class ApplicationRequest(_CamelModel):
    """Request body for POST /api/applications and PUT /api/applications/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    domain: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(_CamelModel):
    """Developer bearer token and its absolute expiry."""

    model_config = ConfigDict(frozen=True)

    token: str
    expires_at: str


class SessionResponse(_CamelModel):
    """End-user session token and its absolute expiry."""

    model_config = ConfigDict(frozen=True)

    session_token: str
    expires_at: str


class DeveloperResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    created_at: str

    @classmethod
    def from_developer(cls, developer: Developer) -> "DeveloperResponse":
        return cls(
            id=developer.id,
            email=developer.email,
            first_name=developer.first_name,
            last_name=developer.last_name,
            created_at=developer.created_at,
        )


class ApplicationResponse(_CamelModel):
    """Full application record, secret key included.

    Only ever returned to the owning developer (developer policy routes).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    developer_id: str
    name: str
    domain: str
    public_key: str
    secret_key: str
    created_at: str

    @classmethod
    def from_application(cls, application: Application) -> "ApplicationResponse":
        return cls(
            id=application.id,
            developer_id=application.developer_id,
            name=application.name,
            domain=application.domain,
            public_key=application.public_key,
            secret_key=application.secret_key,
            created_at=application.created_at,
        )


class ApplicationListResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    applications: list[ApplicationResponse]
    count: int


class UserResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    application_id: str
    email: str
    first_name: str
    last_name: str
    created_at: str

    @classmethod
    def from_user(cls, user: EndUser) -> "UserResponse":
        return cls(
            id=user.id,
            application_id=user.application_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            created_at=user.created_at,
        )


class UserListResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    users: list[UserResponse]
    count: int


class HealthResponse(BaseModel):
    """Response data for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "up"
    database: str = "ok"


class ApiResponse(BaseModel):
    """Top-level envelope returned by every endpoint."""

    model_config = ConfigDict(frozen=True)

    success: bool
    error: Optional[str] = None
    data: Optional[Any] = None
