"""
api/routes/auth.py -- Developer registration, login and profile.

Routes:
  POST /api/auth/register   -- create a developer account; returns a bearer token
  POST /api/auth/login      -- password login; returns a fresh bearer token
  GET  /api/auth/me         -- current developer profile (developer policy)

Security:
  check_credentials() provides timing equalization -- use it, never inline
  get_developer_by_email() + verify_password().
  Unknown email and wrong password return the identical 401 body.
  Cache-Control: no-store on every response that carries a token.

Register and login are plain `def` handlers: bcrypt is slow on purpose, and
FastAPI runs sync handlers on the threadpool so one hash never blocks the
event loop or other requests.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import DeveloperRegisterRequest, DeveloperResponse, LoginRequest, TokenResponse, format_timestamp
from api.responses import success
from auth.dependencies import allow_anonymous, get_store, get_token_issuer, require_developer
from auth.errors import Conflict, NotFound, Unauthorized
from auth.models import Anonymous, Developer, DeveloperIdentity
from auth.passwords import check_credentials, hash_password
from auth.tokens import IssuedToken

logger = logging.getLogger("tenantauth.api")

# Auth policy:
# - POST /api/auth/register: public (allow_anonymous)
# - POST /api/auth/login:    public (allow_anonymous)
# - GET  /api/auth/me:       requires developer bearer token (require_developer)
router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store"}
_DUPLICATE_EMAIL = "A developer with this email already exists."


def _token_response(issued: IssuedToken, status_code: int = 200) -> JSONResponse:
    return success(
        TokenResponse(token=issued.token, expires_at=format_timestamp(issued.expires_at)),
        status_code=status_code,
        headers=_NO_STORE,
    )


@router.post("/auth/register", status_code=201)
def register(
    request: Request,
    body: DeveloperRegisterRequest,
    _: Anonymous = Depends(allow_anonymous),
) -> JSONResponse:
    """Create a developer account and log it in."""
    store = get_store(request)
    if store.get_developer_by_email(body.email) is not None:
        raise Conflict(_DUPLICATE_EMAIL)

    developer = Developer(
        id=str(uuid.uuid4()),
        email=body.email,
        password_hash=hash_password(body.password),
        first_name=body.first_name,
        last_name=body.last_name,
    )
    try:
        store.create_developer(developer)
    except IntegrityError as exc:
        # A concurrent registration won the race for this email.
        raise Conflict(_DUPLICATE_EMAIL) from exc

    logger.info("Developer registered: %s", developer.id)
    return _token_response(get_token_issuer(request).issue(developer.id), status_code=201)


@router.post("/auth/login")
def login(
    request: Request,
    body: LoginRequest,
    _: Anonymous = Depends(allow_anonymous),
) -> JSONResponse:
    """Authenticate a developer with email and password; return a new bearer token."""
    developer = get_store(request).get_developer_by_email(body.email)
    if not check_credentials(developer.password_hash if developer else None, body.password):
        raise Unauthorized("Invalid credentials.")
    return _token_response(get_token_issuer(request).issue(developer.id))


@router.get("/auth/me")
def me(request: Request, identity: DeveloperIdentity = Depends(require_developer)) -> JSONResponse:
    developer = get_store(request).get_developer_by_id(identity.developer_id)
    if developer is None:
        raise NotFound("Developer not found.")
    return success(DeveloperResponse.from_developer(developer))
