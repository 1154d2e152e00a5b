"""
api/routes/users.py -- End-user registration, login and session use.

Routes:
  POST /api/users/register  -- application policy; creates user + session
  POST /api/users/login     -- application policy; creates a session
  GET  /api/users/me        -- application + session policy; user profile
  POST /api/users/logout    -- application + session policy; deletes the session

Every query is scoped by the signing application's id, taken from the
ApplicationIdentity the gate resolved. The same email may exist under two
applications as two unrelated users.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import LoginRequest, SessionResponse, UserRegisterRequest, UserResponse, format_timestamp
from api.responses import success
from auth.dependencies import get_session_manager, get_store, require_application, require_user
from auth.errors import Conflict, Unauthorized
from auth.models import ApplicationIdentity, EndUser, Session, UserIdentity
from auth.passwords import check_credentials, hash_password

logger = logging.getLogger("tenantauth.api")

router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store"}
_DUPLICATE_EMAIL = "User with this email already exists."


def _session_response(session: Session, status_code: int = 200) -> JSONResponse:
    return success(
        SessionResponse(session_token=session.token, expires_at=format_timestamp(session.expires_at)),
        status_code=status_code,
        headers=_NO_STORE,
    )


@router.post("/users/register", status_code=201)
def register_user(
    request: Request,
    body: UserRegisterRequest,
    identity: ApplicationIdentity = Depends(require_application),
) -> JSONResponse:
    """Create an end user under the signing application and open a session for it."""
    store = get_store(request)
    application = identity.application
    if store.get_user_by_email(application.id, body.email) is not None:
        raise Conflict(_DUPLICATE_EMAIL)

    user = EndUser(
        id=str(uuid.uuid4()),
        application_id=application.id,
        email=body.email,
        password_hash=hash_password(body.password),
        first_name=body.first_name,
        last_name=body.last_name,
    )
    try:
        store.create_user(user)
    except IntegrityError as exc:
        raise Conflict(_DUPLICATE_EMAIL) from exc

    session = get_session_manager(request).create(user.id, application.id)
    logger.info("User %s registered under application %s", user.id, application.id)
    return _session_response(session, status_code=201)


@router.post("/users/login")
def login_user(
    request: Request,
    body: LoginRequest,
    identity: ApplicationIdentity = Depends(require_application),
) -> JSONResponse:
    """Password login for an end user of the signing application."""
    application = identity.application
    user = get_store(request).get_user_by_email(application.id, body.email)
    if not check_credentials(user.password_hash if user else None, body.password):
        raise Unauthorized("Invalid credentials.")
    session = get_session_manager(request).create(user.id, application.id)
    return _session_response(session)


@router.get("/users/me")
def current_user(identity: UserIdentity = Depends(require_user)) -> JSONResponse:
    return success(UserResponse.from_user(identity.user))


@router.post("/users/logout")
def logout_user(request: Request, identity: UserIdentity = Depends(require_user)) -> JSONResponse:
    get_session_manager(request).invalidate(identity.session.id)
    return success()
