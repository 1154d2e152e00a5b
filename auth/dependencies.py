"""
auth/dependencies.py -- FastAPI Depends() helpers: the gate policies.

Each route uses exactly one policy:
  allow_anonymous      -- public routes, no credential        -> Anonymous
  require_developer    -- Authorization: Bearer <token>      -> DeveloperIdentity
  require_application  -- X-Public-Key/X-Signature/X-Timestamp -> ApplicationIdentity
  require_user         -- X-Session-Token on top of a signed
                          application request                -> UserIdentity

A policy either returns a typed identity, which FastAPI hands to the handler
as a parameter, or raises Unauthorized. The handler never runs after a
rejection. Nothing is stored on request.state.

require_user composes require_application: the session is resolved inside the
tenant that signed the request, so a token issued under application A never
yields a user when presented with application B's signature.

The store, token issuer and session manager come from app.state, where
api.main.lifespan put them.

Layer rule: no imports from api/ or core/.
  This module may import from fastapi because it is part of the FastAPI
  dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool

from auth.errors import Unauthorized
from auth.models import Anonymous, ApplicationIdentity, DeveloperIdentity, UserIdentity
from auth.sessions import SessionManager
from auth.signatures import PUBLIC_KEY_HEADER, SIGNATURE_HEADER, TIMESTAMP_HEADER, verify_request
from auth.store import AuthStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("tenantauth.auth")

SESSION_HEADER = "X-Session-Token"


def get_store(request: Request) -> AuthStore:
    return request.app.state.store


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def _bearer_token(request: Request) -> str | None:
    """Return the token from 'Authorization: Bearer <token>', or None if the header is absent or malformed."""
    parts = request.headers.get("Authorization", "").split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def allow_anonymous() -> Anonymous:
    """Public policy. Always succeeds; the handler knows it has no caller identity."""
    return Anonymous()


def require_developer(request: Request) -> DeveloperIdentity:
    """Developer policy.

    Use as a FastAPI dependency:
        @router.get("/applications")
        def route(identity: DeveloperIdentity = Depends(require_developer)): ...
    """
    token = _bearer_token(request)
    if token is None:
        logger.info("Bearer auth rejected on %s %s", request.method, request.url.path)
        raise Unauthorized()
    developer_id = get_token_issuer(request).validate(token)
    return DeveloperIdentity(developer_id=developer_id)


async def require_application(request: Request) -> ApplicationIdentity:
    """Application-signature policy.

    Reads the raw body to rebuild the signed payload. Starlette caches the
    body on the request, so the route's own body parsing still works.
    Only the body read runs on the event loop; the key lookup and HMAC run
    on the threadpool like every other store call.
    """
    body = await request.body()
    application = await run_in_threadpool(
        verify_request,
        get_store(request),
        public_key=request.headers.get(PUBLIC_KEY_HEADER),
        timestamp=request.headers.get(TIMESTAMP_HEADER),
        signature=request.headers.get(SIGNATURE_HEADER),
        method=request.method,
        path=request.url.path,
        body=body,
    )
    return ApplicationIdentity(application=application)


def require_user(
    request: Request,
    app_identity: ApplicationIdentity = Depends(require_application),
) -> UserIdentity:
    """Session policy, evaluated inside the signing application's tenant."""
    token = request.headers.get(SESSION_HEADER, "")
    if not token:
        logger.info("Session auth rejected on %s %s", request.method, request.url.path)
        raise Unauthorized()
    resolved = get_session_manager(request).resolve_session(token, app_identity.application.id)
    if resolved is None:
        raise Unauthorized()
    session, user = resolved
    return UserIdentity(user=user, session=session, application=app_identity.application)
