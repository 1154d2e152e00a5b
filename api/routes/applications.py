"""
api/routes/applications.py -- Application CRUD for authenticated developers.

Routes (all require the developer policy):
  POST   /api/applications             -- create; generates the pk_/sk_ key pair
  GET    /api/applications             -- list the caller's applications
  GET    /api/applications/{id}        -- one application
  PUT    /api/applications/{id}        -- update name and domain
  DELETE /api/applications/{id}        -- delete with its users and sessions
  GET    /api/applications/{id}/users  -- list the application's end users

Tenant isolation: every store call passes identity.developer_id, and the
store puts it in the WHERE clause. Another developer's application id reads
exactly like a nonexistent one (404).
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import (
    ApplicationListResponse,
    ApplicationRequest,
    ApplicationResponse,
    UserListResponse,
    UserResponse,
)
from api.responses import success
from auth.dependencies import get_store, require_developer
from auth.errors import Internal, NotFound
from auth.keys import issue_keypair
from auth.models import Application, DeveloperIdentity

logger = logging.getLogger("tenantauth.api")

router = APIRouter()

_NOT_FOUND = "Application not found."


@router.post("/applications", status_code=201)
def create_application(
    request: Request,
    body: ApplicationRequest,
    identity: DeveloperIdentity = Depends(require_developer),
) -> JSONResponse:
    """Register a new application. The secret key is returned to the owner here and on reads."""
    keys = issue_keypair()
    application = Application(
        id=str(uuid.uuid4()),
        developer_id=identity.developer_id,
        name=body.name,
        domain=body.domain,
        public_key=keys.public_key,
        secret_key=keys.secret_key,
    )
    try:
        get_store(request).create_application(application)
    except IntegrityError as exc:
        raise Internal("Failed to create application.") from exc

    logger.info("Application %s created by developer %s", application.id, identity.developer_id)
    return success(ApplicationResponse.from_application(application), status_code=201)


@router.get("/applications")
def list_applications(
    request: Request,
    identity: DeveloperIdentity = Depends(require_developer),
) -> JSONResponse:
    apps = get_store(request).list_applications(identity.developer_id)
    return success(
        ApplicationListResponse(
            applications=[ApplicationResponse.from_application(a) for a in apps],
            count=len(apps),
        )
    )


@router.get("/applications/{application_id}")
def get_application(
    request: Request,
    application_id: str,
    identity: DeveloperIdentity = Depends(require_developer),
) -> JSONResponse:
    application = get_store(request).get_application(application_id, identity.developer_id)
    if application is None:
        raise NotFound(_NOT_FOUND)
    return success(ApplicationResponse.from_application(application))


@router.put("/applications/{application_id}")
def update_application(
    request: Request,
    application_id: str,
    body: ApplicationRequest,
    identity: DeveloperIdentity = Depends(require_developer),
) -> JSONResponse:
    """Change name and domain. Keys are immutable."""
    store = get_store(request)
    if not store.update_application(application_id, identity.developer_id, body.name, body.domain):
        raise NotFound(_NOT_FOUND)
    application = store.get_application(application_id, identity.developer_id)
    if application is None:
        # Deleted between the update and the re-read.
        raise NotFound(_NOT_FOUND)
    return success(ApplicationResponse.from_application(application))


@router.delete("/applications/{application_id}")
def delete_application(
    request: Request,
    application_id: str,
    identity: DeveloperIdentity = Depends(require_developer),
) -> JSONResponse:
    if not get_store(request).delete_application(application_id, identity.developer_id):
        raise NotFound(_NOT_FOUND)
    logger.info("Application %s deleted by developer %s", application_id, identity.developer_id)
    return success()


@router.get("/applications/{application_id}/users")
def list_application_users(
    request: Request,
    application_id: str,
    identity: DeveloperIdentity = Depends(require_developer),
) -> JSONResponse:
    """List end users of one of the caller's applications."""
    store = get_store(request)
    if store.get_application(application_id, identity.developer_id) is None:
        raise NotFound(_NOT_FOUND)
    users = store.list_users(application_id)
    return success(UserListResponse(users=[UserResponse.from_user(u) for u in users], count=len(users)))
