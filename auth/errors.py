"""
auth/errors.py -- Exception taxonomy for the auth service.

Every error carries the HTTP status it maps to and a short public message.
api/main.py registers one exception handler for AuthServiceError that turns
any of these into the {success: false, error: message} envelope.

Credential failures are deliberately undifferentiated: expired, malformed and
wrongly signed tokens, unknown public keys and bad signatures all surface as
the same Unauthorized message. Do not add sub-cause detail to the message.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    status_code: int = 500
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidRequest(AuthServiceError):
    """Malformed input, rejected before any credential is checked."""

    status_code = 400
    message = "Invalid request format."


class Unauthorized(AuthServiceError):
    status_code = 401
    message = "Unauthorized."


class InvalidToken(Unauthorized):
    """Bearer token failed to parse, verify, or carry a usable subject."""

    message = "Invalid token."


class Conflict(AuthServiceError):
    status_code = 409
    message = "Resource already exists."


class NotFound(AuthServiceError):
    status_code = 404
    message = "Resource not found."


class Internal(AuthServiceError):
    status_code = 500


class HashingError(Internal):
    message = "Failed to hash password."


class KeyGenerationError(Internal):
    message = "Failed to generate application keys."


class StorageError(Internal):
    message = "Storage failure."
