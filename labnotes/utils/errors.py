"""Error taxonomy shared by services, blueprints and the client package."""

from __future__ import annotations

from typing import Any, Mapping, Optional


class APIError(Exception):
    """Base error carrying an error code, a user-facing message and an HTTP status."""

    code = 'SERVER_ERROR'
    status_code = 500
    default_message = 'An unexpected error occurred.'

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None,
                 status_code: Optional[int] = None, meta: Optional[Mapping[str, Any]] = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.meta = dict(meta) if meta else None
        super().__init__(self.message)


class InvalidCredentials(APIError):
    code = 'INVALID_CREDENTIALS'
    status_code = 401
    default_message = 'Invalid username or password.'


class ValidationError(APIError):
    code = 'VALIDATION_ERROR'
    status_code = 400
    default_message = 'The submitted data is invalid.'


class DuplicateUser(APIError):
    code = 'DUPLICATE_USER'
    status_code = 409
    default_message = 'Username or email already in use.'


class TokenInvalid(APIError):
    code = 'TOKEN_INVALID'
    status_code = 401
    default_message = 'Invalid or expired token.'


class TransientFailure(APIError):
    code = 'TRANSIENT_FAILURE'
    status_code = 503
    default_message = 'The service is temporarily unavailable.'


class Forbidden(APIError):
    code = 'FORBIDDEN'
    status_code = 403
    default_message = 'You do not have the necessary permissions to access this resource.'


class AccountLocked(APIError):
    code = 'ACCOUNT_LOCKED'
    status_code = 423
    default_message = 'Too many failed attempts. Try again later.'


class StorageError(APIError):
    code = 'STORAGE_ERROR'
    status_code = 502
    default_message = 'Object storage request failed.'


class NotFound(APIError):
    code = 'NOT_FOUND'
    status_code = 404
    default_message = 'The requested resource was not found.'


class MailUnconfigured(APIError):
    """Soft failure: logged by the dispatcher, never raised past it."""
    code = 'MAIL_UNCONFIGURED'
    status_code = 503
    default_message = 'Outbound mail is not configured.'
