"""
auth/errors.py -- Typed failures raised by the auth and catalog layers.

The store and service raise these; api/main.py owns the single exception
handler that turns them into the {success: false, message, code, errors?}
envelope. Nothing below knows about HTTP beyond the status code it maps to.

Unauthorized messages stay generic. Login failures use the same
message for unknown email, wrong password, and inactive accounts so the
response never reveals which one applied.
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, errors: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailure(AuthError):
    status_code = 400
    code = "validation_error"
    default_message = "Validation failed"


class Unauthorized(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required"


class TokenExpired(Unauthorized):
    """Signature was fine but the token is past its exp claim.

    Kept distinct so clients can silently refresh instead of sending the user
    back to the login form.
    """

    code = "token_expired"
    default_message = "Token expired"


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied"


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Conflict(AuthError):
    status_code = 409
    code = "conflict"
    default_message = "Email already exists"
