"""
Domain errors raised by services.

Each error carries the HTTP status and a machine-readable code; the
application turns them into JSON responses in one handler.
"""


class ForumError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = 400
    code: str = "FORUM_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class InvalidOperationError(ForumError):
    status_code = 400
    code = "INVALID_OPERATION"


class AuthenticationError(ForumError):
    status_code = 401
    code = "AUTH_FAILED"


class PermissionDeniedError(ForumError):
    status_code = 403
    code = "PERMISSION_DENIED"


class NotFoundError(ForumError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ForumError):
    status_code = 409
    code = "CONFLICT"


class DeliveryError(ForumError):
    """Outbound delivery (email) failed."""

    status_code = 500
    code = "DELIVERY_FAILED"
