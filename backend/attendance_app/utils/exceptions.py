"""Domain errors raised by services and rendered by the API error handlers."""
from typing import Any, Dict, List, Optional


class APIError(Exception):
    """Base error carrying an HTTP status code and an envelope message."""

    status_code = 500
    message = 'Internal server error'

    def __init__(self, message: str = None, status_code: int = None,
                 errors: Optional[List[Dict[str, str]]] = None, data: Any = None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        if status_code:
            self.status_code = status_code
        self.errors = errors
        self.data = data


# 400
class ValidationError(APIError):
    status_code = 400
    message = 'Validation failed'


class InactiveAccountError(ValidationError):
    message = 'Student account is inactive'


class NotInGroupError(ValidationError):
    message = 'Student does not belong to this group'


class InvalidQRCodeError(ValidationError):
    message = 'Invalid QR code data'


class QRCodeExpiredError(InvalidQRCodeError):
    message = 'QR code has expired'


# 401
class AuthenticationError(APIError):
    status_code = 401
    message = 'Authentication required'


class InvalidCredentialsError(AuthenticationError):
    message = 'Invalid email or password'


class AccountInactiveError(AuthenticationError):
    message = 'Account is deactivated'


# 403
class ForbiddenError(APIError):
    status_code = 403
    message = 'Access denied'


class NotAssignedError(ForbiddenError):
    message = 'You are not assigned to this group'


# 404
class NotFoundError(APIError):
    status_code = 404
    message = 'Resource not found'


# 409
class ConflictError(APIError):
    status_code = 409
    message = 'Resource already exists'


class DuplicateAttendanceError(ConflictError):
    message = 'Attendance already recorded for this student on this date'


# 423
class AccountLockedError(APIError):
    status_code = 423
    message = 'Account is temporarily locked due to multiple failed login attempts'
