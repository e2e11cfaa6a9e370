"""
Custom error classes for the application.

Every client-visible failure maps to one of these, so responses always have
the shape {success: false, code, message, errors?}.
"""
from typing import Optional


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
        details: Optional[list] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or []
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for response."""
        body = {
            "success": False,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            body["errors"] = self.details
        return body


class AuthError(AppError):
    """Authentication related errors (Unauthenticated)."""

    # Clear the token cookie on the way out
    clear_session = False

    def __init__(self, message: str, code: str = "NOT_AUTHENTICATED"):
        super().__init__(message, code, status_code=401)


class NotAuthenticatedError(AuthError):
    """No token cookie on the request."""

    def __init__(self):
        super().__init__("Not authenticated. Please sign in again.", "NOT_AUTHENTICATED")


class InvalidTokenFormatError(AuthError):
    """Token cookie is not a JSON object."""

    def __init__(self):
        super().__init__("Invalid authentication tokens", "INVALID_TOKEN_FORMAT")


class MissingAccessTokenError(AuthError):
    """Token cookie has no usable access_token."""

    def __init__(self):
        super().__init__("Invalid authentication tokens", "MISSING_ACCESS_TOKEN")


class TokenExpiredError(AuthError):
    """Token bundle expiry_date is in the past."""

    clear_session = True

    def __init__(self):
        super().__init__("Authentication expired. Please sign in again.", "TOKEN_EXPIRED")


class AuthExpiredError(AuthError):
    """Refreshing the access token failed; the client must re-consent."""

    clear_session = True

    def __init__(self):
        super().__init__("Authentication expired. Please sign in again.", "AUTH_EXPIRED")


class ValidationFailedError(AppError):
    """Malformed, oversized or malicious input."""

    def __init__(self, errors: list):
        super().__init__("Validation failed", "VALIDATION_FAILED", status_code=400, details=errors)


class CsrfError(AppError):
    """CSRF header missing or not matching the cookie."""

    def __init__(self):
        super().__init__("CSRF token validation failed", "CSRF_FAILED", status_code=403)


class RateLimitError(AppError):
    """Rate limit exceeded."""

    def __init__(self, message: str = "Too many requests. Please wait a moment.", retry_after: int = 0):
        super().__init__(message, "RATE_LIMITED", status_code=429)
        self.retry_after = retry_after


class PayloadTooLargeError(AppError):
    """Request body over the configured limit."""

    def __init__(self):
        super().__init__("Request entity too large", "PAYLOAD_TOO_LARGE", status_code=413)


class UploadRejectedError(AppError):
    """Uploaded file failed type, name, size or content checks."""

    def __init__(self, reason: str):
        super().__init__(reason, "UPLOAD_REJECTED", status_code=400)


class ProcessingError(AppError):
    """Decode or extraction failure; reported in a 200 body."""

    def __init__(self, message: str):
        super().__init__(message, "PROCESSING_ERROR", status_code=200)


class UpstreamError(AppError):
    """A third-party API call failed."""

    def __init__(self, message: str, code: str = "UPSTREAM_ERROR", upstream_status: Optional[int] = None):
        super().__init__(message, code, status_code=502)
        self.upstream_status = upstream_status


class AIError(UpstreamError):
    """AI service related errors."""

    def __init__(self, message: str = "AI processing failed. Please try again.", upstream_status: Optional[int] = None):
        super().__init__(message, "AI_ERROR", upstream_status)


class TasksAPIError(UpstreamError):
    """Google Tasks API related errors."""

    def __init__(self, message: str = "Couldn't reach Google Tasks. Please try again.", upstream_status: Optional[int] = None):
        super().__init__(message, "TASKS_API_ERROR", upstream_status)
