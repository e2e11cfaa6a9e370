"""
Security middleware, the CSRF dependency and exception handlers.

Middleware order (outermost first, see app.main):
1. RequestLoggingMiddleware → method, path, status, duration
2. SecurityHeadersMiddleware → clickjacking, sniffing, CSP, HSTS
3. RequestSizeMiddleware → 413 on oversized Content-Length
4. RateLimitMiddleware → app.middleware.rate_limit

Errors raised inside middleware never reach the app's exception handlers,
so middleware builds its JSON error responses directly.
"""
import secrets
import time
import traceback

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_settings
from app.models.session import TokenBundle
from app.services.session_service import CSRF_COOKIE, TOKEN_COOKIE, client_ip, get_current_tokens
from app.utils.logger import get_logger, log_security_event
from app.utils.errors import (
    AppError,
    AuthError,
    CsrfError,
    PayloadTooLargeError,
    RateLimitError,
    ValidationFailedError,
)

logger = get_logger(__name__)
settings = get_settings()

CSRF_HEADER = "X-CSRF-Token"

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self'; "
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
        "font-src 'self' https://fonts.gstatic.com; img-src 'self' data: https:; "
        "connect-src 'self'; frame-src 'none'; object-src 'none'"
    ),
}
HSTS_HEADER = "max-age=31536000; includeSubDomains; preload"


# =============================================================================
# CSRF
# =============================================================================

async def verify_csrf(request: Request, tokens: TokenBundle = Depends(get_current_tokens)) -> None:
    """
    Double-submit check: X-CSRF-Token must equal the csrfToken cookie.

    Depends on get_current_tokens so unauthenticated requests get 401 first.
    """
    header_token = request.headers.get(CSRF_HEADER)
    cookie_token = request.cookies.get(CSRF_COOKIE)

    if not header_token or not cookie_token:
        reason = "Missing CSRF token"
    elif not secrets.compare_digest(header_token, cookie_token):
        reason = "CSRF token mismatch"
    else:
        return

    log_security_event(
        "csrf_attempt",
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        path=request.url.path,
        reason=reason,
    )
    raise CsrfError()


# =============================================================================
# MIDDLEWARE
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = HSTS_HEADER
        return response


class RequestSizeMiddleware(BaseHTTPMiddleware):
    """Reject bodies whose declared length is over the limit."""

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length")
        if declared and declared.isdigit():
            content_type = request.headers.get("content-type", "")
            limit = settings.max_json_bytes if content_type.startswith("application/json") else settings.max_request_bytes
            if int(declared) > limit:
                logger.warning(f"Rejected {declared}-byte body on {request.url.path}")
                error = PayloadTooLargeError()
                return JSONResponse(status_code=error.status_code, content=error.to_dict())
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{duration_ms:.0f}ms ip={client_ip(request)} "
            f"user_agent={request.headers.get('user-agent', '')}"
        )
        return response


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if p != "body"]
    return ".".join(parts) or "body"


def register_exception_handlers(app: FastAPI) -> None:
    """Map AppError and request validation failures to the JSON error shape."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")

        headers = {}
        if isinstance(exc, RateLimitError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)

        response = JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
        if isinstance(exc, AuthError) and exc.clear_session:
            response.delete_cookie(key=TOKEN_COOKIE, path="/")
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
            for err in exc.errors()
        ]
        error = ValidationFailedError(errors)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        content = {"success": False, "code": "INTERNAL_ERROR", "message": "Internal server error"}
        if not settings.is_production:
            content["detail"] = str(exc)
            content["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=500, content=content)
