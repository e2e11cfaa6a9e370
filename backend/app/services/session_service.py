"""
Session management service.

This module handles:
1. Parsing and validating the userTokens cookie on every request
2. Writing and clearing the token and CSRF cookies
3. The FastAPI dependency that gates protected routes

There is no server-side session store: the token bundle lives only in the
browser cookie and is re-validated per request.
"""
import json
import secrets
from typing import Optional

from fastapi import Request, Response
from pydantic import ValidationError

from app.config import get_settings
from app.models.session import TokenBundle
from app.utils.logger import get_logger, log_authentication
from app.utils.errors import (
    InvalidTokenFormatError,
    MissingAccessTokenError,
    NotAuthenticatedError,
    TokenExpiredError,
)

logger = get_logger(__name__)
settings = get_settings()

TOKEN_COOKIE = "userTokens"
CSRF_COOKIE = "csrfToken"


def parse_token_cookie(raw: Optional[str], now_ms: Optional[int] = None) -> TokenBundle:
    """
    Parse and validate a userTokens cookie value.

    Raises (in this order of checks):
        NotAuthenticatedError: cookie absent or empty
        InvalidTokenFormatError: not a JSON object, or bad field types
        MissingAccessTokenError: access_token absent or empty
        TokenExpiredError: expiry_date at or before now
    """
    if not raw:
        raise NotAuthenticatedError()

    try:
        data = json.loads(raw)
    except ValueError:
        raise InvalidTokenFormatError()

    if not isinstance(data, dict):
        raise InvalidTokenFormatError()

    access_token = data.get("access_token")
    if not access_token or not isinstance(access_token, str):
        raise MissingAccessTokenError()

    try:
        tokens = TokenBundle.model_validate(data)
    except ValidationError:
        raise InvalidTokenFormatError()

    if tokens.is_expired(now_ms):
        raise TokenExpiredError()

    return tokens


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "strict",
        "max_age": settings.cookie_max_age_seconds,
        "path": "/",
    }


def set_token_cookie(response: Response, tokens: TokenBundle) -> None:
    """Write the token bundle cookie."""
    response.set_cookie(key=TOKEN_COOKIE, value=tokens.to_cookie(), **_cookie_options())


def issue_csrf_cookie(response: Response) -> str:
    """Generate a CSRF token and set it as a page-readable cookie."""
    token = secrets.token_hex(32)
    options = _cookie_options()
    options["httponly"] = False  # double-submit: the page echoes it in X-CSRF-Token
    response.set_cookie(key=CSRF_COOKIE, value=token, **options)
    return token


def clear_auth_cookies(response: Response) -> None:
    """Remove both auth cookies."""
    response.delete_cookie(key=TOKEN_COOKIE, path="/")
    response.delete_cookie(key=CSRF_COOKIE, path="/")


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# Dependency for protected routes
async def get_current_tokens(request: Request) -> TokenBundle:
    """
    FastAPI dependency returning the caller's validated token bundle.

    Use this as a dependency in protected routes:

        @router.post("/protected")
        async def protected_route(tokens: TokenBundle = Depends(get_current_tokens)):
            pass

    Raises:
        AuthError subclasses (401); handled by the app's exception handlers
    """
    try:
        tokens = parse_token_cookie(request.cookies.get(TOKEN_COOKIE))
    except (NotAuthenticatedError, InvalidTokenFormatError, MissingAccessTokenError, TokenExpiredError) as e:
        log_authentication(
            "failed",
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
            path=request.url.path,
            reason=e.code,
        )
        raise

    request.state.tokens = tokens
    return tokens
