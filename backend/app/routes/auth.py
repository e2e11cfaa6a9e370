"""
Authentication routes for Google OAuth.

OAuth Flow:
1. Browser visits GET /login → redirected to Google consent
2. User grants the Tasks and email scopes
3. Google redirects to GET /oauth2callback with code
4. Backend exchanges code for tokens, sets userTokens and csrfToken cookies
5. Backend redirects to /

Security:
- userTokens is an HTTP-only, SameSite=strict cookie (Secure in production)
- csrfToken is readable by the page, which echoes it in X-CSRF-Token
- No server-side session store; the cookie is validated on every request
"""
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse, RedirectResponse

from app.models.session import TokenBundle
from app.models.user import AccountResponse, UserResponse
from app.services.auth_service import AuthService
from app.services.session_service import (
    CSRF_COOKIE,
    clear_auth_cookies,
    client_ip,
    get_current_tokens,
    issue_csrf_cookie,
    set_token_cookie,
)
from app.utils.logger import get_logger, log_authentication

router = APIRouter()
logger = get_logger(__name__)
auth_service = AuthService()


@router.get("/login")
async def login():
    """Redirect to Google consent, forcing a refresh token."""
    return RedirectResponse(url=auth_service.get_oauth_url(prompt="consent"))


@router.get("/oauth2callback")
async def oauth_callback(request: Request, code: str = None):
    """
    Handle Google OAuth callback.

    On success both cookies are set and the browser goes back to /.
    Without a code the request is rejected with 400.
    """
    audit = {"ip": client_ip(request), "user_agent": request.headers.get("user-agent", "")}

    if not code:
        logger.warning("OAuth callback missing authorization code")
        return PlainTextResponse("Missing authorization code", status_code=400)

    try:
        tokens = await auth_service.handle_oauth_callback(code)
    except Exception as e:
        log_authentication("failed", reason="Code exchange failed", **audit)
        logger.error(f"OAuth callback failed: {e}")
        raise

    response = RedirectResponse(url="/", status_code=302)
    set_token_cookie(response, tokens)
    issue_csrf_cookie(response)

    log_authentication("success", **audit)
    return response


@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookies(response)
    logger.info("User logged out")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/switch-account")
async def switch_account(request: Request):
    """Clear cookies and send the user to Google's account chooser."""
    logger.info(f"User switching account ip={client_ip(request)}")
    response = RedirectResponse(url=auth_service.get_oauth_url(prompt="select_account"))
    clear_auth_cookies(response)
    return response


@router.post("/remove-account")
async def remove_account(request: Request, response: Response):
    logger.info(f"User removing account ip={client_ip(request)}")
    clear_auth_cookies(response)
    return {"success": True, "message": "Account removed successfully"}


@router.get("/api/account", response_model=AccountResponse)
async def get_account(tokens: TokenBundle = Depends(get_current_tokens)):
    """Get the signed-in user's Google profile."""
    profile = await auth_service.get_account(tokens)
    return AccountResponse(user=UserResponse(**profile))


@router.get("/csrf-token")
async def get_csrf_token(
    request: Request,
    response: Response,
    tokens: TokenBundle = Depends(get_current_tokens),
):
    """
    Return the CSRF token, issuing one if the cookie is missing.

    Returns:
        { success: true, csrfToken: "<64 hex chars>" }
    """
    token = request.cookies.get(CSRF_COOKIE) or issue_csrf_cookie(response)
    return {"success": True, "csrfToken": token}
