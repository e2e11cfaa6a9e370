"""
Google OAuth client integration.

This module handles:
1. Generating OAuth authorization URLs
2. Exchanging authorization codes for a token bundle
3. Refreshing expired access tokens
4. Fetching user profile information
"""
import time
import httpx
from typing import Optional, Tuple
from urllib.parse import urlencode

from app.config import get_settings
from app.models.session import TokenBundle
from app.utils.logger import get_logger
from app.utils.errors import AuthError, AuthExpiredError

logger = get_logger(__name__)
settings = get_settings()

# Google OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


def _expiry_from(expires_in: int) -> int:
    """Convert expires_in seconds to an absolute epoch-ms expiry."""
    return int(time.time() * 1000) + int(expires_in) * 1000


def _json_body(response: httpx.Response) -> dict:
    """Decode an OAuth JSON body; Google sometimes answers with HTML."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def get_oauth_url(prompt: str = "consent") -> str:
    """
    Generate Google OAuth authorization URL.

    Args:
        prompt: "consent" to force a refresh token, "select_account"
            when switching accounts

    Returns:
        OAuth authorization URL string
    """
    params = {
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": " ".join(settings.google_scopes),
        "access_type": "offline",  # Request refresh token
        "prompt": prompt,
        "include_granted_scopes": "true",
    }

    url = f"{GOOGLE_AUTH_URL}?{urlencode(params)}"
    logger.info(f"Generated OAuth URL (prompt={prompt})")
    return url


async def exchange_code_for_tokens(code: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> TokenBundle:
    """
    Exchange authorization code for a token bundle.

    Args:
        code: Authorization code from Google callback

    Returns:
        TokenBundle with access_token, refresh_token, expiry_date

    Raises:
        AuthError: If token exchange fails
    """
    data = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": settings.google_redirect_uri,
    }

    async with httpx.AsyncClient(transport=transport) as client:
        try:
            response = await client.post(GOOGLE_TOKEN_URL, data=data)
        except httpx.RequestError as e:
            logger.error(f"Token exchange request failed: {e}")
            raise AuthError("Failed to connect to Google for authentication", "OAUTH_ERROR")

    if response.status_code != 200:
        error_data = _json_body(response)
        logger.error(f"Token exchange failed: {error_data.get('error', response.status_code)}")
        raise AuthError(
            f"Failed to exchange code: {error_data.get('error_description', 'Unknown error')}",
            "OAUTH_ERROR",
        )

    tokens = _json_body(response)
    if not tokens.get("access_token"):
        logger.error("Token exchange returned no access token")
        raise AuthError("Failed to exchange code: malformed token response", "OAUTH_ERROR")
    logger.info("Successfully exchanged code for tokens")

    return TokenBundle(
        access_token=tokens["access_token"],
        refresh_token=tokens.get("refresh_token"),  # May not be present on re-auth
        expiry_date=_expiry_from(tokens.get("expires_in", 3600)),
        scope=tokens.get("scope"),
        token_type=tokens.get("token_type"),
        id_token=tokens.get("id_token"),
    )


async def refresh_access_token(refresh_token: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> Tuple[str, int]:
    """
    Refresh an expired access token using the refresh token.

    Args:
        refresh_token: The refresh token from initial auth

    Returns:
        Tuple of (new_access_token, expiry_date_ms)

    Raises:
        AuthExpiredError: If the refresh is rejected or Google is unreachable
    """
    data = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }

    async with httpx.AsyncClient(transport=transport) as client:
        try:
            response = await client.post(GOOGLE_TOKEN_URL, data=data)
        except httpx.RequestError as e:
            logger.error(f"Token refresh request failed: {e}")
            raise AuthExpiredError()

    if response.status_code != 200:
        error_data = _json_body(response)
        if error_data.get("error") == "invalid_grant":
            logger.warning("Refresh token revoked or expired")
        else:
            logger.error(f"Token refresh failed: {error_data}")
        raise AuthExpiredError()

    tokens = _json_body(response)
    if not tokens.get("access_token"):
        logger.error("Token refresh returned no access token")
        raise AuthExpiredError()
    logger.info("Successfully refreshed access token")

    return tokens["access_token"], _expiry_from(tokens.get("expires_in", 3600))


async def get_user_info(access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> dict:
    """
    Fetch user profile information from Google.

    Args:
        access_token: Valid Google access token

    Returns:
        Dict with email, name, picture

    Raises:
        AuthError: If request fails or token is invalid
    """
    headers = {"Authorization": f"Bearer {access_token}"}

    async with httpx.AsyncClient(transport=transport) as client:
        try:
            response = await client.get(GOOGLE_USERINFO_URL, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"User info request failed: {e}")
            raise AuthError("Failed to connect to Google for user information", "OAUTH_ERROR")

    if response.status_code == 401:
        logger.warning("Access token invalid when fetching user info")
        raise AuthError("Access token is invalid", "INVALID_ACCESS_TOKEN")

    if response.status_code != 200:
        logger.error(f"Failed to get user info: {response.status_code}")
        raise AuthError("Failed to fetch user information", "OAUTH_ERROR")

    user_data = response.json()
    return {
        "email": user_data["email"],
        "name": user_data.get("name", user_data["email"]),
        "picture": user_data.get("picture"),
    }
