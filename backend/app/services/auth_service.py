"""
Authentication service.

This module orchestrates the OAuth flow:
1. Generate OAuth URL → google_auth
2. Handle callback → exchange code → token bundle
3. Refresh tokens before Google Tasks calls
"""
from typing import Tuple

from app.config import get_settings
from app.integrations.google_auth import (
    get_oauth_url as _get_oauth_url,
    exchange_code_for_tokens,
    get_user_info,
    refresh_access_token,
)
from app.models.session import TokenBundle
from app.utils.logger import get_logger
from app.utils.errors import AuthExpiredError

logger = get_logger(__name__)
settings = get_settings()


class AuthService:
    """
    Authentication service handling OAuth flow.

    Usage:
        auth_service = AuthService()
        url = auth_service.get_oauth_url()
        tokens = await auth_service.handle_oauth_callback(code)
        tokens, refreshed = await auth_service.ensure_fresh_tokens(tokens)
    """

    def get_oauth_url(self, prompt: str = "consent") -> str:
        """Get the Google OAuth authorization URL."""
        return _get_oauth_url(prompt)

    async def handle_oauth_callback(self, code: str) -> TokenBundle:
        """
        Exchange the authorization code for a token bundle.

        Raises:
            AuthError: If the exchange fails
        """
        tokens = await exchange_code_for_tokens(code)
        logger.info("Exchanged code for tokens")
        return tokens

    async def get_account(self, tokens: TokenBundle) -> dict:
        return await get_user_info(tokens.access_token)

    async def ensure_fresh_tokens(self, tokens: TokenBundle) -> Tuple[TokenBundle, bool]:
        """
        Refresh the access token if it is expired or about to expire.

        Returns:
            (tokens, refreshed) where tokens is a new bundle when refreshed

        Raises:
            AuthExpiredError: If the refresh fails or no refresh token is
                available for an already expired bundle
        """
        if not tokens.is_expired(buffer_seconds=settings.token_refresh_buffer_seconds):
            return tokens, False

        if not tokens.refresh_token:
            if tokens.is_expired():
                logger.warning("Token expired and no refresh token available")
                raise AuthExpiredError()
            # Still valid for now; nothing to refresh with
            return tokens, False

        logger.info("Token expired or expiring, attempting refresh")
        access_token, expiry_date = await refresh_access_token(tokens.refresh_token)

        refreshed = tokens.model_copy(update={"access_token": access_token, "expiry_date": expiry_date})
        logger.info("Token refreshed successfully")
        return refreshed, True
