"""
Session-related Pydantic models.
"""
import time
from pydantic import BaseModel, ConfigDict
from typing import Optional


class TokenBundle(BaseModel):
    """OAuth2 credential set carried in the userTokens cookie."""
    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: Optional[str] = None
    expiry_date: Optional[int] = None  # epoch milliseconds
    scope: Optional[str] = None
    token_type: Optional[str] = None
    id_token: Optional[str] = None

    def is_expired(self, now_ms: Optional[int] = None, buffer_seconds: int = 0) -> bool:
        """True when expiry_date (less the buffer) is at or before now."""
        if self.expiry_date is None:
            return False
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return self.expiry_date - buffer_seconds * 1000 <= now_ms

    def to_cookie(self) -> str:
        """Compact JSON for the cookie value."""
        return self.model_dump_json(exclude_none=True)
