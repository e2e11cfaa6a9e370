"""
In-memory rate limiting.

Fixed windows keyed by client IP and rule. Every request counts against the
"general" rule; auth, upload and task endpoints also count against their own
rule, which only keeps failed requests (successful ones are refunded).

State lives in this process only. Restarting the server resets all counters.
Expired windows are swept out at most once per SWEEP_INTERVAL, so the store
only holds clients seen within the longest window.
"""
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_settings
from app.services.session_service import client_ip
from app.utils.logger import get_logger, log_security_event
from app.utils.errors import RateLimitError

logger = get_logger(__name__)
settings = get_settings()

SWEEP_INTERVAL = 60  # seconds


@dataclass
class RateLimitRule:
    limit: int
    window: int  # seconds
    message: str
    skip_successful: bool = False


RULES: Dict[str, RateLimitRule] = {
    "general": RateLimitRule(
        *settings.rate_limit_general,
        message="Too many requests from this IP, please try again later.",
    ),
    "auth": RateLimitRule(
        *settings.rate_limit_auth,
        message="Too many authentication attempts, please try again later.",
        skip_successful=True,
    ),
    "upload": RateLimitRule(
        *settings.rate_limit_upload,
        message="Too many file uploads, please try again later.",
        skip_successful=True,
    ),
    "tasks": RateLimitRule(
        *settings.rate_limit_tasks,
        message="Too many task operations, please try again later.",
        skip_successful=True,
    ),
}

ROUTE_RULES = {
    "/login": "auth",
    "/oauth2callback": "auth",
    "/process-transcript": "upload",
    "/add-task": "tasks",
    "/process-text": "tasks",
    "/confirm-tasks": "tasks",
}


@dataclass
class RateLimitInfo:
    """Rate limit check result."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(1, int(self.reset_at - time.time()))

    def to_headers(self) -> Dict[str, str]:
        """Convert to RateLimit-* headers."""
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(max(0, self.remaining)),
            "RateLimit-Reset": str(max(0, int(self.reset_at - time.time()))),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    """
    Fixed-window counters.

    Usage:
        info = rate_limiter.hit("203.0.113.7", "auth")
        if not info.allowed:
            ...
        rate_limiter.refund("203.0.113.7", "auth")
    """

    def __init__(self, rules: Optional[Dict[str, RateLimitRule]] = None):
        self.rules = rules or RULES
        # (ip, rule) -> (window_start, count)
        self._windows: Dict[Tuple[str, str], Tuple[float, int]] = {}
        self._last_sweep: Optional[float] = None

    def hit(self, identifier: str, rule_name: str, now: Optional[float] = None) -> RateLimitInfo:
        """Count one request and report whether it is within the limit."""
        rule = self.rules[rule_name]
        now = time.time() if now is None else now
        if self._last_sweep is None or now - self._last_sweep >= SWEEP_INTERVAL:
            self._sweep(now)
        key = (identifier, rule_name)

        start, count = self._windows.get(key, (now, 0))
        if now - start >= rule.window:
            start, count = now, 0

        count += 1
        self._windows[key] = (start, count)

        return RateLimitInfo(
            allowed=count <= rule.limit,
            limit=rule.limit,
            remaining=rule.limit - count,
            reset_at=start + rule.window,
        )

    def _sweep(self, now: float) -> None:
        """Drop every window that has already ended."""
        expired = [
            key for key, (start, _) in self._windows.items()
            if now - start >= self.rules[key[1]].window
        ]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Evicted {len(expired)} expired rate limit windows")

    def refund(self, identifier: str, rule_name: str) -> None:
        """Undo one hit, for rules that skip successful requests."""
        key = (identifier, rule_name)
        if key in self._windows:
            start, count = self._windows[key]
            self._windows[key] = (start, max(0, count - 1))

    def reset(self) -> None:
        self._windows.clear()
        self._last_sweep = None


rate_limiter = RateLimiter()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply the general rule to every request and the route rule where one exists."""

    async def dispatch(self, request: Request, call_next):
        if not settings.rate_limit_enabled or request.method == "OPTIONS":
            return await call_next(request)

        ip = client_ip(request)
        rule_names = ["general"]
        route_rule = ROUTE_RULES.get(request.url.path)
        if route_rule:
            rule_names.append(route_rule)

        infos = {}
        for name in rule_names:
            info = rate_limiter.hit(ip, name)
            infos[name] = info
            if not info.allowed:
                rule = rate_limiter.rules[name]
                log_security_event(
                    "rate_limit_exceeded",
                    ip=ip,
                    user_agent=request.headers.get("user-agent", ""),
                    path=request.url.path,
                    rule=name,
                )
                error = RateLimitError(rule.message, retry_after=info.retry_after)
                return JSONResponse(
                    status_code=error.status_code,
                    content=error.to_dict(),
                    headers=info.to_headers(),
                )

        response = await call_next(request)

        for name in rule_names:
            if rate_limiter.rules[name].skip_successful and response.status_code < 400:
                rate_limiter.refund(ip, name)

        # The most specific rule is the one clients care about
        response.headers.update(infos[rule_names[-1]].to_headers())
        return response
