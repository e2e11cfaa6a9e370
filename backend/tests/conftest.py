"""
Pytest fixtures for TranscriptTasks backend tests.
"""
import json
import time

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.middleware.rate_limit import rate_limiter

CSRF_TOKEN = "a" * 64


def cookie_value(tokens: dict) -> str:
    return json.dumps(tokens, separators=(",", ":"))


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Each test starts with empty rate limit windows."""
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def valid_tokens():
    """A token bundle that expires in an hour."""
    return {
        "access_token": "ya29.mock-access-token",
        "refresh_token": "1//mock-refresh-token",
        "expiry_date": int(time.time() * 1000) + 3600 * 1000,
        "scope": "https://www.googleapis.com/auth/tasks",
        "token_type": "Bearer",
    }


@pytest.fixture
def expired_tokens(valid_tokens):
    return {**valid_tokens, "expiry_date": int(time.time() * 1000) - 60 * 1000}


@pytest.fixture
def csrf_token():
    return CSRF_TOKEN


@pytest.fixture
def make_headers():
    """Build Cookie and CSRF headers for a token bundle."""
    def _make(tokens=None, csrf=CSRF_TOKEN, header=CSRF_TOKEN):
        cookies = []
        if tokens is not None:
            cookies.append(f"userTokens={cookie_value(tokens)}")
        if csrf:
            cookies.append(f"csrfToken={csrf}")
        headers = {"Cookie": "; ".join(cookies)}
        if header:
            headers["X-CSRF-Token"] = header
        return headers
    return _make


@pytest.fixture
def auth_headers(make_headers, valid_tokens):
    """Cookie and CSRF headers for an authenticated request."""
    return make_headers(valid_tokens)


@pytest.fixture
def pdf_bytes():
    """Smallest content that passes the signature and marker checks."""
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


@pytest.fixture
def fallback_transcript():
    return "John: I'll review the budget by Friday. Sarah: I need to schedule a meeting."
