"""
Health check endpoint.
"""
from datetime import datetime, timezone
from fastapi import APIRouter

from app.integrations.gemini_client import is_configured

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "transcript-tasks",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "version": "1.0.0",
        "gemini_configured": is_configured(),
    }
