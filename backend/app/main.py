"""
FastAPI application entry point.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.security import (
    RequestLoggingMiddleware,
    RequestSizeMiddleware,
    SecurityHeadersMiddleware,
    register_exception_handlers,
)
from app.routes import auth, health, tasks, transcripts
from app.utils.logger import setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="TranscriptTasks",
    description="Turn meeting transcripts into Google Tasks",
    version="1.0.0",
)

# Get settings
settings = get_settings()

# The last middleware added is the outermost
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestSizeMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-CSRF-Token", "X-Requested-With"],
    max_age=86400,
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, tags=["Authentication"])
app.include_router(transcripts.router, tags=["Transcripts"])
app.include_router(tasks.router, tags=["Tasks"])


@app.get("/")
async def root():
    """Service info."""
    return {
        "message": "TranscriptTasks API",
        "docs": "/docs",
        "health": "/health",
    }
