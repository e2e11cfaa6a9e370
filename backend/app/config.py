"""
Application configuration loaded from environment variables.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8000/oauth2callback"

    # Gemini AI
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"

    # Environment: "development" or "production"
    environment: str = "development"
    log_level: str = "INFO"

    # CORS
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Cookies
    cookie_max_age_seconds: int = 24 * 3600
    token_refresh_buffer_seconds: int = 300

    # Request and upload limits
    max_upload_bytes: int = 10 * 1024 * 1024
    max_request_bytes: int = 50 * 1024 * 1024
    max_json_bytes: int = 10 * 1024 * 1024

    # Action item extraction
    extraction_max_retries: int = 3
    extraction_retry_delay: float = 2.0

    # Rate limiting (requests, window seconds)
    rate_limit_enabled: bool = True
    rate_limit_general: tuple[int, int] = (100, 15 * 60)
    rate_limit_auth: tuple[int, int] = (5, 15 * 60)
    rate_limit_upload: tuple[int, int] = (10, 60 * 60)
    rate_limit_tasks: tuple[int, int] = (50, 15 * 60)

    # Google Tasks
    tasklist_id: str = "@default"
    task_notes: str = "Created via TranscriptTasks"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    # Google OAuth scopes
    @property
    def google_scopes(self) -> list[str]:
        return [
            "https://www.googleapis.com/auth/tasks",
            "https://www.googleapis.com/auth/userinfo.email",
        ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
