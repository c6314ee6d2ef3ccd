"""
Pydantic Settings — centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──────────────────────────────
    POSTGRES_USER: str = "workflow_user"
    POSTGRES_PASSWORD: str = "workflow_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "workflow_db"

    # Full async URL; takes precedence over the POSTGRES_* parts (tests use sqlite)
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Redis / Celery ────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Blob Storage ──────────────────────────
    # Temporary hand-off area for extracted JSON too large for a request body
    STORAGE_ENDPOINT: str = "http://localhost:9000"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_BUCKET_NAME: str = "pdfs"

    # ── Outbound HTTP ─────────────────────────
    # Transport timeout per request; 0 disables it
    HTTP_TIMEOUT_SECONDS: float = 120.0
    HTTP_VERIFY_SSL: bool = True

    # ── Email Providers ───────────────────────
    OFFICE365_TOKEN_URL_TEMPLATE: str = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
    OFFICE365_GRAPH_URL: str = "https://graph.microsoft.com/v1.0"
    GMAIL_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GMAIL_SEND_URL: str = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    # Write the full context into the execution log after every step
    LOG_CONTEXT_SNAPSHOTS: bool = True

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
