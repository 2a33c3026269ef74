# trakly/config.py
from pydantic_settings import BaseSettings
from typing import List, Optional
from pydantic import Field

class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24)

    DATABASE_URL: Optional[str] = None
    SQLALCHEMY_DATABASE_URL: Optional[str] = None
    SQL_ECHO: bool = Field(False)

    FRONTEND_URL: str = Field("http://localhost:3000")
    LOG_LEVEL: str = Field("INFO")

    # Google OAuth. Leave any of these empty to disable Google login.
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_CALLBACK_URL: Optional[str] = None

    # Reminder mail transport
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = Field(587)
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    # Implicit TLS (SMTP_SSL). Unset means on for port 465, off otherwise.
    SMTP_USE_SSL: Optional[bool] = None
    MAIL_FROM: Optional[str] = None
    MAIL_TIMEOUT_SECONDS: float = Field(15.0)

    # PDF uploads
    UPLOAD_DIR: str = Field("/tmp/Uploads")
    MAX_UPLOAD_BYTES: int = Field(5 * 1024 * 1024)
    PDF_TIMEOUT_SECONDS: float = Field(30.0)

    # Question extraction
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = Field("gemini-2.5-flash-lite")
    GEMINI_FALLBACK_MODEL: str = Field("gemini-2.5-flash")
    AI_TIMEOUT_SECONDS: float = Field(60.0)

    REMINDER_INTERVAL_MINUTES: int = Field(1)
    SCHEDULER_ENABLED: bool = Field(True)

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.SQLALCHEMY_DATABASE_URL or self.DATABASE_URL or "sqlite+aiosqlite:///./trakly.db"
        # Ensure asyncpg is used
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def google_oauth_enabled(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET and self.GOOGLE_CALLBACK_URL)

    @property
    def mail_enabled(self) -> bool:
        return bool(self.SMTP_HOST)

    @property
    def smtp_use_ssl(self) -> bool:
        if self.SMTP_USE_SSL is not None:
            return self.SMTP_USE_SSL
        return self.SMTP_PORT == 465

    @property
    def mail_sender(self) -> Optional[str]:
        return self.MAIL_FROM or self.SMTP_USER

    @property
    def cors_origins(self) -> List[str]:
        """
        FRONTEND_URL may hold several comma-separated origins.
        """
        return [origin.strip().rstrip("/") for origin in self.FRONTEND_URL.split(",") if origin.strip()]

settings = Settings()
