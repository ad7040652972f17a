"""
Application configuration using Pydantic settings.
Loads from environment variables or .env file.

Secrets have no defaults: constructing Settings without them raises, so the
process fails at startup instead of on the first request.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "Task Tracker"
    debug: bool = False
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    # Firestore settings
    gcp_project_id: str
    google_application_credentials: str = ""
    firestore_database: str = "(default)"

    # Auth settings
    hash_secret: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"

    # Mail settings
    smtp_username: str
    smtp_password: str
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_use_ssl: bool = True
    mail_sender: str = ""

    # Scheduler settings
    scheduler_enabled: bool = True
    timezone: str = "Europe/Bucharest"
    notify_hour: int = 6
    notify_minute: int = 0

    # CORS settings - stored as a plain string, parsed by get_cors_origins()
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def get_mail_sender(self) -> str:
        """Sender address for outgoing mail, the SMTP login unless overridden."""
        return self.mail_sender or self.smtp_username

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
