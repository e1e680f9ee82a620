"""
Application settings (Pydantic Settings).
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env next to backend/ (parent of nexus/)
_env_path = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    database_url: str = "sqlite:///./nexus.db"
    # Presence heartbeat while a session is signed in
    heartbeat_interval_seconds: int = 60
    # delete_current_user requires a sign-in newer than this
    recent_login_seconds: int = 300
    # HS256 secret for federated ID tokens and password-reset tokens (AUTH_TOKEN_SECRET in .env)
    auth_token_secret: str = "change-me"
    federated_audience: str = "nexus"
    password_reset_url: str = "http://localhost:5173/reset-password"
    # File upload endpoint (POST {upload_base_url}/api/upload-file)
    upload_base_url: str = "http://localhost:5000"
    # Device-local read markers (chat / notification badges)
    read_marker_path: str = "~/.nexus/read_markers.json"
    # Password reset mail: SMTP_USER, SMTP_PASSWORD in .env; skipped when unset
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    notify_from: str = ""
    cors_origins: str = ""

    class Config:
        env_file = _env_path
        extra = "ignore"

    @field_validator("auth_token_secret", "upload_base_url", mode="after")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("upload_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


settings = Settings()
