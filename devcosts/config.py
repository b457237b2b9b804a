from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./devcosts.db"
    secret_key: str
    algorithm: str = "HS256"

    # Credential vault: base64-encoded 32-byte AES key
    encryption_key: str = ""

    # Shared bearer secret for the scheduled sync/alert endpoints
    cron_secret: str = ""

    # Provider sync settings
    http_timeout_seconds: float = 30.0
    manual_sync_days: int = 30
    scheduled_sync_days: int = 7

    # Alert settings
    alert_cooldown_hours: int = 24

    # SMTP settings for alert emails
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""

    app_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
