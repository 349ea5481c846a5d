"""NAPWATCH — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Platform Providers ──
    provider_base_url: str = ""
    provider_timeout_seconds: float = 10.0
    provider_max_retries: int = 3
    provider_retry_base_delay: float = 2.0  # seconds, doubled per attempt

    # ── Database ──
    database_url: str = ""

    # ── Alerts ──
    alert_webhook_url: Optional[str] = None
    alert_webhook_secret: Optional[str] = None

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True

    # ── Reports ──
    report_schema_version: str = "1.0.0"

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/napwatch.db"
        return "sqlite:///./napwatch.db"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "NAPWATCH_",
        "extra": "ignore",
    }


settings = Settings()
