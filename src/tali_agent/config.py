"""Tali Agent — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database (conversation state + mock bank data) ────
    database_url: str = "sqlite+aiosqlite:///./tali_agent.db"

    # ── Intent classifier (LUIS-style endpoint) ───────────
    intent_api_url: str = "http://localhost:8000/external/v1/luis/predict"
    intent_api_key: str = ""

    # ── Account API (Nessie-style endpoint) ───────────────
    account_api_base_url: str = "http://localhost:8000/external/v1"
    account_api_key: str = ""

    http_timeout_seconds: float = 10.0

    # ── App ───────────────────────────────────────────────
    app_name: str = "Tali"
    debug: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
