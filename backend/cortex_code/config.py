"""Application configuration using pydantic-settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Cortex Code"
    environment: str = "development"
    log_level: str = "info"

    # Google AI (an empty key is reported per request, never at startup)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"

    # CORS
    frontend_url: str = "http://localhost:3000"

    # Chat client
    relay_url: str = "http://localhost:8000/api/generate"
    storage_path: Path = Path.home() / ".cortex_code" / "storage.json"
    ui_locale: str = "auto"
    max_pending_images: int = 5


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
