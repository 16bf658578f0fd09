"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "fitsync"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Provider ---
    provider: str = "google_fit"
    google_fit_client_id: str = ""
    google_fit_client_secret: str = ""  # server-side only — never expose to client
    google_fit_refresh_token: str = ""

    # --- Sync ---
    sync_autostart: bool = False  # run start() during app startup
    sync_config_path: str | None = None  # override for the bundled sync_config.yaml

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
