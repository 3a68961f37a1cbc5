"""Application configuration via environment variables."""
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="DOORCHECK_"
    )

    # Application
    app_name: str = "Doorcheck"
    debug: bool = False
    log_dir: Path = Path.home() / ".logs" / "doorcheck"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Durable store
    database_url: str = "sqlite:///./doorcheck.db"

    # Scanning and sync
    sync_interval_seconds: int = 5

    # Roster import
    import_timeout_seconds: float = 30.0

    # Share codes
    share_code_prefix: str = "EVT"


settings = Settings()
