"""Application configuration."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # ETABS tooling
    etabs_executable: Optional[str] = None
    etabs_cli_path: str = "etabs-cli"
    etabs_cli_timeout_seconds: float = 600.0
    etabs_close_timeout_seconds: float = 30.0

    # Projects
    working_file_name: str = "model.edb"
    default_author: Optional[str] = None


settings = Settings()
