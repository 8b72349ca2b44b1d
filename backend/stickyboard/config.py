from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./stickyboard.db",
        env="DATABASE_URL",
    )

    # Credentials: one signing secret per token scope
    secret_key: str = Field(default="dev-access-secret-change-me", env="SECRET_KEY")
    refresh_secret_key: str = Field(default="dev-refresh-secret-change-me", env="REFRESH_SECRET_KEY")
    board_secret_key: str = Field(default="dev-board-secret-change-me", env="BOARD_SECRET_KEY")
    board_refresh_secret_key: str = Field(
        default="dev-board-refresh-secret-change-me",
        env="BOARD_REFRESH_SECRET_KEY",
    )
    access_token_expire_seconds: int = Field(default=3600, env="ACCESS_TOKEN_EXPIRE_SECONDS")
    refresh_token_expire_seconds: int = Field(default=7 * 24 * 3600, env="REFRESH_TOKEN_EXPIRE_SECONDS")

    # HTTP
    cors_origins: list[str] = Field(default=["*"], env="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
