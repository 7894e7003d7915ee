from __future__ import annotations

import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Database settings.

    Reads from environment variables (or .env via pydantic-settings). Either a
    full DATABASE_URL or the individual POSTGRES_* parts:
      - POSTGRES_USER
      - POSTGRES_PASSWORD
      - POSTGRES_DB
      - POSTGRES_HOST
      - POSTGRES_PORT
    """

    DATABASE_URL: Optional[str] = Field(
        default=None, description="If provided, full SQLAlchemy connection URL."
    )
    POSTGRES_USER: Optional[str] = Field(default=None, description="DB username")
    POSTGRES_PASSWORD: Optional[str] = Field(default=None, description="DB password")
    POSTGRES_DB: Optional[str] = Field(default=None, description="Database name")
    POSTGRES_PORT: Optional[int] = Field(
        default=5432, description="Database port (default 5432)"
    )
    POSTGRES_HOST: Optional[str] = Field(
        default="localhost", description="Database host (default localhost)"
    )

    # SQLAlchemy engine options
    SQL_ECHO: bool = Field(
        default=False, description="Echo SQL statements for debugging (default False)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def database_url(self) -> str:
        """
        Compute the base database URL. Will prefer DATABASE_URL if present,
        otherwise construct a PostgreSQL URL from individual POSTGRES_* variables.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if not all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_DB]):
            raise ValueError(
                "Database configuration missing. Ensure DATABASE_URL or "
                "POSTGRES_USER, POSTGRES_PASSWORD, and POSTGRES_DB are set in the environment."
            )
        host = self.POSTGRES_HOST or "localhost"
        port = self.POSTGRES_PORT or 5432
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{host}:{port}/{self.POSTGRES_DB}"

    @property
    def async_database_url(self) -> str:
        """
        Convert the base URL to an async driver URL, required for AsyncEngine.

        postgresql:// becomes postgresql+asyncpg:// and sqlite:// becomes
        sqlite+aiosqlite://; URLs that already name a driver are kept.
        """
        url = self.database_url
        if url.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            return url
        if url.startswith("sqlite"):
            return re.sub(r"^sqlite(\+\w+)?://", "sqlite+aiosqlite://", url)
        return re.sub(r"^postgres(?:ql)?(\+\w+)?://", "postgresql+asyncpg://", url)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return a settings object populated from the environment."""
    return Settings()
