from __future__ import annotations

import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Async driver used for each supported dialect when deriving async URLs.
ASYNC_DRIVERS = {
    "postgresql": "asyncpg",
    "sqlite": "aiosqlite",
}


class Settings(BaseSettings):
    """
    Settings for the database layer and general environment.

    Reads from environment variables (or .env via pydantic-settings). Either a
    full DATABASE_URL is provided, or a PostgreSQL URL is built from:
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
    POOL_PRE_PING: bool = Field(
        default=True, description="Test pooled connections before use (default True)"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level (default INFO)")

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
        Convert base URL to an async-driver SQLAlchemy URL, required for AsyncEngine.
        Dialects without a known async driver are returned unchanged.
        """
        url = self.database_url
        match = re.match(r"^(\w+)(\+\w+)?://", url)
        if match is None or match.group(1) not in ASYNC_DRIVERS:
            return url
        dialect = match.group(1)
        return re.sub(
            r"^\w+(\+\w+)?://", f"{dialect}+{ASYNC_DRIVERS[dialect]}://", url
        )

    @property
    def sync_database_url(self) -> str:
        """
        Provide a sync URL variant by stripping any async driver tag, so the
        dialect's default blocking driver is used.
        """
        url = self.database_url
        for dialect, driver in ASYNC_DRIVERS.items():
            url = re.sub(rf"^{dialect}\+{driver}://", f"{dialect}://", url)
        return url


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return a settings object populated from the environment."""
    # Settings is cheap to construct; engines cache what they need from it.
    return Settings()
