"""
Runtime settings for Flash Query.
"""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlashQuerySettings(BaseSettings):
    """
    Settings shared by the dispatcher, pagination and the ORM integration.

    Values are read from the environment (or a local ``.env`` file) and can
    be overridden by passing keyword arguments.

    Example:
        >>> FlashQuerySettings(DEFAULT_PAGE_SIZE=10).DEFAULT_PAGE_SIZE
        10
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Basic Environment ---
    DEBUG: bool = True
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # --- Pagination ---
    # PageFilter falls back to DEFAULT_PAGE_SIZE when no take is given.
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 500

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    DATABASE_URL: str | None = None
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @model_validator(mode="after")
    def validate_page_size(self) -> "FlashQuerySettings":
        """Keeps the default page size inside the permitted window."""
        if self.DEFAULT_PAGE_SIZE <= 0:
            raise ValueError("DEFAULT_PAGE_SIZE must be a positive integer.")
        if self.DEFAULT_PAGE_SIZE > self.MAX_PAGE_SIZE:
            raise ValueError("DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE.")
        return self

    def is_development(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT == "development"


# Singleton instance for core use
flash_query_settings = FlashQuerySettings()
