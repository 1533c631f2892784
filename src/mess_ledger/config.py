"""Configuration management for Mess Ledger."""

from decimal import Decimal
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Group used when the CLI isn't given --group
    default_group_id: str = "default"

    # Currency settings
    currency_decimals: int = Field(default=2, ge=0, le=4)  # minor-unit digits

    # Split settings
    percentage_tolerance: Decimal = Decimal("0.01")  # percentage points

    # Database path
    database_path: Path = Path.home() / ".mess_ledger" / "mess_ledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables.\n"
            f"Error: {e}"
        ) from e
