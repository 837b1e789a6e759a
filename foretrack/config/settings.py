"""
Configuration Management for Foretrack

Settings come from environment variables (and an optional .env file)
through pydantic-settings.

All configuration is centralized here so every external dependency
(Gemini, Google Sheets) and every tunable analytics constant is visible
in one place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Where records live when the hosted backend is used."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per record kind
    expenses_sheet_name: str = Field(default="Expenses")
    incomes_sheet_name: str = Field(default="Incomes")
    budgets_sheet_name: str = Field(default="Budgets")
    categories_sheet_name: str = Field(default="Categories")
    preferences_sheet_name: str = Field(default="UserSettings")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing file only warns; secrets are often mounted after import."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account file {v} does not exist yet; "
                "Sheets storage will be unavailable until it does."
            )
        return v


class GeminiSettings(BaseSettings):
    """Assistant model configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )


class AppSettings(BaseSettings):
    """
    Behaviour of the app itself: defaults, analytics tunables and
    assistant request limits.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Identity
    default_user_id: Optional[str] = Field(
        default=None,
        description="User id to use when no interactive sign-in is available"
    )

    # Money
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code for new records"
    )

    # Analytics
    default_time_range: str = Field(
        default="month",
        pattern="^(week|month|quarter|year)$",
        description="Time range shown when the analytics page opens"
    )
    top_categories_limit: int = Field(
        default=5,
        ge=1,
        le=20,
        description="How many categories the ranking keeps"
    )
    budget_warning_threshold: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Utilization percent above which a budget is in the warning band"
    )
    transactions_page_size: int = Field(
        default=15,
        ge=1,
        le=100,
        description="Rows per page on the transactions listing"
    )
    storage_batch_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Rows requested per storage call when reading whole ranges"
    )

    # AI request limits
    max_description_length: int = Field(default=500, ge=1)
    max_message_length: int = Field(default=1000, ge=1)
    max_expenses_per_request: int = Field(default=500, ge=1)
    max_budgets_per_request: int = Field(default=50, ge=1)

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class Settings(BaseSettings):
    """
    Entry point for every settings section.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings. Tests call get_settings.cache_clear() after
    changing the environment.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try loading every section.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries for the sections that failed. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    sections = {
        "google_sheets": lambda: settings.google_sheets,
        "gemini": lambda: settings.gemini,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
