"""
Configuration Management for BudgetFlow

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so it is easy to see which external
collaborators exist (storage backend, identity provider, Gemini) and so that
required values are validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Record store backend selection."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        pattern="^(json|memory|google_sheets)$",
        description="Record store backend: json, memory or google_sheets"
    )
    data_dir: str = Field(
        default=".budgetflow",
        description="Directory holding one JSON file per collection"
    )

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class FirebaseSettings(BaseSettings):
    """Firebase Authentication (identity provider) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        default="",
        description="Firebase Web API key"
    )
    auth_domain: str = Field(default="")
    project_id: str = Field(default="")
    app_id: str = Field(default="")
    auth_base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Base URL of the Firebase Auth REST API"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single identity provider call"
    )

    @property
    def is_configured(self) -> bool:
        """Placeholder keys copied from sample env files count as missing."""
        key = self.api_key.strip()
        return bool(key) and key not in {"your_firebase_api_key", "PLACEHOLDER_API_KEY"}


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

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
        default="gemini-2.5-flash",
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
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
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

    identity_backend: str = Field(
        default="firebase",
        pattern="^(firebase|local)$",
        description="Identity provider: firebase or the legacy local store"
    )

    # Insight generation
    insight_sample_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Maximum number of transactions sent to the insight generator"
    )

    currency_symbol: str = Field(
        default="₹",
        description="Symbol used when rendering amounts"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed.
    """
    results: dict = {}
    settings = get_settings()

    for name in ("storage", "google_sheets", "firebase", "gemini", "app"):
        try:
            section = getattr(settings, name)
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
            continue

        if name == "firebase" and not section.is_configured:
            results[name] = False
            results[f"{name}_error"] = "FIREBASE_API_KEY is missing or a placeholder"
        else:
            results[name] = True

    return results
