"""
Configuration management for the Data Preparedness Suite.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Data Preparedness Suite", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # API
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    api_workers: int = Field(default=1, alias="API_WORKERS")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # Database
    database_url: str = Field(
        default="sqlite:///./dataprep_suite.db", alias="DATABASE_URL"
    )

    # Blob storage for uploaded records and generated datasets
    storage_uri: str = Field(default="file://./data/storage", alias="STORAGE_URI")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # AI Configuration
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    anthropic_model: str = Field(
        default="claude-3-haiku-20240307", alias="ANTHROPIC_MODEL"
    )
    llm_timeout_seconds: float = Field(default=30.0, alias="LLM_TIMEOUT_SECONDS")

    # Relational import
    relational_max_depth: int = Field(default=3, alias="RELATIONAL_MAX_DEPTH")
    relational_max_records: int = Field(default=100, alias="RELATIONAL_MAX_RECORDS")

    # Query context
    query_max_context_tokens: int = Field(
        default=4000, alias="QUERY_MAX_CONTEXT_TOKENS"
    )

    # Synthetic data
    synthetic_max_records: int = Field(default=100000, alias="SYNTHETIC_MAX_RECORDS")

    # Connectors
    connector_timeout_seconds: float = Field(
        default=30.0, alias="CONNECTOR_TIMEOUT_SECONDS"
    )
    query_row_limit: int = Field(
        default=1000,
        alias="QUERY_ROW_LIMIT",
        description="Maximum rows returned by ad-hoc queries against external databases.",
    )

    @property
    def cors_origin_list(self) -> List[str]:
        """CORS origins parsed from the comma-separated setting."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key or self.anthropic_api_key)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
