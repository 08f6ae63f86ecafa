"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string for the export source and job records",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Batch export
    batch_chunk_size: int = Field(
        default=1000,
        description="Rows per committed chunk",
        gt=0,
    )
    batch_page_size: int = Field(
        default=100,
        description="Rows fetched per page query",
        gt=0,
    )
    batch_base_query: str = Field(
        default="SELECT id, name, email FROM users",
        description="Base SELECT statement; only its projection and FROM clause are used",
    )
    batch_default_where_clause: str = Field(
        default="",
        description="Filter applied when a launch supplies none (empty exports all rows)",
    )
    batch_sort_key: str = Field(
        default="id",
        description="Column used for stable ascending pagination",
    )
    batch_fields: str = Field(
        default="id,name,email",
        description="Comma-separated output fields, in column order",
    )

    @field_validator("batch_base_query")
    @classmethod
    def validate_batch_base_query(cls, v: str) -> str:
        if not re.search(r"\bFROM\b", v, re.IGNORECASE):
            msg = "batch_base_query must contain a FROM clause"
            raise ValueError(msg)
        return v.strip()

    @field_validator("batch_fields")
    @classmethod
    def validate_batch_fields(cls, v: str) -> str:
        if not [f for f in v.split(",") if f.strip()]:
            msg = "batch_fields must name at least one field"
            raise ValueError(msg)
        return v

    @property
    def batch_field_list(self) -> list[str]:
        """Parse the output field string into an ordered list."""
        return [f.strip() for f in self.batch_fields.split(",") if f.strip()]

    # Output
    output_directory: str = Field(
        default="target",
        description="Directory for export output files (created if missing)",
    )
    output_filename_pattern: str = Field(
        default="export_{timestamp}.tsv",
        description="Output filename pattern used when a launch supplies no filename",
    )
    output_include_header: bool = Field(
        default=True,
        description="Write a header line of field names before the data",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # API
    api_prefix: str = Field(
        default="/api/batch",
        description="Route prefix for the batch API",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
