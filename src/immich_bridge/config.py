"""
Configuration management using Pydantic for validation.

Supports loading from:
- YAML files (primary)
- Environment variables with IMMICH_BRIDGE_ prefix
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PREVIEW_VARIANTS: list[dict[str, str]] = [
    {"size": "preview"},
    {"key": "preview"},
    {"key": "preview", "format": "WEBP"},
]


class Settings(BaseSettings):
    """
    Main application settings.

    Can be loaded from:
    - YAML file: Settings.from_yaml("config.yaml")
    - Environment variables: IMMICH_BRIDGE_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="IMMICH_BRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",  # Ignore unknown fields for forward compatibility
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for JSON requests to Immich",
    )
    binary_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout in seconds for thumbnail, preview and original downloads",
    )
    chunk_size: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Chunk size in bytes when streaming binary payloads",
    )
    max_buckets_per_page: int = Field(
        default=6,
        ge=1,
        description="Month buckets visited per timeline page. "
        "Bounds the number of upstream requests one timeline call makes.",
    )
    fallback_year_span: int = Field(
        default=20,
        ge=1,
        description="Number of calendar years offered as a year facet when "
        "no asset in the timeline page carries a date",
    )
    preview_variants: list[dict[str, str]] = Field(
        default_factory=lambda: [dict(v) for v in DEFAULT_PREVIEW_VARIANTS],
        description="Thumbnail query parameter sets tried in order for preview renditions. "
        "Immich has changed these parameters across versions.",
    )
    storage_root: Path = Field(
        default=Path("./storage"),
        description="Root of host file storage. Each user gets a subfolder named after the user id.",
    )
    credentials_db_path: Path = Field(
        default=Path("./credentials.sqlite3"),
        description="Path to SQLite database holding per-user Immich credentials",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("storage_root", "credentials_db_path", mode="before")
    @classmethod
    def parse_path(cls, v):
        """Convert string path to Path object."""
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator("preview_variants")
    @classmethod
    def validate_preview_variants(cls, v: list[dict[str, str]]) -> list[dict[str, str]]:
        """Reject empty parameter sets; an empty set is just the plain thumbnail."""
        for params in v:
            if not params:
                raise ValueError("preview_variants entries must not be empty")
        return v

    def user_storage(self, user_id: str) -> Path:
        """Folder holding a user's files."""
        return self.storage_root / user_id

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Settings":
        """
        Load settings from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Settings instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Save settings to a YAML file."""
        path = Path(path)

        data = self.model_dump()

        def convert_paths(obj):
            if isinstance(obj, Path):
                return str(obj)
            if isinstance(obj, dict):
                return {k: convert_paths(v) for k, v in obj.items()}
            if isinstance(obj, list):
                return [convert_paths(item) for item in obj]
            return obj

        data = convert_paths(data)

        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
