"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """confmirror settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Database
    database_url: str = "sqlite:///data/db/confmirror.db"
    database_timezone: str = "UTC"
    query_timeout_seconds: float = Field(default=30.0, gt=0)

    # Paths
    resource_root: Path = Path(".")
    conf_dir: Path | None = None

    # Remote records
    main_config_id: int = Field(default=1, ge=1)
    main_config_filename: str = "application.yml"

    # Polling
    initial_delay_seconds: float = Field(default=10.0, ge=0)
    scan_interval_seconds: float = Field(default=3.0, gt=0)

    def validate_runtime(self) -> None:
        """Validate settings that cannot be expressed as field constraints."""
        violations: list[str] = []
        filename = self.main_config_filename
        if not filename or filename in (".", "..") or "/" in filename or "\\" in filename:
            violations.append("MAIN_CONFIG_FILENAME must be a plain file name")
        if self.conf_dir is not None and not self.conf_dir.is_dir():
            violations.append(f"CONF_DIR does not exist or is not a directory: {self.conf_dir}")
        if not self.database_url:
            violations.append("DATABASE_URL must be set")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Invalid configuration: {joined}")
