"""
Engine configuration.

Settings come from the environment (prefix ``DX_``) or a project-level
``.env`` file.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    """Runtime settings for the diagnostic engine and its HTTP surface."""

    model_config = SettingsConfigDict(
        env_prefix="DX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    storage_path: str = Field(default="data/visits.json", description="JSON file backing the visit list")

    # Workflow
    autosave_enabled: bool = Field(default=True, description="Run the periodic auto-save task")
    autosave_interval_seconds: float = Field(default=30.0, gt=0, description="Auto-save tick interval")
    recompute_summary_on_edit: bool = Field(
        default=False,
        description="Clear the health summary whenever a record is edited after it was generated",
    )

    # Reports
    report_output_dir: str = Field(default="reports", description="Directory for exported reports")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_file: Optional[str] = Field(default=None, description="Optional log file")

    # API
    api_title: str = "Diagnostic Assessment Engine API"
    api_version: str = "1.0.0"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
