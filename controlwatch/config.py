"""Configuration models and utilities for controlwatch."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

# type: ignore[import-untyped]
import yaml
from pydantic import BaseModel, Field, field_validator

CONFIG_ENV_VAR = "CONTROLWATCH_CONFIG"
DATABASE_URL_ENV_VAR = "CONTROLWATCH_DATABASE_URL"


class OrchestratorConfig(BaseModel):
    """Connection settings for the Orchestrator service."""

    url: str = "http://localhost:8080"
    token: str | None = None
    timeout_seconds: float = 10.0

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) base URL and strip its trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Orchestrator url must be http(s): {v}")
        return v.rstrip("/")


class EvaluationConfig(BaseModel):
    """Scheduling and aggregation settings."""

    default_interval_minutes: int = Field(5, gt=0)
    assessment_window_hours: int = Field(24, gt=0)
    max_concurrent: int = Field(5, gt=0)


class AuthorizationConfig(BaseModel):
    """Which authorization strategy guards target-scoped requests."""

    strategy: Literal["allow_all", "jwt"] = "allow_all"
    claim: str = "cloudserviceid"


class PaginationConfig(BaseModel):
    default_page_size: int = Field(50, gt=0)
    max_page_size: int = Field(1000, gt=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = Field(False, alias="json")

    model_config = {"populate_by_name": True}


class AppConfig(BaseModel):
    """Application configuration settings."""

    version: str = "0.2"
    database_url: str = "sqlite:///controlwatch.db"
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    authorization: AuthorizationConfig = Field(default_factory=AuthorizationConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(path: Path | str) -> AppConfig:
        """Load configuration from a YAML file.

        The database URL can be overridden with ``CONTROLWATCH_DATABASE_URL``.
        """
        p = Path(path)
        data = yaml.safe_load(p.read_text()) or {}
        cfg = AppConfig.model_validate(data)
        url = os.getenv(DATABASE_URL_ENV_VAR)
        if url:
            cfg.database_url = url
        return cfg

    @staticmethod
    def from_env(default_path: str = "config.yaml") -> AppConfig:
        """Load the file named by ``CONTROLWATCH_CONFIG``, or defaults if it does not exist."""
        p = Path(os.getenv(CONFIG_ENV_VAR, default_path))
        if p.exists():
            return AppConfig.load(p)
        cfg = AppConfig()
        url = os.getenv(DATABASE_URL_ENV_VAR)
        if url:
            cfg.database_url = url
        return cfg

    def save(self, path: Path | str) -> None:
        """Save configuration to a file."""
        p = Path(path)
        p.write_text(yaml.safe_dump(self.model_dump(mode="python", by_alias=True), sort_keys=False))
