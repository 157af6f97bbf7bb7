"""Stepwise configuration — loaded from .env via pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings


class StepwiseSettings(BaseSettings):
    """All Stepwise configuration. Reads from .env file and STEPWISE_* variables."""

    # --- Decoding ---
    decoder: str = Field(
        default="file",
        description="Template source: 'file' for JSON/YAML files, 'store' for Postgres",
    )
    templates_dir: str = Field(
        default=".",
        description="Base directory for relative template paths (file decoder)",
    )

    # --- PostgreSQL template store ---
    postgres_url: str = Field(
        default="postgresql://localhost:5432/stepwise",
        description="PostgreSQL connection string for the store decoder",
    )

    # --- HTTP ---
    http_timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    run_timeout: float | None = Field(
        default=None,
        description="Overall deadline for one CLI run in seconds (unset = no deadline)",
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="console",
        description="Log format: 'console' for dev, 'json' for production",
    )

    model_config = {
        "env_prefix": "STEPWISE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton — import this everywhere
settings = StepwiseSettings()
