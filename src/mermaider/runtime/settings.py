"""Configuration helpers for mermaider runtime wiring."""

from __future__ import annotations

import logging
import shlex

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class CheckerSettings(BaseSettings):
    """How the Mermaid CLI behind ``validate_syntax`` is invoked and bounded."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    precheck: bool = Field(
        default=False,
        alias="MERMAIDER_PRECHECK",
        description="Reject unknown diagram types and unbalanced flowcharts before spawning the CLI.",
    )
    cli_command: str = Field(
        default="mmdc",
        alias="MERMAIDER_CLI_COMMAND",
        description="Mermaid CLI invocation, split with shell quoting rules.",
    )
    timeout_seconds: float = Field(default=10.0, gt=0.0, alias="MERMAIDER_CHECK_TIMEOUT_SECONDS")

    @property
    def cli_argv(self) -> tuple[str, ...]:
        return tuple(shlex.split(self.cli_command))


class ObservabilitySettings(BaseSettings):
    """Flags controlling logging/export behavior."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    enable_cloud_logging: bool = Field(default=False, alias="ENABLE_CLOUD_LOGGING")
    gcp_project_id: str | None = Field(default=None, alias="GCP_PROJECT_ID")


class Settings(BaseSettings):
    """Server configuration resolved from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # --- Server ---
    listen_host: str = Field(default="0.0.0.0", alias="MERMAIDER_HOST")  # noqa: S104
    port: int = Field(default=3000, ge=0, le=65535, alias="PORT")
    message_path: str = Field(default="/messages", alias="MERMAIDER_MESSAGE_PATH")
    keepalive_seconds: float = Field(default=15.0, gt=0.0, alias="MERMAIDER_SSE_KEEPALIVE_SECONDS")
    shutdown_timeout_seconds: int = Field(default=5, ge=0, alias="MERMAIDER_SHUTDOWN_TIMEOUT_SECONDS")

    # --- Component settings ---
    checker: CheckerSettings = Field(default_factory=CheckerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    # --- Loader ---
    @classmethod
    def load(cls) -> Settings:
        instance = cls()
        logger = logging.getLogger("mermaider.settings")
        logger.info("mermaider settings loaded: %r", instance)
        return instance


__all__ = ["CheckerSettings", "ObservabilitySettings", "Settings"]
