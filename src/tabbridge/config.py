"""Configuration management for tabbridge."""

from __future__ import annotations

import shlex
import tempfile
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tabbridge.errors import ConfigurationError

DEFAULT_CHANNEL_NAME = "tabs_server"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TABBRIDGE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Channel Configuration
    channel_name: str = Field(default=DEFAULT_CHANNEL_NAME, description="Name agreed with the controller process")
    transport: Literal["unix", "native"] = Field(default="unix", description="How the channel is established")
    native_command: str | None = Field(None, description="Controller command line for the native transport")
    socket_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()), description="Unix socket directory")
    max_frame_bytes: int = Field(default=8_000_000, gt=0, description="Largest accepted frame body")
    outbox_limit: int = Field(default=1024, gt=0, description="Frames held while no connection is live")

    # Reconnect Configuration
    reconnect_immediate_first: bool = Field(default=True, description="Retry the first disconnect without delay")
    reconnect_base_delay: float = Field(default=0.1, ge=0, description="Backoff delay after the first retry")
    reconnect_max_delay: float = Field(default=5.0, ge=0, description="Upper bound for the backoff delay")
    reconnect_multiplier: float = Field(default=2.0, ge=1, description="Backoff growth per consecutive failure")

    # Controller Configuration
    request_timeout_seconds: float = Field(default=5.0, gt=0, description="Controller request timeout")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def socket_path(self) -> Path:
        return self.socket_dir / f"{self.channel_name}.sock"

    def native_argv(self) -> list[str]:
        """Split the native command line. The channel name is appended per launch."""
        if not self.native_command:
            raise ConfigurationError("native transport requires TABBRIDGE_NATIVE_COMMAND")
        argv = shlex.split(self.native_command)
        if not argv:
            raise ConfigurationError("native command is empty")
        return argv


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, then apply non-empty overrides."""
    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
