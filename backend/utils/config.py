"""
Restamp Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

import shlex
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


def _split_command(v: str | list[str]) -> list[str]:
    """Split a shell-style command string into arguments."""
    if isinstance(v, str):
        return shlex.split(v)
    return v


class CompilerSettings(BaseSettings):
    """Incremental compiler invocation settings."""

    model_config = SettingsConfigDict(env_prefix="COMPILER_")

    command: Annotated[list[str], NoDecode] = Field(
        default=["pnpm", "exec", "tsdown"],
        description="Compiler executable and leading arguments",
    )
    build_args: Annotated[list[str], NoDecode] = Field(
        default=["--no-clean"],
        description="Arguments for the one-shot initial build",
    )
    watch_args: Annotated[list[str], NoDecode] = Field(
        default=["--watch", "--no-clean"],
        description="Arguments for the long-running watch build",
    )
    completion_markers: Annotated[list[str], NoDecode] = Field(
        default=["Build complete", "Rebuilt in"],
        description="Substrings marking a finished (re)build in compiler output",
    )

    @field_validator("command", "build_args", "watch_args", mode="before")
    @classmethod
    def parse_command(cls, v: str | list[str]) -> list[str]:
        """Parse commands from a shell-style string or list."""
        return _split_command(v)

    @field_validator("completion_markers", mode="before")
    @classmethod
    def parse_completion_markers(cls, v: str | list[str]) -> list[str]:
        """Parse markers from comma-separated string or list."""
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v

    def build_command(self) -> list[str]:
        return [*self.command, *self.build_args]

    def watch_command(self) -> list[str]:
        return [*self.command, *self.watch_args]


class RuntimeSettings(BaseSettings):
    """Self-restarting runtime invocation settings."""

    model_config = SettingsConfigDict(env_prefix="RUNTIME_")

    executable: str = Field(default="node", description="Runtime executable")
    watch_args: Annotated[list[str], NoDecode] = Field(
        default=["--watch", "--watch-path", "{stamp}"],
        description="Runtime watch-mode arguments; {stamp} is the stamp path",
    )
    entry: str = Field(default="main.mjs", description="Program entry point")

    @field_validator("watch_args", mode="before")
    @classmethod
    def parse_watch_args(cls, v: str | list[str]) -> list[str]:
        """Parse watch arguments from a shell-style string or list."""
        return _split_command(v)

    def command(self, stamp_path: Path | str, args: list[str]) -> list[str]:
        """
        Build the runtime command line.

        Args:
            stamp_path: Path the runtime should watch for restarts
            args: Pass-through arguments appended verbatim

        Returns:
            Full argument vector
        """
        watch_args = [a.replace("{stamp}", str(stamp_path)) for a in self.watch_args]
        entry = [self.entry] if self.entry else []
        return [self.executable, *watch_args, *entry, *args]


class WatchSettings(BaseSettings):
    """Watch session settings."""

    model_config = SettingsConfigDict(env_prefix="WATCH_")

    stamp_path: Path = Field(
        default=Path("dist") / ".watch-restart",
        description="Restart stamp path, relative to the working directory",
    )
    debounce_delay_ms: int = Field(default=250, ge=10, le=10000)
    shutdown_grace_seconds: float = Field(default=5.0, ge=0.0)
    max_line_bytes: int | None = Field(
        default=None,
        ge=1024,
        description="Optional cap on a single buffered compiler output line",
    )
    env_prefix: str = Field(default="RESTAMP", description="Prefix for child env vars")


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"
    file_path: Path | None = Field(default=None)


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Restamp")
    app_version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    compiler: CompilerSettings = Field(default_factory=CompilerSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("development", "dev", "local")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    """
    return Settings()
