"""Configuration settings for apptoolkit.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_dir() -> Path:
    """Return the default image cache directory."""
    return Path.home() / ".cache" / "apptoolkit" / "image_cache"


def _default_flavors() -> dict[str, str]:
    """Return the default flavor name to entry point mapping."""
    return {"dev": "lib/main_dev.dart", "prod": "lib/main_prod.dart"}


def _default_prep_commands() -> list[str]:
    """Return the commands run once before a build matrix."""
    return ["flutter clean", "flutter pub get", "dart pub get"]


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the APPTOOLKIT_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPTOOLKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Image cache
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Directory holding cached image files",
    )
    assets_dir: Path = Field(
        default=Path("assets"),
        description="Root directory of bundled assets",
    )
    max_cache_size_bytes: int = Field(
        default=100 * 1024 * 1024,
        ge=1,
        description="Maximum aggregate size of the disk cache",
    )
    max_age_days: int = Field(
        default=7,
        ge=0,
        description="Maximum age of a cached file before it is evicted",
    )
    max_memory_cache_items: int = Field(
        default=100,
        ge=1,
        description="Maximum number of payloads kept in memory",
    )
    memory_strict_lru: bool = Field(
        default=False,
        description="Reorder the memory tier on access (true LRU)",
    )
    fetch_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for remote image fetches (seconds)",
    )

    # Build matrix
    project_dir: Path = Field(
        default=Path("."),
        description="Project root the build tool runs in",
    )
    builds_dir: Path = Field(
        default=Path("builds"),
        description="Output root for build runs (relative to project_dir)",
    )
    build_tool: str = Field(
        default="flutter",
        description="Executable invoked once per build target",
    )
    prep_commands: list[str] = Field(
        default_factory=_default_prep_commands,
        description="Commands run once before the matrix (clean, fetch deps)",
    )
    run_codegen: bool = Field(
        default=False,
        description="Run the code generator after fetching dependencies",
    )
    default_flavors: dict[str, str] = Field(
        default_factory=_default_flavors,
        description="Flavor name to entry point used by --use-defaults",
    )
    default_build_types: list[str] = Field(
        default_factory=lambda: ["apk", "appbundle", "ipa"],
        description="Build types used by --use-defaults",
    )
    open_output: bool = Field(
        default=True,
        description="Open the run directory in a file browser when done",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    def resolved_builds_dir(self) -> Path:
        """Return the builds root, anchored at the project directory."""
        if self.builds_dir.is_absolute():
            return self.builds_dir
        return self.project_dir / self.builds_dir


def get_settings() -> Settings:
    """Get a freshly loaded settings instance.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
