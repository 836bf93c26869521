"""Configuration settings for xamarin_builder.

Uses pydantic-settings for config parsing from environment variables
and defaults. Variable names match the CI step inputs (no prefix).
Configuration precedence: CLI flags > env vars > defaults.
"""

import logging
import shlex
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from xamarin_builder.types import BuildTool, PlatformKind

logger = logging.getLogger(__name__)


def _default_archives_dir() -> Path:
    """Return the directory Xcode stores archives in."""
    return Path.home() / "Library" / "Developer" / "Xcode" / "Archives"


def parse_whitelist(raw: str) -> list[PlatformKind]:
    """Parse a comma separated project type allow-list.

    Blank items are ignored.

    Raises:
        ValueError: If an item is not a known platform kind.
    """
    kinds: list[PlatformKind] = []
    for item in raw.split(","):
        if not item.strip():
            continue
        kind = PlatformKind.parse(item)
        if kind not in kinds:
            kinds.append(kind)
    return kinds


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables named after the fields.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Build inputs
    xamarin_solution: Path | None = Field(
        default=None,
        description="Path to the Xamarin solution (.sln) to build",
    )
    xamarin_configuration: str | None = Field(
        default=None,
        description="Solution configuration (e.g. Release)",
    )
    xamarin_platform: str | None = Field(
        default=None,
        description="Solution platform (e.g. iPhone, Any CPU)",
    )
    project_type_whitelist: str = Field(
        default="",
        description="Comma separated project types to build (android, ios, tvos, macos)",
    )
    build_tool: BuildTool = Field(
        default=BuildTool.MSBUILD,
        description="Build tool (msbuild or xbuild)",
    )
    clean_build: bool = Field(
        default=True,
        description="Clean each project before building it",
    )

    # Per-platform custom options, shell-split before use
    android_build_command_custom_options: str = Field(default="")
    ios_build_command_custom_options: str = Field(default="")
    tvos_build_command_custom_options: str = Field(default="")
    macos_build_command_custom_options: str = Field(default="")

    # Paths
    deploy_dir: Path = Field(
        default=Path("deploy"),
        validation_alias=AliasChoices("BITRISE_DEPLOY_DIR", "deploy_dir"),
        description="Directory exported artifacts are copied to",
    )
    xcode_archives_dir: Path = Field(
        default_factory=_default_archives_dir,
        description="Directory searched for Xcode archives",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    build_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for a single build tool invocation (seconds)",
    )

    @field_validator("xamarin_solution")
    @classmethod
    def validate_solution(cls, v: Path | None) -> Path | None:
        """Validate the solution path exists and is a .sln file."""
        if v is None:
            return v
        if v.suffix != ".sln":
            raise ValueError(f"path is not a solution file path: {v}")
        if not v.exists():
            raise ValueError(f"solution does not exist at: {v}")
        return v

    @field_validator("xamarin_configuration", "xamarin_platform")
    @classmethod
    def validate_not_empty(cls, v: str | None) -> str | None:
        """Validate configuration and platform are not blank when set."""
        if v is not None and not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("project_type_whitelist")
    @classmethod
    def validate_whitelist(cls, v: str) -> str:
        """Validate every allow-list entry is a known project type."""
        parse_whitelist(v)
        return v

    def whitelist(self) -> list[PlatformKind]:
        """Parsed project type allow-list (empty = allow all)."""
        return parse_whitelist(self.project_type_whitelist)

    def missing_build_inputs(self) -> list[str]:
        """Names of required build inputs that are not set."""
        required = {
            "xamarin_solution": self.xamarin_solution,
            "xamarin_configuration": self.xamarin_configuration,
            "xamarin_platform": self.xamarin_platform,
        }
        return [name for name, value in required.items() if value is None]

    def custom_options(self) -> dict[PlatformKind, list[str]]:
        """Custom build options per platform kind, split into tokens.

        Options that cannot be split are logged and dropped for that platform.
        """
        raw_options = {
            PlatformKind.ANDROID: self.android_build_command_custom_options,
            PlatformKind.IOS: self.ios_build_command_custom_options,
            PlatformKind.TVOS: self.tvos_build_command_custom_options,
            PlatformKind.MACOS: self.macos_build_command_custom_options,
        }
        options: dict[PlatformKind, list[str]] = {}
        for kind, raw in raw_options.items():
            if not raw.strip():
                continue
            try:
                options[kind] = shlex.split(raw)
            except ValueError as e:
                logger.error("Failed to split options (%s): %s", raw, e)
        return options


def get_settings(**overrides: Any) -> Settings:
    """Get the application settings.

    Args:
        **overrides: Values taking precedence over the environment (CLI flags).
            None values are ignored.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


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


__all__ = ["Settings", "get_settings", "parse_whitelist", "print_settings_json"]
