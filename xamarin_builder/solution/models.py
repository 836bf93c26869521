"""In-memory model of a solution and its projects.

Entities are built once by the parser and are read-only afterwards.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PureWindowsPath

from xamarin_builder.types import PlatformKind, TestFramework


def config_key(configuration: str, platform: str) -> str:
    """Join a configuration and platform the way solution files do."""
    return f"{configuration}|{platform}"


def split_config_key(key: str) -> tuple[str, str]:
    """Split a 'Configuration|Platform' key into its two parts."""
    configuration, _, platform = key.partition("|")
    return configuration.strip(), platform.strip()


def _squash(platform: str) -> str:
    return platform.replace(" ", "").lower()


def to_posix(raw_path: str) -> str:
    """Convert a path written in a project file to a POSIX relative path."""
    return PureWindowsPath(raw_path.strip()).as_posix()


@dataclass(frozen=True)
class ProjectConfig:
    """Settings of one project 'Configuration|Platform' property group.

    Attributes:
        configuration: Project configuration name (e.g. Release).
        platform: Project platform name (e.g. iPhone, AnyCPU).
        output_path: OutputPath as written in the project, POSIX separators.
        architectures: MtouchArch entries (iOS/tvOS only).
    """

    configuration: str
    platform: str
    output_path: str | None = None
    architectures: tuple[str, ...] = ()


@dataclass
class Project:
    """A buildable unit declared by a solution.

    ``platform_kind`` is None for projects that are not app projects
    (class libraries, shared code, UI test runners); those are never built.
    """

    name: str
    file_path: Path
    platform_kind: PlatformKind | None
    test_framework: TestFramework = TestFramework.NONE
    assembly_name: str = ""
    target_framework: str | None = None
    manifest_path: Path | None = None
    configs: dict[str, ProjectConfig] = field(default_factory=dict)
    reference_paths: list[Path] = field(default_factory=list)
    # Filled in from the solution's ProjectConfigurationPlatforms section
    solution_configs: dict[str, str] = field(default_factory=dict)
    build_configs: set[str] = field(default_factory=set)
    dependencies: set[str] = field(default_factory=set)

    @property
    def directory(self) -> Path:
        """Directory containing the project file."""
        return self.file_path.parent

    @property
    def target_name(self) -> str:
        """Name msbuild uses for this project as a solution target."""
        return self.name.replace(".", "_")

    def project_config(self, configuration: str, platform: str) -> tuple[str, str]:
        """Map a solution configuration to this project's configuration.

        Falls back to the solution pair when the solution declares no mapping.
        """
        mapped = self.solution_configs.get(config_key(configuration, platform))
        if mapped is None:
            return configuration, platform
        return split_config_key(mapped)

    def builds_in(self, configuration: str, platform: str) -> bool:
        """Whether the solution builds this project in the given configuration."""
        return config_key(configuration, platform) in self.build_configs

    def settings_for(self, configuration: str, platform: str) -> ProjectConfig | None:
        """Property group for the project configuration mapped from the solution pair."""
        project_configuration, project_platform = self.project_config(
            configuration, platform
        )
        return self.config_for(project_configuration, project_platform)

    def config_for(self, configuration: str, platform: str) -> ProjectConfig | None:
        """Property group declared for a project configuration pair.

        Solutions spell the platform 'Any CPU' where project files use
        'AnyCPU'; both spellings find the same group.
        """
        settings = self.configs.get(config_key(configuration, platform))
        if settings is not None or _squash(platform) != "anycpu":
            return settings
        for candidate in self.configs.values():
            if (
                candidate.configuration == configuration
                and _squash(candidate.platform) == "anycpu"
            ):
                return candidate
        return None


@dataclass
class Solution:
    """A parsed solution file.

    Attributes:
        path: Path to the .sln file.
        configurations: Declared 'Configuration|Platform' pairs.
        projects: Projects in declaration order.
    """

    path: Path
    configurations: set[tuple[str, str]] = field(default_factory=set)
    projects: list[Project] = field(default_factory=list)

    @property
    def name(self) -> str:
        """Solution name (file name without extension)."""
        return self.path.stem

    def has_config(self, configuration: str, platform: str) -> bool:
        """Whether the solution declares this configuration/platform pair."""
        return (configuration, platform) in self.configurations

    def config_list(self) -> list[str]:
        """Declared pairs as sorted 'Configuration|Platform' strings."""
        return sorted(config_key(c, p) for c, p in self.configurations)

    def project(self, name: str) -> Project | None:
        """Look up a project by name."""
        for project in self.projects:
            if project.name == name:
                return project
        return None


def is_allowed(
    platform_kind: PlatformKind | None,
    whitelist: Iterable[PlatformKind] | None,
) -> bool:
    """Check a platform kind against the project type allow-list.

    An empty allow-list allows every kind. Otherwise the kind must equal one
    of the entries exactly. Projects without a platform kind are never allowed.
    """
    if platform_kind is None:
        return False
    entries = list(whitelist or [])
    if not entries:
        return True
    return any(entry == platform_kind for entry in entries)


def default_output_path(
    project: Project,
    configuration: str,
    platform: str,
) -> str:
    """Output path msbuild uses when the project does not declare one."""
    if project.target_framework:
        return f"bin/{configuration}/{project.target_framework}"
    if project.platform_kind in (PlatformKind.IOS, PlatformKind.TVOS):
        return f"bin/{platform}/{configuration}"
    return f"bin/{configuration}"


def resolve_output_directory(
    project: Project,
    configuration: str,
    platform: str,
) -> Path:
    """Resolve a project's output directory for a solution configuration.

    Pure: depends only on the parsed project and the configuration pair.

    Args:
        project: Parsed project.
        configuration: Solution configuration name.
        platform: Solution platform name.

    Returns:
        Absolute output directory path.
    """
    project_configuration, project_platform = project.project_config(
        configuration, platform
    )
    settings = project.config_for(project_configuration, project_platform)
    output_path = settings.output_path if settings else None
    if not output_path:
        output_path = default_output_path(
            project, project_configuration, project_platform
        )
    return Path(os.path.normpath(project.directory / output_path))


__all__ = [
    "Project",
    "ProjectConfig",
    "Solution",
    "config_key",
    "default_output_path",
    "is_allowed",
    "resolve_output_directory",
    "split_config_key",
    "to_posix",
]
