"""Build command composition.

Composes the msbuild/xbuild invocation for one solution project. The
command stays mutable until the orchestrator finalizes it, so the prepare
callback can append custom options.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from xamarin_builder.solution.models import Project, Solution
from xamarin_builder.types import BuildTool, PlatformKind

ANY_CPU_PLATFORMS = frozenset({"any cpu", "anycpu"})

# Target invoked per platform kind (solution-level "Project:Target" syntax)
PLATFORM_BUILD_TARGETS: dict[PlatformKind, str] = {
    PlatformKind.ANDROID: "SignAndroidPackage",
    PlatformKind.IOS: "Build",
    PlatformKind.TVOS: "Build",
    PlatformKind.MACOS: "Build",
}


def is_platform_any_cpu(platform: str) -> bool:
    """Whether a platform name is the Any CPU platform (either spelling)."""
    return platform.strip().lower() in ANY_CPU_PLATFORMS


def is_architecture_archiveable(architectures: Sequence[str]) -> bool:
    """Whether every architecture can be archived.

    No architectures means the default (armv7), which is archiveable.
    """
    return all(arch.strip().lower().startswith("arm") for arch in architectures)


def archives_on_build(project: Project, configuration: str, platform: str) -> bool:
    """Whether building the project in this configuration produces an archive.

    Args:
        project: Parsed project.
        configuration: Solution configuration name.
        platform: Solution platform name.
    """
    if project.platform_kind == PlatformKind.MACOS:
        return True
    if project.platform_kind not in (PlatformKind.IOS, PlatformKind.TVOS):
        return False
    if is_platform_any_cpu(platform):
        return False
    settings = project.settings_for(configuration, platform)
    architectures = settings.architectures if settings else ()
    return is_architecture_archiveable(architectures)


@dataclass
class BuildCommand:
    """A build tool invocation, editable until it is issued.

    Attributes:
        tool: Build tool executable.
        solution_path: Solution the project target is resolved against.
        configuration: Solution configuration.
        platform: Solution platform.
        targets: Solution-level targets ('Project:Target').
        properties: Additional /p: properties.
        custom_options: Opaque tokens appended verbatim.
    """

    tool: BuildTool
    solution_path: Path
    configuration: str
    platform: str
    targets: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    custom_options: list[str] = field(default_factory=list)

    def set_custom_options(self, *options: str) -> None:
        """Replace the custom options appended to the command."""
        self.custom_options = list(options)

    def to_args(self) -> list[str]:
        """Command as a list of strings suitable for subprocess."""
        args = [self.tool.value, str(self.solution_path)]
        if self.targets:
            args.append(f"/t:{';'.join(self.targets)}")
        args.append(f"/p:Configuration={self.configuration}")
        args.append(f"/p:Platform={self.platform}")
        args.extend(f"/p:{key}={value}" for key, value in self.properties.items())
        args.extend(self.custom_options)
        return args

    def __str__(self) -> str:
        return shlex.join(self.to_args())


def compose_build_command(
    solution: Solution,
    project: Project,
    configuration: str,
    platform: str,
    tool: BuildTool = BuildTool.MSBUILD,
    clean_first: bool = False,
) -> BuildCommand:
    """Compose the build command for one project of a solution.

    Args:
        solution: Parsed solution.
        project: App project to build (must have a platform kind).
        configuration: Solution configuration.
        platform: Solution platform.
        tool: Build tool to invoke.
        clean_first: Clean the project before building it.

    Returns:
        Mutable BuildCommand.

    Raises:
        ValueError: If the project is not an app project.
    """
    if project.platform_kind is None:
        raise ValueError(f"Project {project.name} has no platform kind")

    targets: list[str] = []
    if clean_first:
        targets.append(f"{project.target_name}:Clean")
    targets.append(
        f"{project.target_name}:{PLATFORM_BUILD_TARGETS[project.platform_kind]}"
    )

    properties: dict[str, str] = {}
    if archives_on_build(project, configuration, platform):
        properties["ArchiveOnBuild"] = "true"

    return BuildCommand(
        tool=tool,
        solution_path=solution.path,
        configuration=configuration,
        platform=platform,
        targets=targets,
        properties=properties,
    )


__all__ = [
    "ANY_CPU_PLATFORMS",
    "BuildCommand",
    "archives_on_build",
    "compose_build_command",
    "is_architecture_archiveable",
    "is_platform_any_cpu",
]
