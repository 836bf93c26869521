"""Build orchestration over the app projects of a solution.

Projects are built one at a time, in solution declaration order: the build
tool writes shared intermediate and output directories, so invocations must
never overlap. A registry of BuildRecords keyed by BuildKey guarantees that
each (project, configuration, platform) is built at most once per run, even
when an earlier build already produced a project as a reference.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import NamedTuple

from xamarin_builder.builds.command import BuildCommand, compose_build_command
from xamarin_builder.builds.runner import (
    CommandRunner,
    make_runner,
    parse_warnings,
)
from xamarin_builder.solution.models import Project, Solution, is_allowed
from xamarin_builder.types import BuildTool, PlatformKind, TestFramework

logger = logging.getLogger(__name__)

PrepareCallback = Callable[[str, str, PlatformKind, TestFramework, BuildCommand], None]
BuiltCallback = Callable[[str, str, PlatformKind, TestFramework, str, bool], None]


class InvalidConfigurationError(Exception):
    """Raised when the solution does not declare the requested configuration."""

    def __init__(
        self,
        configuration: str,
        platform: str,
        available: list[str],
        code: str = "invalid_configuration",
    ) -> None:
        super().__init__(
            f"Invalid solution config {configuration}|{platform}, "
            f"available: {', '.join(available) or '(none)'}"
        )
        self.configuration = configuration
        self.platform = platform
        self.available = available
        self.code = code


class BuildFailedError(Exception):
    """Raised when the build tool exits with a non-zero code.

    Carries every warning gathered up to and including the failing build.
    """

    def __init__(
        self,
        message: str,
        command: str,
        exit_code: int,
        warnings: list[str] | None = None,
        output: str = "",
        code: str = "build_failed",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.warnings = warnings or []
        self.output = output
        self.code = code


class BuildKey(NamedTuple):
    """Identity of one build invocation."""

    project_name: str
    configuration: str
    platform: str


@dataclass
class BuildRecord:
    """What happened for a BuildKey during this run.

    ``built_by`` names the project whose invocation produced this key; it
    differs from the key's project when the key was built as a reference.
    """

    command: str
    built_by: str
    started_at: datetime
    finished_at: datetime | None = None
    warnings: list[str] = field(default_factory=list)
    already_performed: bool = False


def _noop_prepare(*_args: object) -> None:
    return None


def _noop_built(*_args: object) -> None:
    return None


class Builder:
    """Builds the allowed app projects of one solution.

    Usage:
        builder = Builder(solution, [PlatformKind.IOS])
        warnings = builder.build_all("Release", "iPhone")

    Each Builder owns its own BuildRecord registry.
    """

    def __init__(
        self,
        solution: Solution,
        whitelist: Iterable[PlatformKind] | None = None,
        tool: BuildTool = BuildTool.MSBUILD,
        runner: CommandRunner | None = None,
    ) -> None:
        self.solution = solution
        self.whitelist = list(whitelist or [])
        self.tool = tool
        self.runner = runner or make_runner()
        self.records: dict[BuildKey, BuildRecord] = {}

    def buildable_projects(self, configuration: str, platform: str) -> list[Project]:
        """Allowed app projects the solution builds in this configuration.

        Test projects are excluded; order is solution declaration order.
        """
        projects: list[Project] = []
        for project in self.solution.projects:
            if not is_allowed(project.platform_kind, self.whitelist):
                continue
            if project.test_framework != TestFramework.NONE:
                logger.debug("Skipping test project: %s", project.name)
                continue
            mapped = project.solution_configs or project.build_configs
            if mapped and not project.builds_in(configuration, platform):
                logger.debug(
                    "Project %s is not built in %s|%s", project.name, configuration, platform
                )
                continue
            projects.append(project)
        return projects

    def _reference_closure(self, project: Project) -> set[str]:
        """Names of every project reachable through project references."""
        seen: set[str] = set()
        pending = list(project.dependencies)
        while pending:
            name = pending.pop()
            if name in seen or name == project.name:
                continue
            seen.add(name)
            dependency = self.solution.project(name)
            if dependency is not None:
                pending.extend(dependency.dependencies)
        return seen

    def build_all(
        self,
        configuration: str,
        platform: str,
        clean_first: bool = False,
        on_prepare: PrepareCallback | None = None,
        on_built: BuiltCallback | None = None,
    ) -> list[str]:
        """Build every allowed project in solution order.

        Args:
            configuration: Solution configuration.
            platform: Solution platform.
            clean_first: Clean each project before building it.
            on_prepare: Called with the mutable command before it is issued.
            on_built: Called for every project, with already_performed=True
                when its BuildKey was built earlier in this run.

        Returns:
            Warnings from all builds, in build order.

        Raises:
            InvalidConfigurationError: If the solution does not declare the pair.
            BuildFailedError: On the first non-zero exit; no further builds run.
            BuildExecutionError: If the build tool cannot be started.
        """
        if not self.solution.has_config(configuration, platform):
            raise InvalidConfigurationError(
                configuration, platform, self.solution.config_list()
            )

        prepare = on_prepare or _noop_prepare
        built = on_built or _noop_built
        warnings: list[str] = []

        for project in self.buildable_projects(configuration, platform):
            if project.platform_kind is None:
                continue
            key = BuildKey(project.name, configuration, platform)

            existing = self.records.get(key)
            if existing is not None:
                logger.info(
                    "%s already built by %s, skipping", project.name, existing.built_by
                )
                built(
                    self.solution.name,
                    project.name,
                    project.platform_kind,
                    project.test_framework,
                    existing.command,
                    True,
                )
                continue

            command = compose_build_command(
                self.solution,
                project,
                configuration,
                platform,
                tool=self.tool,
                clean_first=clean_first,
            )
            prepare(
                self.solution.name,
                project.name,
                project.platform_kind,
                project.test_framework,
                command,
            )
            command_str = str(command)

            record = BuildRecord(
                command=command_str,
                built_by=project.name,
                started_at=datetime.now(timezone.utc),
            )
            self.records[key] = record
            built(
                self.solution.name,
                project.name,
                project.platform_kind,
                project.test_framework,
                command_str,
                False,
            )

            result = self.runner(command.to_args(), self.solution.path.parent)
            record.finished_at = result.finished_at
            record.warnings = parse_warnings(result.output)
            warnings.extend(record.warnings)

            if not result.success:
                logger.error("Build of %s failed with exit code %d", project.name, result.exit_code)
                raise BuildFailedError(
                    f"Build of {project.name} failed with exit code {result.exit_code}",
                    command=command_str,
                    exit_code=result.exit_code,
                    warnings=warnings,
                    output=result.output,
                )

            # The build tool built every referenced project along the way
            for dependency in sorted(self._reference_closure(project)):
                dependency_key = BuildKey(dependency, configuration, platform)
                if dependency_key not in self.records:
                    self.records[dependency_key] = BuildRecord(
                        command=command_str,
                        built_by=project.name,
                        started_at=record.started_at,
                        finished_at=record.finished_at,
                        already_performed=True,
                    )

        return warnings

    def built_projects(self, configuration: str, platform: str) -> list[Project]:
        """Buildable projects that have a BuildRecord for this configuration."""
        return [
            project
            for project in self.buildable_projects(configuration, platform)
            if BuildKey(project.name, configuration, platform) in self.records
        ]


__all__ = [
    "BuildFailedError",
    "BuildKey",
    "BuildRecord",
    "Builder",
    "BuiltCallback",
    "InvalidConfigurationError",
    "PrepareCallback",
]
