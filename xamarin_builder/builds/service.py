"""Build service module.

This module provides the high-level build API:
- build_solution(): parse, build every allowed project, collect outputs,
  export them into the deploy directory
- Custom option injection per platform kind
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from xamarin_builder.builds.artifacts import collect_outputs
from xamarin_builder.builds.command import BuildCommand
from xamarin_builder.builds.export import (
    MANIFEST_FILENAME,
    ExportedArtifact,
    export_outputs,
    generate_manifest,
    write_manifest,
)
from xamarin_builder.builds.orchestrator import Builder, BuiltCallback, PrepareCallback
from xamarin_builder.builds.runner import CommandRunner, make_runner
from xamarin_builder.solution.parser import parse_solution
from xamarin_builder.types import PlatformKind, ProjectOutput, TestFramework

if TYPE_CHECKING:
    from xamarin_builder.config import Settings

logger = logging.getLogger(__name__)


class NoOutputsError(Exception):
    """Raised when no project produced any output."""

    def __init__(self, message: str = "No output generated", code: str = "no_outputs") -> None:
        super().__init__(message)
        self.code = code


class BuildServiceError(Exception):
    """Raised when the service is called with incomplete settings."""

    def __init__(self, message: str, code: str = "build_service_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class BuildRunResult:
    """Outcome of a full build run.

    Attributes:
        solution: Solution name.
        warnings: Build tool warnings from every build.
        outputs: Collected outputs per project.
        exported: Artifacts copied into the deploy directory.
        started_at: Time before the first build was issued.
        finished_at: Time after the last build finished.
        manifest_path: Path of the written manifest, if exported.
    """

    solution: str
    warnings: list[str]
    outputs: dict[str, ProjectOutput]
    started_at: datetime
    finished_at: datetime
    exported: list[ExportedArtifact] = field(default_factory=list)
    manifest_path: Path | None = None


def make_prepare_callback(
    custom_options: dict[PlatformKind, list[str]],
) -> PrepareCallback:
    """Build a prepare callback that appends custom options per platform kind."""

    def prepare(
        solution_name: str,
        project_name: str,
        platform_kind: PlatformKind,
        test_framework: TestFramework,
        command: BuildCommand,
    ) -> None:
        options = custom_options.get(platform_kind)
        if options:
            logger.debug("Adding custom options to %s: %s", project_name, options)
            command.set_custom_options(*options)

    return prepare


def build_solution(
    settings: Settings,
    runner: CommandRunner | None = None,
    on_built: BuiltCallback | None = None,
    export: bool = True,
    publish: bool = True,
) -> BuildRunResult:
    """Build a solution and collect (and optionally export) its outputs.

    Args:
        settings: Validated settings with the build inputs set.
        runner: Process collaborator (defaults to subprocess with timeout).
        on_built: Notified once per project, see Builder.build_all.
        export: Copy outputs into settings.deploy_dir and write a manifest.
        publish: Publish exported paths through envman.

    Returns:
        BuildRunResult.

    Raises:
        BuildServiceError: If required build inputs are missing.
        ParseError: If the solution or a project cannot be parsed.
        InvalidConfigurationError: If the configuration pair is not declared.
        BuildFailedError: If a build fails.
        BuildExecutionError: If the build tool cannot be started.
        NoOutputsError: If no outputs were found for any project.
        ExportError: If an output cannot be exported.
    """
    solution_path = settings.xamarin_solution
    configuration = settings.xamarin_configuration
    platform = settings.xamarin_platform
    if solution_path is None or configuration is None or platform is None:
        missing = ", ".join(settings.missing_build_inputs())
        raise BuildServiceError(f"Missing build inputs: {missing}")

    solution = parse_solution(solution_path)
    builder = Builder(
        solution,
        whitelist=settings.whitelist(),
        tool=settings.build_tool,
        runner=runner or make_runner(settings.build_timeout),
    )

    logger.info("Building all projects in solution: %s", solution.path)
    started_at = datetime.now(timezone.utc)
    warnings = builder.build_all(
        configuration,
        platform,
        clean_first=settings.clean_build,
        on_prepare=make_prepare_callback(settings.custom_options()),
        on_built=on_built,
    )
    finished_at = datetime.now(timezone.utc)

    outputs = collect_outputs(
        builder.built_projects(configuration, platform),
        configuration,
        platform,
        started_at,
        finished_at,
        archives_dir=settings.xcode_archives_dir,
    )
    if not outputs:
        raise NoOutputsError()

    result = BuildRunResult(
        solution=solution.name,
        warnings=warnings,
        outputs=outputs,
        started_at=started_at,
        finished_at=finished_at,
    )

    if export:
        result.exported = export_outputs(outputs, settings.deploy_dir, publish=publish)
        manifest = generate_manifest(
            result.exported,
            solution=solution.name,
            configuration=configuration,
            platform=platform,
            warnings=warnings,
        )
        result.manifest_path = write_manifest(
            manifest, settings.deploy_dir / MANIFEST_FILENAME
        )

    return result


__all__ = [
    "BuildRunResult",
    "BuildServiceError",
    "NoOutputsError",
    "build_solution",
    "make_prepare_callback",
]
