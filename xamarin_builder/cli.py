"""Thin CLI wrapper for xamarin_builder.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from xamarin_builder import __version__
from xamarin_builder.config import Settings, get_settings, print_settings_json
from xamarin_builder.types import PlatformKind, TestFramework

app = typer.Typer(
    name="xamarin-builder",
    help="Xamarin Builder - build every project in a solution and collect its artifacts",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"xamarin-builder version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records through rich at the configured level."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def print_json_text(text: str) -> None:
    """Print JSON unwrapped and without markup so it stays machine readable."""
    console.print(text, soft_wrap=True, markup=False, highlight=False)


def load_settings(**overrides: Any) -> Settings:
    """Load settings, exiting with code 1 on invalid input."""
    try:
        return get_settings(**overrides)
    except ValidationError as e:
        console.print("[red]Issue with input:[/red]")
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "settings"
            console.print(f"  - {location}: {escape(error['msg'])}")
        raise typer.Exit(code=1) from None


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Xamarin Builder - build every project in a solution and collect its artifacts."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = load_settings()
    if json_output:
        print_json_text(print_settings_json(settings))
        return

    whitelist = ", ".join(k.value for k in settings.whitelist()) or "(all)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Build inputs:[/bold]")
    console.print(f"  Solution:            {settings.xamarin_solution or '(not set)'}")
    console.print(f"  Configuration:       {settings.xamarin_configuration or '(not set)'}")
    console.print(f"  Platform:            {settings.xamarin_platform or '(not set)'}")
    console.print(f"  Project types:       {whitelist}")
    console.print(f"  Build tool:          {settings.build_tool.value}")
    console.print(f"  Clean build:         {settings.clean_build}")
    console.print()
    console.print("[bold]Custom options:[/bold]")
    console.print(f"  Android:             {settings.android_build_command_custom_options}")
    console.print(f"  iOS:                 {settings.ios_build_command_custom_options}")
    console.print(f"  tvOS:                {settings.tvos_build_command_custom_options}")
    console.print(f"  macOS:               {settings.macos_build_command_custom_options}")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Deploy directory:    {settings.deploy_dir}")
    console.print(f"  Archives directory:  {settings.xcode_archives_dir}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Build timeout:       {settings.build_timeout}")


@app.command()
def projects(
    solution_path: Annotated[Path, typer.Argument(help="Path to the solution (.sln)")],
    whitelist: Annotated[
        str | None,
        typer.Option("--whitelist", "-w", help="Comma separated project types"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List the projects of a solution and whether they would be built."""
    from xamarin_builder.solution import ParseError, is_allowed, parse_solution

    settings = load_settings(project_type_whitelist=whitelist)
    configure_logging(settings.log_level)
    allowed_kinds = settings.whitelist()

    try:
        solution = parse_solution(solution_path)
    except ParseError as e:
        console.print(f"[red]Failed to parse solution: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    rows = [
        {
            "name": p.name,
            "path": str(p.file_path),
            "platform": p.platform_kind.value if p.platform_kind else None,
            "test_framework": p.test_framework.value,
            "assembly_name": p.assembly_name,
            "dependencies": sorted(p.dependencies),
            "allowed": is_allowed(p.platform_kind, allowed_kinds)
            and p.test_framework == TestFramework.NONE,
        }
        for p in solution.projects
    ]

    if json_output:
        output = {
            "solution": str(solution.path),
            "configurations": solution.config_list(),
            "projects": rows,
        }
        print_json_text(json.dumps(output, indent=2))
        return

    console.print(f"[bold]Solution: {solution.path}[/bold]")
    console.print(f"  Configurations: {', '.join(solution.config_list()) or '(none)'}")
    console.print()
    console.print(f"[bold]Found {len(rows)} project(s):[/bold]")
    for row in rows:
        marker = "[green]build[/green]" if row["allowed"] else "[yellow]skip[/yellow]"
        console.print(f"  {marker} {row['name']}")
        console.print(f"    Platform: {row['platform'] or '-'}")
        console.print(f"    Assembly: {row['assembly_name']}")
        if row["test_framework"] != TestFramework.NONE.value:
            console.print(f"    Test framework: {row['test_framework']}")
        if row["dependencies"]:
            console.print(f"    References: {', '.join(row['dependencies'])}")


@app.command()
def build(
    solution: Annotated[
        Path | None,
        typer.Option("--solution", "-s", help="Path to the solution (.sln)"),
    ] = None,
    configuration: Annotated[
        str | None,
        typer.Option("--configuration", "-c", help="Solution configuration"),
    ] = None,
    platform: Annotated[
        str | None,
        typer.Option("--platform", "-p", help="Solution platform"),
    ] = None,
    whitelist: Annotated[
        str | None,
        typer.Option("--whitelist", "-w", help="Comma separated project types"),
    ] = None,
    build_tool: Annotated[
        str | None,
        typer.Option("--build-tool", help="Build tool: msbuild or xbuild"),
    ] = None,
    deploy_dir: Annotated[
        Path | None,
        typer.Option("--deploy-dir", "-o", help="Directory to export artifacts to"),
    ] = None,
    clean: Annotated[
        bool | None,
        typer.Option("--clean/--no-clean", help="Clean projects before building"),
    ] = None,
    export: Annotated[
        bool,
        typer.Option("--export/--no-export", help="Export artifacts to the deploy directory"),
    ] = True,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output result as JSON"),
    ] = False,
) -> None:
    """Build every allowed project in the solution and export its outputs."""
    from xamarin_builder.builds.export import ExportError
    from xamarin_builder.builds.orchestrator import (
        BuildFailedError,
        InvalidConfigurationError,
    )
    from xamarin_builder.builds.runner import BuildExecutionError
    from xamarin_builder.builds.service import (
        BuildServiceError,
        NoOutputsError,
        build_solution,
    )
    from xamarin_builder.solution import ParseError

    settings = load_settings(
        xamarin_solution=solution,
        xamarin_configuration=configuration,
        xamarin_platform=platform,
        project_type_whitelist=whitelist,
        build_tool=build_tool,
        deploy_dir=deploy_dir,
        clean_build=clean,
    )
    configure_logging(settings.log_level)

    missing = settings.missing_build_inputs()
    if missing:
        console.print(f"[red]Issue with input: missing {', '.join(missing)}[/red]")
        raise typer.Exit(code=1)

    if not json_output:
        console.print("[bold]Configs:[/bold]")
        console.print(f"  - Solution: {settings.xamarin_solution}")
        console.print(f"  - Configuration: {settings.xamarin_configuration}")
        console.print(f"  - Platform: {settings.xamarin_platform}")
        console.print(f"  - Project types: {settings.project_type_whitelist or '(all)'}")
        console.print(f"  - Build tool: {settings.build_tool.value}")
        console.print(f"  - Deploy dir: {settings.deploy_dir}")

    def on_built(
        solution_name: str,
        project_name: str,
        platform_kind: PlatformKind,
        test_framework: TestFramework,
        command: str,
        already_performed: bool,
    ) -> None:
        if json_output:
            return
        console.print()
        console.print(f"[bold blue]Building project: {project_name}[/bold blue]")
        console.print(f"[green]$ {escape(command)}[/green]", highlight=False)
        if already_performed:
            console.print("[yellow]build command already performed, skipping...[/yellow]")

    try:
        result = build_solution(settings, on_built=on_built, export=export)
    except BuildFailedError as e:
        if e.output:
            console.print(e.output.rstrip(), markup=False, highlight=False)
        for warning in e.warnings:
            console.print(f"[yellow]{escape(warning)}[/yellow]", highlight=False)
        console.print(f"[red]Build failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None
    except (
        BuildServiceError,
        BuildExecutionError,
        ExportError,
        InvalidConfigurationError,
        NoOutputsError,
        ParseError,
    ) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "solution": result.solution,
            "warnings": result.warnings,
            "outputs": {
                name: [
                    {"path": str(a.path), "type": a.output_type.value}
                    for a in project_output.outputs
                ]
                for name, project_output in result.outputs.items()
            },
            "exported": [
                {"env_key": e.env_key, "path": str(e.deploy_path)} for e in result.exported
            ],
            "manifest": str(result.manifest_path) if result.manifest_path else None,
        }
        print_json_text(json.dumps(output, indent=2))
        return

    if result.warnings:
        console.print()
        console.print("[yellow]Build warnings:[/yellow]")
        for warning in result.warnings:
            console.print(f"  [yellow]{escape(warning)}[/yellow]", highlight=False)

    exported_by_source = {e.source_path: e for e in result.exported}
    console.print()
    console.print("[bold]Generated outputs:[/bold]")
    for project_name, project_output in result.outputs.items():
        count = len(project_output.outputs)
        console.print()
        console.print(f"[green]{project_name} outputs ({count}):[/green]")
        for i, artifact in enumerate(project_output.outputs, start=1):
            console.print(
                f"  {i}/{count} - {artifact.path} - Type: {artifact.output_type.value}"
            )
            exported = exported_by_source.get(artifact.path)
            if exported is not None:
                console.print(f"    {exported.env_key}: {exported.deploy_path}")

    if result.manifest_path:
        console.print()
        console.print(f"Manifest: {result.manifest_path}")


if __name__ == "__main__":
    app()
