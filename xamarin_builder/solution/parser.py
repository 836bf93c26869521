"""Solution and project file parsing.

This module handles:
- Reading .sln files (projects, solution configurations, project mappings)
- Reading .csproj/.fsproj MSBuild XML (project type, assembly name,
  per-configuration output paths, references)
- Reading the package name from an AndroidManifest.xml
"""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from pathlib import Path

from xamarin_builder.solution.models import (
    Project,
    ProjectConfig,
    Solution,
    split_config_key,
    to_posix,
)
from xamarin_builder.types import PlatformKind, TestFramework

logger = logging.getLogger(__name__)

SOLUTION_EXT = ".sln"
PROJECT_EXTS = {".csproj", ".fsproj", ".vbproj"}
SOLUTION_HEADER = "Microsoft Visual Studio Solution File"

# ProjectTypeGuids used by Xamarin app projects (classic and unified)
PROJECT_TYPE_GUIDS: dict[str, PlatformKind] = {
    "EFBA0AD7-5A72-4C68-AF49-83D382785DCF": PlatformKind.ANDROID,
    "FEACFBD2-3405-455C-9665-78FE426C6842": PlatformKind.IOS,
    "6BC8ED88-2882-458C-8E55-DFD12B67127B": PlatformKind.IOS,
    "06FA79CB-D6CD-4721-BB4B-1BD202089C55": PlatformKind.TVOS,
    "A3F8F2AB-B479-4A4A-A458-A89E7DC349F1": PlatformKind.MACOS,
    "42C0BBD9-55CE-4FC1-8D90-A7348ABAFB23": PlatformKind.MACOS,
}

# Platform suffixes of SDK-style target frameworks (net6.0-android, ...)
TARGET_FRAMEWORK_SUFFIXES: dict[str, PlatformKind] = {
    "android": PlatformKind.ANDROID,
    "ios": PlatformKind.IOS,
    "tvos": PlatformKind.TVOS,
    "macos": PlatformKind.MACOS,
}

# Checked in order; UITest projects also reference nunit.framework
TEST_FRAMEWORK_REFERENCES: list[tuple[str, TestFramework]] = [
    ("xamarin.uitest", TestFramework.XAMARIN_UITEST),
    ("monotouch.nunitlite", TestFramework.NUNIT_LITE),
    ("xamarin.android.nunitlite", TestFramework.NUNIT_LITE),
    ("nunit.framework", TestFramework.NUNIT),
    ("nunit", TestFramework.NUNIT),
]

SOLUTION_PROJECT_PATTERN = re.compile(
    r'^Project\("\{(?P<type>[^}]+)\}"\)\s*=\s*"(?P<name>[^"]+)"\s*,\s*'
    r'"(?P<path>[^"]+)"\s*,\s*"\{(?P<id>[^}]+)\}"'
)
PROJECT_CONFIG_PATTERN = re.compile(
    r"^\{(?P<id>[^}]+)\}\.(?P<config>.+?)\.(?P<kind>ActiveCfg|Build\.0)\s*=\s*"
    r"(?P<value>.+)$"
)
CONFIG_CONDITION_PATTERN = re.compile(
    r"'\s*\$\(Configuration\)\s*\|\s*\$\(Platform\)\s*'\s*==\s*'(?P<config>[^']*)'"
)


class ParseError(Exception):
    """Raised when a solution, project, or manifest file cannot be parsed."""

    def __init__(self, message: str, path: Path | None = None, code: str = "parse_error") -> None:
        super().__init__(message)
        self.path = path
        self.code = code


def _local_name(tag: str) -> str:
    """Strip the XML namespace from an element tag."""
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local_name(child.tag) == name]


def _normalize_path(path: Path) -> Path:
    return Path(os.path.normpath(path.absolute()))


def _is_true(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "true"


def _read_xml(path: Path) -> ET.Element:
    try:
        return ET.parse(path).getroot()
    except FileNotFoundError as e:
        raise ParseError(f"File not found: {path}", path=path) from e
    except (ET.ParseError, OSError) as e:
        raise ParseError(f"Failed to parse {path}: {e}", path=path) from e


def detect_platform_kind(
    type_guids: str | None,
    target_frameworks: list[str],
) -> PlatformKind | None:
    """Detect the platform kind from ProjectTypeGuids or target frameworks.

    Args:
        type_guids: Raw ProjectTypeGuids value ('{GUID};{GUID}').
        target_frameworks: SDK-style target framework monikers.

    Returns:
        The platform kind, or None for non-platform projects.
    """
    if type_guids:
        for raw in type_guids.split(";"):
            guid = raw.strip().strip("{}").upper()
            if guid in PROJECT_TYPE_GUIDS:
                return PROJECT_TYPE_GUIDS[guid]

    for framework in target_frameworks:
        _, _, suffix = framework.strip().lower().partition("-")
        # net8.0-ios17.0 carries an OS version after the platform name
        platform_name = suffix.rstrip("0123456789.")
        if platform_name in TARGET_FRAMEWORK_SUFFIXES:
            return TARGET_FRAMEWORK_SUFFIXES[platform_name]

    return None


def detect_test_framework(references: list[str]) -> TestFramework:
    """Detect the test framework from assembly and package reference names."""
    lowered = {ref.lower() for ref in references}
    for reference, framework in TEST_FRAMEWORK_REFERENCES:
        if reference in lowered:
            return framework
    return TestFramework.NONE


def parse_project(path: Path, name: str | None = None) -> Project:
    """Parse a project file.

    Args:
        path: Path to the project file.
        name: Project name as declared by the solution (defaults to file stem).

    Returns:
        Parsed Project.

    Raises:
        ParseError: If the file is missing or is not valid project XML.
    """
    path = _normalize_path(path)
    root = _read_xml(path)
    if _local_name(root.tag) != "Project":
        raise ParseError(
            f"Not an MSBuild project (root element <{_local_name(root.tag)}>): {path}",
            path=path,
        )

    sdk_style = root.get("Sdk") is not None
    properties: dict[str, str] = {}
    configs: dict[str, ProjectConfig] = {}

    for group in _children(root, "PropertyGroup"):
        condition = group.get("Condition")
        values = {
            _local_name(child.tag): (child.text or "").strip()
            for child in group
            if child.get("Condition") is None
        }
        if condition is None:
            for key, value in values.items():
                properties.setdefault(key, value)
            continue

        match = CONFIG_CONDITION_PATTERN.search(condition)
        if not match:
            continue
        configuration, platform = split_config_key(match.group("config"))
        output_path = values.get("OutputPath")
        architectures = tuple(
            arch.strip()
            for arch in values.get("MtouchArch", "").split(",")
            if arch.strip()
        )
        configs[match.group("config")] = ProjectConfig(
            configuration=configuration,
            platform=platform,
            output_path=to_posix(output_path) if output_path else None,
            architectures=architectures,
        )

    references: list[str] = []
    reference_paths: list[Path] = []
    for group in _children(root, "ItemGroup"):
        for item in group:
            include = item.get("Include")
            if not include:
                continue
            item_name = _local_name(item.tag)
            if item_name in ("Reference", "PackageReference"):
                references.append(include.split(",")[0].strip())
            elif item_name == "ProjectReference":
                reference_paths.append(
                    _normalize_path(path.parent / to_posix(include))
                )

    target_frameworks = [
        tf
        for tf in (
            properties.get("TargetFrameworks", "").split(";")
            + [properties.get("TargetFramework", "")]
        )
        if tf.strip()
    ]
    platform_kind = detect_platform_kind(
        properties.get("ProjectTypeGuids"), target_frameworks
    )

    output_type = properties.get("OutputType", "").lower()
    if platform_kind == PlatformKind.ANDROID and not sdk_style:
        is_app = _is_true(properties.get("AndroidApplication"))
    else:
        is_app = output_type in ("exe", "winexe")
    if platform_kind is not None and not is_app:
        logger.debug("Skipping library project: %s", path.name)
        platform_kind = None

    target_framework = None
    if sdk_style and platform_kind is not None:
        target_framework = next(
            (
                tf.strip()
                for tf in target_frameworks
                if detect_platform_kind(None, [tf]) == platform_kind
            ),
            None,
        )

    manifest_path: Path | None = None
    if platform_kind == PlatformKind.ANDROID:
        raw_manifest = properties.get("AndroidManifest")
        candidate = (
            path.parent / to_posix(raw_manifest)
            if raw_manifest
            else path.parent / "Properties" / "AndroidManifest.xml"
        )
        if candidate.is_file():
            manifest_path = candidate

    project = Project(
        name=name or path.stem,
        file_path=path,
        platform_kind=platform_kind,
        test_framework=detect_test_framework(references),
        assembly_name=properties.get("AssemblyName") or path.stem,
        target_framework=target_framework,
        manifest_path=manifest_path,
        configs=configs,
        reference_paths=reference_paths,
    )
    logger.debug(
        "Parsed project %s (kind=%s, assembly=%s, configs=%d)",
        project.name,
        platform_kind.value if platform_kind else None,
        project.assembly_name,
        len(configs),
    )
    return project


def android_package_name(manifest_path: Path) -> str | None:
    """Read the package attribute of an AndroidManifest.xml.

    Raises:
        ParseError: If the manifest cannot be read or parsed.
    """
    root = _read_xml(manifest_path)
    if _local_name(root.tag) != "manifest":
        raise ParseError(
            f"Not an Android manifest: {manifest_path}", path=manifest_path
        )
    return root.get("package") or None


def parse_solution(path: Path) -> Solution:
    """Parse a solution file and every project it references.

    Args:
        path: Path to the .sln file.

    Returns:
        Parsed Solution with projects in declaration order.

    Raises:
        ParseError: If the extension is wrong, the file is missing, or the
            solution or one of its projects is malformed.
    """
    path = Path(path)
    if path.suffix != SOLUTION_EXT:
        raise ParseError(f"Path is not a solution file path: {path}", path=path)
    if not path.is_file():
        raise ParseError(f"Solution does not exist at: {path}", path=path)

    path = _normalize_path(path)
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Failed to read solution {path}: {e}", path=path) from e

    if SOLUTION_HEADER not in content:
        raise ParseError(f"Missing solution file header: {path}", path=path)

    solution = Solution(path=path)
    projects_by_id: dict[str, Project] = {}
    section: str | None = None

    for line_no, raw_line in enumerate(content.splitlines(), start=1):
        line = raw_line.strip()

        if line.startswith("Project("):
            match = SOLUTION_PROJECT_PATTERN.match(line)
            if not match:
                raise ParseError(
                    f"Malformed project declaration at line {line_no}: {line}",
                    path=path,
                )
            relative = to_posix(match.group("path"))
            if Path(relative).suffix.lower() not in PROJECT_EXTS:
                # Solution folders, shared projects, website folders
                continue
            project = parse_project(path.parent / relative, name=match.group("name"))
            projects_by_id[match.group("id").upper()] = project
            solution.projects.append(project)
            continue

        if line.startswith("GlobalSection("):
            section = line[len("GlobalSection(") :].split(")", 1)[0]
            continue
        if line == "EndGlobalSection":
            section = None
            continue

        if section == "SolutionConfigurationPlatforms" and "=" in line:
            key = line.split("=", 1)[0].strip()
            if "|" not in key:
                raise ParseError(
                    f"Malformed solution configuration at line {line_no}: {line}",
                    path=path,
                )
            solution.configurations.add(split_config_key(key))
        elif section == "ProjectConfigurationPlatforms" and line:
            match = PROJECT_CONFIG_PATTERN.match(line)
            if not match:
                continue
            project = projects_by_id.get(match.group("id").upper())
            if project is None:
                continue
            config = match.group("config").strip()
            if match.group("kind") == "ActiveCfg":
                project.solution_configs[config] = match.group("value").strip()
            else:
                project.build_configs.add(config)

    by_path = {p.file_path: p for p in solution.projects}
    for project in solution.projects:
        project.dependencies = {
            by_path[ref].name for ref in project.reference_paths if ref in by_path
        }

    logger.info(
        "Parsed solution %s: %d projects, %d configurations",
        path.name,
        len(solution.projects),
        len(solution.configurations),
    )
    return solution


__all__ = [
    "PROJECT_TYPE_GUIDS",
    "ParseError",
    "android_package_name",
    "detect_platform_kind",
    "detect_test_framework",
    "parse_project",
    "parse_solution",
]
