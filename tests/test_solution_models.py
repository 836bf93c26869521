"""Tests for solution/models.py module."""

from pathlib import Path

import pytest

from xamarin_builder.solution.models import (
    Project,
    ProjectConfig,
    Solution,
    is_allowed,
    resolve_output_directory,
    split_config_key,
    to_posix,
)
from xamarin_builder.types import PlatformKind


def make_project(tmp_path: Path, **kwargs) -> Project:
    """Create an in-memory project rooted in tmp_path."""
    defaults = {
        "name": "App",
        "file_path": tmp_path / "App" / "App.csproj",
        "platform_kind": PlatformKind.IOS,
        "assembly_name": "App",
    }
    defaults.update(kwargs)
    return Project(**defaults)


class TestIsAllowed:
    """Tests for the project type allow-list."""

    @pytest.mark.parametrize("kind", list(PlatformKind))
    def test_empty_whitelist_allows_every_kind(self, kind: PlatformKind) -> None:
        """An empty allow-list allows all four kinds."""
        assert is_allowed(kind, [])
        assert is_allowed(kind, None)

    @pytest.mark.parametrize("kind", list(PlatformKind))
    def test_whitelist_matches_exactly(self, kind: PlatformKind) -> None:
        """A non-empty allow-list only allows its entries."""
        assert is_allowed(kind, [kind])
        others = [k for k in PlatformKind if k != kind]
        assert not is_allowed(kind, others)

    def test_ios_does_not_allow_tvos(self) -> None:
        """Kinds are not matched by prefix or family."""
        assert not is_allowed(PlatformKind.TVOS, [PlatformKind.IOS])

    def test_no_platform_kind_never_allowed(self) -> None:
        """Projects without a platform kind are never allowed."""
        assert not is_allowed(None, [])
        assert not is_allowed(None, list(PlatformKind))


class TestHelpers:
    """Tests for key and path helpers."""

    def test_split_config_key(self) -> None:
        """Keys split on the first pipe and are stripped."""
        assert split_config_key("Release | Any CPU") == ("Release", "Any CPU")

    def test_to_posix(self) -> None:
        """Windows separators become POSIX separators."""
        assert to_posix("bin\\iPhone\\Release\\") == "bin/iPhone/Release"
        assert to_posix("..\\Core\\Core.csproj") == "../Core/Core.csproj"


class TestProject:
    """Tests for Project configuration lookups."""

    def test_target_name_replaces_dots(self, tmp_path: Path) -> None:
        """Solution target names use underscores for dots."""
        project = make_project(tmp_path, name="Sample.App.iOS")
        assert project.target_name == "Sample_App_iOS"

    def test_project_config_uses_solution_mapping(self, tmp_path: Path) -> None:
        """Solution pairs map to the project's own pair."""
        project = make_project(
            tmp_path, solution_configs={"Release|Any CPU": "Release|iPhoneSimulator"}
        )
        assert project.project_config("Release", "Any CPU") == ("Release", "iPhoneSimulator")

    def test_project_config_falls_back_to_solution_pair(self, tmp_path: Path) -> None:
        """Unmapped pairs are used as-is."""
        project = make_project(tmp_path)
        assert project.project_config("Debug", "iPhone") == ("Debug", "iPhone")

    def test_config_for_any_cpu_spellings(self, tmp_path: Path) -> None:
        """'Any CPU' finds a group declared as 'AnyCPU'."""
        config = ProjectConfig("Release", "AnyCPU", output_path="bin/Release")
        project = make_project(tmp_path, configs={"Release|AnyCPU": config})
        assert project.config_for("Release", "Any CPU") == config
        assert project.config_for("Debug", "Any CPU") is None

    def test_builds_in(self, tmp_path: Path) -> None:
        """builds_in reflects the solution's Build.0 entries."""
        project = make_project(tmp_path, build_configs={"Release|iPhone"})
        assert project.builds_in("Release", "iPhone")
        assert not project.builds_in("Release", "Any CPU")


class TestSolution:
    """Tests for Solution lookups."""

    def test_has_config_and_list(self, tmp_path: Path) -> None:
        """Declared pairs are queryable and listed sorted."""
        solution = Solution(
            path=tmp_path / "App.sln",
            configurations={("Release", "iPhone"), ("Debug", "Any CPU")},
        )
        assert solution.name == "App"
        assert solution.has_config("Release", "iPhone")
        assert not solution.has_config("Release", "Any CPU")
        assert solution.config_list() == ["Debug|Any CPU", "Release|iPhone"]

    def test_project_lookup(self, tmp_path: Path) -> None:
        """Projects are found by name."""
        project = make_project(tmp_path)
        solution = Solution(path=tmp_path / "App.sln", projects=[project])
        assert solution.project("App") is project
        assert solution.project("Missing") is None


class TestResolveOutputDirectory:
    """Tests for resolve_output_directory."""

    def test_declared_output_path(self, tmp_path: Path) -> None:
        """The declared OutputPath is joined to the project directory."""
        config = ProjectConfig("Release", "iPhone", output_path="bin/iPhone/Release")
        project = make_project(tmp_path, configs={"Release|iPhone": config})
        result = resolve_output_directory(project, "Release", "iPhone")
        assert result == tmp_path / "App" / "bin" / "iPhone" / "Release"

    def test_output_path_is_normalized(self, tmp_path: Path) -> None:
        """Relative segments in OutputPath are collapsed."""
        config = ProjectConfig("Release", "iPhone", output_path="../build/Release")
        project = make_project(tmp_path, configs={"Release|iPhone": config})
        result = resolve_output_directory(project, "Release", "iPhone")
        assert result == tmp_path / "build" / "Release"

    def test_mapped_configuration(self, tmp_path: Path) -> None:
        """The solution mapping selects which group's OutputPath is used."""
        configs = {
            "Release|iPhone": ProjectConfig("Release", "iPhone", output_path="bin/device"),
            "Release|iPhoneSimulator": ProjectConfig(
                "Release", "iPhoneSimulator", output_path="bin/simulator"
            ),
        }
        project = make_project(
            tmp_path,
            configs=configs,
            solution_configs={"Release|Any CPU": "Release|iPhoneSimulator"},
        )
        result = resolve_output_directory(project, "Release", "Any CPU")
        assert result == tmp_path / "App" / "bin" / "simulator"

    def test_default_ios_output_path(self, tmp_path: Path) -> None:
        """iOS projects default to bin/<platform>/<configuration>."""
        project = make_project(tmp_path)
        result = resolve_output_directory(project, "Release", "iPhone")
        assert result == tmp_path / "App" / "bin" / "iPhone" / "Release"

    def test_default_android_output_path(self, tmp_path: Path) -> None:
        """Android projects default to bin/<configuration>."""
        project = make_project(tmp_path, platform_kind=PlatformKind.ANDROID)
        result = resolve_output_directory(project, "Release", "Any CPU")
        assert result == tmp_path / "App" / "bin" / "Release"

    def test_default_sdk_output_path(self, tmp_path: Path) -> None:
        """SDK-style projects include the target framework."""
        project = make_project(
            tmp_path, platform_kind=PlatformKind.ANDROID, target_framework="net8.0-android"
        )
        result = resolve_output_directory(project, "Release", "Any CPU")
        assert result == tmp_path / "App" / "bin" / "Release" / "net8.0-android"

    def test_is_pure(self, tmp_path: Path) -> None:
        """Resolving twice gives the same answer and touches no files."""
        project = make_project(tmp_path)
        first = resolve_output_directory(project, "Release", "iPhone")
        second = resolve_output_directory(project, "Release", "iPhone")
        assert first == second
        assert not (tmp_path / "App").exists()
