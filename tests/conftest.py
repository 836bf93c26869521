"""Shared fixtures for xamarin_builder tests.

Writes small but realistic solution trees (classic Xamarin project files,
Visual Studio solution files) into tmp_path.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from xamarin_builder.builds.runner import CommandResult

CSHARP_GUID = "FAE04EC0-301F-11D3-BF4B-00C04F79EFBC"
ANDROID_GUID = "EFBA0AD7-5A72-4C68-AF49-83D382785DCF"
IOS_GUID = "FEACFBD2-3405-455C-9665-78FE426C6842"
FOLDER_GUID = "2150E333-8FDC-42A3-9474-1A3956D46DE8"

CORE_ID = "0D1A6F0C-3E59-4B0A-9C1B-1A2B3C4D5E01"
DROID_ID = "0D1A6F0C-3E59-4B0A-9C1B-1A2B3C4D5E02"
IOS_ID = "0D1A6F0C-3E59-4B0A-9C1B-1A2B3C4D5E03"
UITEST_ID = "0D1A6F0C-3E59-4B0A-9C1B-1A2B3C4D5E04"
FOLDER_ID = "0D1A6F0C-3E59-4B0A-9C1B-1A2B3C4D5E05"

MSBUILD_NS = "http://schemas.microsoft.com/developer/msbuild/2003"

CORE_PROJECT = f"""<?xml version="1.0" encoding="utf-8"?>
<Project DefaultTargets="Build" ToolsVersion="4.0" xmlns="{MSBUILD_NS}">
  <PropertyGroup>
    <Configuration Condition=" '$(Configuration)' == '' ">Debug</Configuration>
    <OutputType>Library</OutputType>
    <AssemblyName>XamarinSample.Core</AssemblyName>
  </PropertyGroup>
  <PropertyGroup Condition=" '$(Configuration)|$(Platform)' == 'Release|AnyCPU' ">
    <OutputPath>bin\\Release</OutputPath>
  </PropertyGroup>
</Project>
"""

DROID_PROJECT = f"""<?xml version="1.0" encoding="utf-8"?>
<Project DefaultTargets="Build" ToolsVersion="4.0" xmlns="{MSBUILD_NS}">
  <PropertyGroup>
    <Configuration Condition=" '$(Configuration)' == '' ">Debug</Configuration>
    <Platform Condition=" '$(Platform)' == '' ">AnyCPU</Platform>
    <ProjectTypeGuids>{{{ANDROID_GUID}}};{{{CSHARP_GUID}}}</ProjectTypeGuids>
    <OutputType>Library</OutputType>
    <AssemblyName>XamarinSample.Droid</AssemblyName>
    <AndroidApplication>True</AndroidApplication>
    <AndroidManifest>Properties\\AndroidManifest.xml</AndroidManifest>
  </PropertyGroup>
  <PropertyGroup Condition=" '$(Configuration)|$(Platform)' == 'Release|AnyCPU' ">
    <OutputPath>bin\\Release</OutputPath>
  </PropertyGroup>
  <ItemGroup>
    <Reference Include="System" />
    <Reference Include="Mono.Android" />
  </ItemGroup>
  <ItemGroup>
    <ProjectReference Include="..\\XamarinSample.Core\\XamarinSample.Core.csproj">
      <Name>XamarinSample.Core</Name>
    </ProjectReference>
  </ItemGroup>
</Project>
"""

ANDROID_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package="com.example.sample" android:versionCode="1">
  <application android:label="Sample"></application>
</manifest>
"""

IOS_PROJECT = f"""<?xml version="1.0" encoding="utf-8"?>
<Project DefaultTargets="Build" ToolsVersion="4.0" xmlns="{MSBUILD_NS}">
  <PropertyGroup>
    <Configuration Condition=" '$(Configuration)' == '' ">Debug</Configuration>
    <Platform Condition=" '$(Platform)' == '' ">iPhoneSimulator</Platform>
    <ProjectTypeGuids>{{{IOS_GUID}}};{{{CSHARP_GUID}}}</ProjectTypeGuids>
    <OutputType>Exe</OutputType>
    <AssemblyName>XamarinSampleiOS</AssemblyName>
  </PropertyGroup>
  <PropertyGroup Condition=" '$(Configuration)|$(Platform)' == 'Release|iPhone' ">
    <OutputPath>bin\\iPhone\\Release</OutputPath>
    <MtouchArch>ARMv7, ARM64</MtouchArch>
  </PropertyGroup>
  <PropertyGroup Condition=" '$(Configuration)|$(Platform)' == 'Release|iPhoneSimulator' ">
    <OutputPath>bin\\iPhoneSimulator\\Release</OutputPath>
    <MtouchArch>x86_64</MtouchArch>
  </PropertyGroup>
  <ItemGroup>
    <Reference Include="Xamarin.iOS" />
  </ItemGroup>
  <ItemGroup>
    <ProjectReference Include="..\\XamarinSample.Core\\XamarinSample.Core.csproj" />
  </ItemGroup>
</Project>
"""

UITEST_PROJECT = f"""<?xml version="1.0" encoding="utf-8"?>
<Project DefaultTargets="Build" ToolsVersion="4.0" xmlns="{MSBUILD_NS}">
  <PropertyGroup>
    <OutputType>Library</OutputType>
    <AssemblyName>XamarinSample.UITests</AssemblyName>
  </PropertyGroup>
  <ItemGroup>
    <Reference Include="nunit.framework" />
    <Reference Include="Xamarin.UITest, Version=2.2.0.0, Culture=neutral" />
  </ItemGroup>
</Project>
"""

SOLUTION = f"""Microsoft Visual Studio Solution File, Format Version 12.00
# Visual Studio 2012
Project("{{{CSHARP_GUID}}}") = "XamarinSample.Core", "XamarinSample.Core\\XamarinSample.Core.csproj", "{{{CORE_ID}}}"
EndProject
Project("{{{CSHARP_GUID}}}") = "XamarinSample.Droid", "XamarinSample.Droid\\XamarinSample.Droid.csproj", "{{{DROID_ID}}}"
EndProject
Project("{{{CSHARP_GUID}}}") = "XamarinSample.iOS", "XamarinSample.iOS\\XamarinSample.iOS.csproj", "{{{IOS_ID}}}"
EndProject
Project("{{{CSHARP_GUID}}}") = "XamarinSample.UITests", "XamarinSample.UITests\\XamarinSample.UITests.csproj", "{{{UITEST_ID}}}"
EndProject
Project("{{{FOLDER_GUID}}}") = "Solution Items", "Solution Items", "{{{FOLDER_ID}}}"
\tProjectSection(SolutionItems) = preProject
\t\tREADME.md = README.md
\tEndProjectSection
EndProject
Global
\tGlobalSection(SolutionConfigurationPlatforms) = preSolution
\t\tDebug|Any CPU = Debug|Any CPU
\t\tRelease|Any CPU = Release|Any CPU
\t\tRelease|iPhone = Release|iPhone
\tEndGlobalSection
\tGlobalSection(ProjectConfigurationPlatforms) = postSolution
\t\t{{{CORE_ID}}}.Release|Any CPU.ActiveCfg = Release|Any CPU
\t\t{{{CORE_ID}}}.Release|Any CPU.Build.0 = Release|Any CPU
\t\t{{{CORE_ID}}}.Release|iPhone.ActiveCfg = Release|Any CPU
\t\t{{{CORE_ID}}}.Release|iPhone.Build.0 = Release|Any CPU
\t\t{{{DROID_ID}}}.Release|Any CPU.ActiveCfg = Release|Any CPU
\t\t{{{DROID_ID}}}.Release|Any CPU.Build.0 = Release|Any CPU
\t\t{{{DROID_ID}}}.Release|iPhone.ActiveCfg = Release|Any CPU
\t\t{{{IOS_ID}}}.Release|Any CPU.ActiveCfg = Release|iPhoneSimulator
\t\t{{{IOS_ID}}}.Release|iPhone.ActiveCfg = Release|iPhone
\t\t{{{IOS_ID}}}.Release|iPhone.Build.0 = Release|iPhone
\t\t{{{UITEST_ID}}}.Release|Any CPU.ActiveCfg = Release|Any CPU
\t\t{{{UITEST_ID}}}.Release|Any CPU.Build.0 = Release|Any CPU
\tEndGlobalSection
EndGlobal
"""


def write_file(path: Path, content: str) -> Path:
    """Write text to path, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def sample_solution(tmp_path: Path) -> Path:
    """Write the sample solution tree and return the .sln path."""
    root = tmp_path / "XamarinSample"
    write_file(root / "XamarinSample.Core" / "XamarinSample.Core.csproj", CORE_PROJECT)
    write_file(root / "XamarinSample.Droid" / "XamarinSample.Droid.csproj", DROID_PROJECT)
    write_file(
        root / "XamarinSample.Droid" / "Properties" / "AndroidManifest.xml",
        ANDROID_MANIFEST,
    )
    write_file(root / "XamarinSample.iOS" / "XamarinSample.iOS.csproj", IOS_PROJECT)
    write_file(
        root / "XamarinSample.UITests" / "XamarinSample.UITests.csproj", UITEST_PROJECT
    )
    return write_file(root / "XamarinSample.sln", SOLUTION)


class FakeRunner:
    """CommandRunner double that records invocations."""

    def __init__(self, exit_codes: list[int] | None = None, output: str = "") -> None:
        self.exit_codes = list(exit_codes or [])
        self.output = output
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], cwd: Path) -> CommandResult:
        self.calls.append(args)
        exit_code = self.exit_codes.pop(0) if self.exit_codes else 0
        now = datetime.now(timezone.utc)
        return CommandResult(
            exit_code=exit_code, output=self.output, started_at=now, finished_at=now
        )


@pytest.fixture
def fake_runner() -> FakeRunner:
    """A runner whose builds always succeed."""
    return FakeRunner()


@pytest.fixture
def runner_factory() -> type[FakeRunner]:
    """The FakeRunner class, for tests that script exit codes or output."""
    return FakeRunner
