"""Shared type definitions for xamarin_builder.

This module contains the closed enums and dataclasses shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class PlatformKind(str, Enum):
    """Platform an app project targets."""

    ANDROID = "android"
    IOS = "ios"
    TVOS = "tvos"
    MACOS = "macos"

    @classmethod
    def parse(cls, value: str) -> "PlatformKind":
        """Parse a platform kind name, case-insensitively.

        Raises:
            ValueError: If the name is not a known platform kind.
        """
        normalized = value.strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        valid = ", ".join(k.value for k in cls)
        raise ValueError(f"Unknown project type '{value}' (valid: {valid})")


class TestFramework(str, Enum):
    """Test framework a project references, if any."""

    __test__ = False

    NONE = "none"
    XAMARIN_UITEST = "xamarin-uitest"
    NUNIT = "nunit"
    NUNIT_LITE = "nunit-lite"


class OutputType(str, Enum):
    """Kind of artifact a build can produce."""

    APK = "apk"
    AAB = "aab"
    XCARCHIVE = "xcarchive"
    IPA = "ipa"
    DSYM = "dsym"
    APP = "app"
    PKG = "pkg"


class BuildTool(str, Enum):
    """External build tool used to build projects."""

    MSBUILD = "msbuild"
    XBUILD = "xbuild"


# Output types each platform may produce, in collection order
PLATFORM_OUTPUT_TYPES: dict[PlatformKind, tuple[OutputType, ...]] = {
    PlatformKind.ANDROID: (OutputType.APK, OutputType.AAB),
    PlatformKind.IOS: (
        OutputType.XCARCHIVE,
        OutputType.IPA,
        OutputType.DSYM,
        OutputType.APP,
    ),
    PlatformKind.TVOS: (
        OutputType.XCARCHIVE,
        OutputType.IPA,
        OutputType.DSYM,
        OutputType.APP,
    ),
    PlatformKind.MACOS: (OutputType.XCARCHIVE, OutputType.APP, OutputType.PKG),
}


@dataclass(frozen=True)
class OutputArtifact:
    """A discovered build output with its classified type."""

    path: Path
    output_type: OutputType


@dataclass
class ProjectOutput:
    """All artifacts resolved for one project after the build phase."""

    project_name: str
    platform_kind: PlatformKind
    outputs: list[OutputArtifact] = field(default_factory=list)


__all__ = [
    "PLATFORM_OUTPUT_TYPES",
    "BuildTool",
    "OutputArtifact",
    "OutputType",
    "PlatformKind",
    "ProjectOutput",
    "TestFramework",
]
