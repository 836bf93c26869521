"""Output classification.

Maps a resolved path to a typed artifact for a platform kind. Paths whose
suffix is not in the platform's output set are dropped, not rejected.
"""

from __future__ import annotations

from pathlib import Path

from xamarin_builder.types import (
    PLATFORM_OUTPUT_TYPES,
    OutputArtifact,
    OutputType,
    PlatformKind,
)

# Lowercase suffixes, most specific first
SUFFIX_OUTPUT_TYPES: list[tuple[str, OutputType]] = [
    (".app.dsym", OutputType.DSYM),
    (".xcarchive", OutputType.XCARCHIVE),
    (".ipa", OutputType.IPA),
    (".apk", OutputType.APK),
    (".aab", OutputType.AAB),
    (".app", OutputType.APP),
    (".pkg", OutputType.PKG),
]

# Outputs that are directories on disk
DIRECTORY_OUTPUT_TYPES = frozenset(
    {OutputType.XCARCHIVE, OutputType.APP, OutputType.DSYM}
)

# Directory outputs exported as a zip rather than copied
ZIPPED_OUTPUT_TYPES = frozenset({OutputType.DSYM})


def output_type_for(path: Path | str) -> OutputType | None:
    """Output type implied by a path's suffix, case-insensitively."""
    name = Path(path).name.lower()
    for suffix, output_type in SUFFIX_OUTPUT_TYPES:
        if name.endswith(suffix):
            return output_type
    return None


def classify(platform_kind: PlatformKind, path: Path | str) -> OutputArtifact | None:
    """Classify a resolved path for a platform kind.

    Args:
        platform_kind: Platform of the project that produced the path.
        path: Resolved artifact path.

    Returns:
        OutputArtifact, or None if the suffix is unknown or not produced
        by this platform.
    """
    output_type = output_type_for(path)
    if output_type is None or output_type not in PLATFORM_OUTPUT_TYPES[platform_kind]:
        return None
    return OutputArtifact(path=Path(path), output_type=output_type)


__all__ = [
    "DIRECTORY_OUTPUT_TYPES",
    "SUFFIX_OUTPUT_TYPES",
    "ZIPPED_OUTPUT_TYPES",
    "classify",
    "output_type_for",
]
