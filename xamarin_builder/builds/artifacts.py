"""Artifact resolution after the build phase.

This module handles:
- Searching each built project's output directory (and, for archives, the
  Xcode archives directory) for outputs of each expected type
- Narrowing glob results with assembly-name patterns, with a fallback chain
- Picking the most recent archive/IPA from date-stamped paths
- Cross-checking resolved paths against the build time window

The build tool writes no manifest of what it produced, and stale outputs
from earlier runs share the same directories. Resolution is a best-effort
heuristic: a missing artifact is skipped, never raised.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from xamarin_builder.builds.classify import classify
from xamarin_builder.builds.command import archives_on_build
from xamarin_builder.solution.models import Project, resolve_output_directory
from xamarin_builder.solution.parser import ParseError, android_package_name
from xamarin_builder.types import (
    PLATFORM_OUTPUT_TYPES,
    OutputArtifact,
    OutputType,
    PlatformKind,
    ProjectOutput,
)

logger = logging.getLogger(__name__)

# Xcode groups archives by day:
#   Archives/2016-10-07/XamarinSampleApp.iOS 10-07-16 3.41 PM 2.xcarchive
ARCHIVE_DIR_DATE_FORMAT = "%Y-%m-%d"
ARCHIVE_NAME_PATTERN = re.compile(
    r"^.* (?P<date>\d{2}-\d{2}-\d{2} \d{1,2}\.\d{2} (?:AM|PM))"
    r"(?: (?P<count>\d+))?\.xcarchive$"
)
ARCHIVE_NAME_DATE_FORMAT = "%m-%d-%y %I.%M %p"

# IPAs land in a stamped directory per build:
#   bin/iPhone/Release/Multiplatform.iOS 2016-10-06 11-45-23 2/Multiplatform.iOS.ipa
IPA_DIR_PATTERN = re.compile(
    r"^.* (?P<date>\d{4}-\d{2}-\d{2} \d{2}-\d{2}-\d{2})(?: (?P<count>\d+))?$"
)
IPA_DIR_DATE_FORMAT = "%Y-%m-%d %H-%M-%S"

# Tolerance when comparing artifact mtimes with the build window
TIME_WINDOW_SLACK = timedelta(minutes=1)

SortKey = tuple[datetime, datetime, int]
SortKeyFunc = Callable[[Path], SortKey | None]


def archive_sort_key(path: Path) -> SortKey | None:
    """Recency key of an .xcarchive path.

    Primary: the day in the parent directory name. Secondary: date, time and
    optional counter in the file name. No counter counts as 0. A name without
    a stamp sorts below stamped names of the same day, and an unparsable
    stamp below that.

    Returns:
        The key, or None if the directory date cannot be parsed.
    """
    try:
        day = datetime.strptime(path.parent.name, ARCHIVE_DIR_DATE_FORMAT)
    except ValueError:
        logger.warning(
            "Failed to parse xcarchive dir name (%s) with format (%s)",
            path.parent.name,
            ARCHIVE_DIR_DATE_FORMAT,
        )
        return None

    match = ARCHIVE_NAME_PATTERN.match(path.name)
    if not match:
        return (day, datetime.min, 0)
    try:
        stamp = datetime.strptime(match.group("date"), ARCHIVE_NAME_DATE_FORMAT)
    except ValueError:
        logger.warning(
            "Failed to parse xcarchive file name (%s) with format (%s)",
            match.group("date"),
            ARCHIVE_NAME_DATE_FORMAT,
        )
        return (day, datetime.min, -1)
    return (day, stamp, int(match.group("count") or 0))


def ipa_sort_key(path: Path) -> SortKey | None:
    """Recency key of an .ipa path, from its stamped parent directory name.

    An IPA outside a stamped directory sorts below any stamped one.

    Returns:
        The key, or None if the embedded date cannot be parsed.
    """
    match = IPA_DIR_PATTERN.match(path.parent.name)
    if not match:
        return (datetime.min, datetime.min, 0)
    try:
        stamp = datetime.strptime(match.group("date"), IPA_DIR_DATE_FORMAT)
    except ValueError:
        logger.warning(
            "Failed to parse ipa dir name (%s) with format (%s)",
            match.group("date"),
            IPA_DIR_DATE_FORMAT,
        )
        return None
    return (stamp, datetime.min, int(match.group("count") or 0))


def sort_most_recent_first(paths: Iterable[Path], key_func: SortKeyFunc) -> list[Path]:
    """Order paths from most to least recent.

    Equal keys keep their input order. Paths whose key cannot be computed
    go last, in input order.
    """
    keyed: list[tuple[SortKey, Path]] = []
    malformed: list[Path] = []
    for path in paths:
        key = key_func(path)
        if key is None:
            malformed.append(path)
        else:
            keyed.append((key, path))
    # sort() is stable with reverse=True, so ties keep input order
    keyed.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in keyed] + malformed


@dataclass(frozen=True)
class ArtifactSearch:
    """How to find one output type on disk.

    Patterns are matched against the path relative to the search root, in
    POSIX form; ``{name}`` is replaced with the escaped expected name.

    Attributes:
        output_type: Output type searched for.
        globs: Glob patterns relative to the search root.
        marked: Name plus platform marker (signed/stamped) pattern, if any.
        plain: Name plus extension pattern.
        sort_key: Recency key for outputs that accumulate across builds.
        ignore_case: Match patterns case-insensitively.
    """

    output_type: OutputType
    globs: tuple[str, ...]
    marked: str | None
    plain: str
    sort_key: SortKeyFunc | None = None
    ignore_case: bool = False

    def _compile(self, template: str, name: str) -> re.Pattern[str]:
        flags = re.IGNORECASE if self.ignore_case else 0
        return re.compile(template.replace("{name}", re.escape(name)), flags)

    def candidates(self, root: Path) -> list[Path]:
        """Glob results under root, sorted and de-duplicated."""
        if not root.is_dir():
            return []
        found: set[Path] = set()
        for pattern in self.globs:
            found.update(root.glob(pattern))
        return sorted(found)

    def select(self, root: Path, name: str) -> Path | None:
        """Pick the output of this type under root.

        Fallback chain, first non-empty wins: name plus marker, name plus
        extension, every glob result. An empty glob resolves to None.
        """
        candidates = self.candidates(root)
        if not candidates:
            return None

        def matching(template: str) -> list[Path]:
            pattern = self._compile(template, name)
            return [
                c for c in candidates if pattern.fullmatch(c.relative_to(root).as_posix())
            ]

        selected: list[Path] = []
        if self.marked is not None:
            selected = matching(self.marked)
        if not selected:
            selected = matching(self.plain)
        if not selected:
            logger.debug(
                "No %s matches %s under %s, using unfiltered results",
                self.output_type.value,
                name,
                root,
            )
            selected = candidates

        if self.sort_key is not None:
            selected = sort_most_recent_first(selected, self.sort_key)
        return selected[0]


ARTIFACT_SEARCHES: dict[OutputType, ArtifactSearch] = {
    OutputType.APK: ArtifactSearch(
        OutputType.APK,
        globs=("*.apk",),
        marked=r"{name}.*signed\.apk",
        plain=r"{name}\.apk",
        ignore_case=True,
    ),
    OutputType.AAB: ArtifactSearch(
        OutputType.AAB,
        globs=("*.aab",),
        marked=r"{name}.*signed\.aab",
        plain=r"{name}\.aab",
        ignore_case=True,
    ),
    OutputType.XCARCHIVE: ArtifactSearch(
        OutputType.XCARCHIVE,
        globs=("*/*.xcarchive",),
        marked=r"[^/]+/{name} [^/]+\.xcarchive",
        plain=r"[^/]+/{name}[^/]*\.xcarchive",
        sort_key=archive_sort_key,
    ),
    OutputType.IPA: ArtifactSearch(
        OutputType.IPA,
        globs=("*/*.ipa", "*.ipa"),
        marked=r"{name} [^/]+/{name}\.ipa",
        plain=r"(?:[^/]+/)?{name}\.ipa",
        sort_key=ipa_sort_key,
    ),
    OutputType.DSYM: ArtifactSearch(
        OutputType.DSYM,
        globs=("*.app.dSYM",),
        marked=None,
        plain=r"{name}\.app\.dSYM",
    ),
    OutputType.APP: ArtifactSearch(
        OutputType.APP,
        globs=("*.app",),
        marked=None,
        plain=r"{name}\.app",
    ),
    OutputType.PKG: ArtifactSearch(
        OutputType.PKG,
        globs=("*.pkg",),
        marked=r"{name}-\d[^/]*\.pkg",
        plain=r"{name}[^/]*\.pkg",
    ),
}

# Output types that only exist when the build archived
ARCHIVE_OUTPUT_TYPES = frozenset({OutputType.XCARCHIVE, OutputType.IPA, OutputType.DSYM})


def expected_name(project: Project) -> str:
    """Name the project's output files are expected to carry.

    Android packages are named after the manifest package when there is one.
    """
    if project.platform_kind == PlatformKind.ANDROID and project.manifest_path:
        try:
            package_name = android_package_name(project.manifest_path)
        except ParseError as e:
            logger.warning("Failed to read package name of %s: %s", project.name, e)
            package_name = None
        if package_name:
            return package_name
    return project.assembly_name


def search_roots(
    output_type: OutputType,
    output_dir: Path,
    archives_dir: Path | None,
) -> list[Path]:
    """Directories searched for an output type, in priority order."""
    roots = [output_dir]
    if output_type == OutputType.XCARCHIVE and archives_dir is not None:
        roots.append(archives_dir)
    return roots


def resolve_project_outputs(
    project: Project,
    configuration: str,
    platform: str,
    archives_dir: Path | None = None,
) -> list[OutputArtifact]:
    """Resolve and classify every expected output of one built project.

    Args:
        project: Built app project.
        configuration: Solution configuration.
        platform: Solution platform.
        archives_dir: Secondary search root for .xcarchive outputs.

    Returns:
        Classified artifacts in the platform's output type order.
    """
    if project.platform_kind is None:
        return []

    output_dir = resolve_output_directory(project, configuration, platform)
    name = expected_name(project)
    archived = archives_on_build(project, configuration, platform)
    logger.debug("Searching outputs of %s (%s) in %s", project.name, name, output_dir)

    artifacts: list[OutputArtifact] = []
    for output_type in PLATFORM_OUTPUT_TYPES[project.platform_kind]:
        if output_type in ARCHIVE_OUTPUT_TYPES and not archived:
            continue
        search = ARTIFACT_SEARCHES[output_type]
        for root in search_roots(output_type, output_dir, archives_dir):
            path = search.select(root, name)
            if path is None:
                continue
            artifact = classify(project.platform_kind, path)
            if artifact is not None:
                artifacts.append(artifact)
            break
        else:
            logger.debug("No %s output found for %s", output_type.value, project.name)

    return artifacts


def check_time_window(
    artifact: OutputArtifact,
    start_time: datetime,
    end_time: datetime,
) -> bool:
    """Whether an artifact was modified during the build window.

    Only a sanity signal: archive tools name their outputs independently of
    write time, so a miss is logged by the caller and never fatal.
    """
    try:
        mtime = datetime.fromtimestamp(artifact.path.stat().st_mtime, tz=timezone.utc)
    except OSError:
        return False
    if start_time.tzinfo is None:
        start_time = start_time.astimezone(timezone.utc)
    if end_time.tzinfo is None:
        end_time = end_time.astimezone(timezone.utc)
    return start_time - TIME_WINDOW_SLACK <= mtime <= end_time + TIME_WINDOW_SLACK


def collect_outputs(
    projects: Iterable[Project],
    configuration: str,
    platform: str,
    start_time: datetime,
    end_time: datetime,
    archives_dir: Path | None = None,
) -> dict[str, ProjectOutput]:
    """Collect the outputs of every built project.

    Args:
        projects: Projects built in the build phase.
        configuration: Solution configuration.
        platform: Solution platform.
        start_time: Time before the first build was issued.
        end_time: Time after the last build finished.
        archives_dir: Secondary search root for .xcarchive outputs.

    Returns:
        Mapping of project name to ProjectOutput, only for projects with at
        least one artifact. May be empty.
    """
    outputs: dict[str, ProjectOutput] = {}
    for project in projects:
        if project.platform_kind is None:
            continue
        artifacts = resolve_project_outputs(project, configuration, platform, archives_dir)
        for artifact in artifacts:
            if not check_time_window(artifact, start_time, end_time):
                logger.warning(
                    "%s was not modified during this build, it may be stale",
                    artifact.path,
                )
        if artifacts:
            outputs[project.name] = ProjectOutput(
                project_name=project.name,
                platform_kind=project.platform_kind,
                outputs=artifacts,
            )
        else:
            logger.warning("No outputs found for %s", project.name)

    logger.info(
        "Collected %d artifacts from %d projects",
        sum(len(o.outputs) for o in outputs.values()),
        len(outputs),
    )
    return outputs


__all__ = [
    "ARTIFACT_SEARCHES",
    "ArtifactSearch",
    "archive_sort_key",
    "check_time_window",
    "collect_outputs",
    "expected_name",
    "ipa_sort_key",
    "resolve_project_outputs",
    "sort_most_recent_first",
]
