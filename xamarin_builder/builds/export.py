"""Artifact export into the deploy directory.

This module handles:
- Copying file and directory artifacts into the deploy directory
- Zipping symbol bundles (.dSYM) before export
- Publishing exported paths under CI environment keys through envman
- Writing a JSON manifest of everything exported
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from xamarin_builder.builds.classify import DIRECTORY_OUTPUT_TYPES, ZIPPED_OUTPUT_TYPES
from xamarin_builder.types import OutputArtifact, OutputType, PlatformKind, ProjectOutput

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 64 * 1024  # 64KB

MANIFEST_FILENAME = "xamarin-builder-manifest.json"

# Environment keys the exported paths are published under
ENV_KEYS: dict[tuple[PlatformKind, OutputType], str] = {
    (PlatformKind.ANDROID, OutputType.APK): "BITRISE_APK_PATH",
    (PlatformKind.ANDROID, OutputType.AAB): "BITRISE_AAB_PATH",
    (PlatformKind.IOS, OutputType.XCARCHIVE): "BITRISE_XCARCHIVE_PATH",
    (PlatformKind.IOS, OutputType.IPA): "BITRISE_IPA_PATH",
    (PlatformKind.IOS, OutputType.DSYM): "BITRISE_DSYM_PATH",
    (PlatformKind.IOS, OutputType.APP): "BITRISE_APP_PATH",
    (PlatformKind.TVOS, OutputType.XCARCHIVE): "BITRISE_TVOS_XCARCHIVE_PATH",
    (PlatformKind.TVOS, OutputType.IPA): "BITRISE_TVOS_IPA_PATH",
    (PlatformKind.TVOS, OutputType.DSYM): "BITRISE_TVOS_DSYM_PATH",
    (PlatformKind.TVOS, OutputType.APP): "BITRISE_TVOS_APP_PATH",
    (PlatformKind.MACOS, OutputType.XCARCHIVE): "BITRISE_MACOS_XCARCHIVE_PATH",
    (PlatformKind.MACOS, OutputType.APP): "BITRISE_MACOS_APP_PATH",
    (PlatformKind.MACOS, OutputType.PKG): "BITRISE_MACOS_PKG_PATH",
}


class ExportError(Exception):
    """Raised when an artifact cannot be exported."""

    def __init__(self, message: str, code: str = "export_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class ExportedArtifact:
    """An artifact copied into the deploy directory."""

    project_name: str
    platform_kind: PlatformKind
    output_type: OutputType
    source_path: Path
    deploy_path: Path
    env_key: str
    sha256: str | None = None


def compute_file_hash(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Compute SHA-256 hash of a file."""
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def export_artifact_file(path: Path, deploy_dir: Path) -> Path:
    """Copy a file artifact into the deploy directory."""
    deploy_path = deploy_dir / path.name
    try:
        deploy_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, deploy_path)
    except OSError as e:
        raise ExportError(f"Failed to copy artifact ({path}) to ({deploy_path}): {e}") from e
    return deploy_path


def export_artifact_dir(path: Path, deploy_dir: Path) -> Path:
    """Copy a directory artifact (bundle, archive) into the deploy directory."""
    deploy_path = deploy_dir / path.name
    try:
        deploy_dir.mkdir(parents=True, exist_ok=True)
        shutil.copytree(path, deploy_path, symlinks=True, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise ExportError(f"Failed to copy artifact ({path}) to ({deploy_path}): {e}") from e
    return deploy_path


def export_zipped_artifact_dir(path: Path, deploy_dir: Path) -> Path:
    """Zip a directory artifact into the deploy directory as <name>.zip."""
    base_name = deploy_dir / path.name
    try:
        deploy_dir.mkdir(parents=True, exist_ok=True)
        archive = shutil.make_archive(
            str(base_name),
            "zip",
            root_dir=path.parent,
            base_dir=path.name,
        )
    except OSError as e:
        raise ExportError(f"Failed to zip dir ({path}): {e}") from e
    return Path(archive)


def publish_env(key: str, value: str) -> bool:
    """Publish a value to later CI steps through envman.

    Returns:
        True if published, False if envman is not available.

    Raises:
        ExportError: If envman fails.
    """
    envman = shutil.which("envman")
    if envman is None:
        logger.info("envman not found, not publishing %s", key)
        return False
    try:
        subprocess.run(
            [envman, "add", "--key", key, "--value", value],
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise ExportError(
            f"Failed to export artifact path ({value}) into ({key}): {e.stderr}"
        ) from e
    except OSError as e:
        raise ExportError(f"Failed to run envman: {e}") from e
    return True


def export_artifact(
    project_output: ProjectOutput,
    artifact: OutputArtifact,
    deploy_dir: Path,
    publish: bool = True,
) -> ExportedArtifact | None:
    """Export one artifact and publish its deploy path.

    Returns:
        The exported artifact, or None if the platform has no key for it.
    """
    env_key = ENV_KEYS.get((project_output.platform_kind, artifact.output_type))
    if env_key is None:
        logger.warning(
            "No export key for %s output of %s project, skipping",
            artifact.output_type.value,
            project_output.platform_kind.value,
        )
        return None

    if artifact.output_type in ZIPPED_OUTPUT_TYPES:
        deploy_path = export_zipped_artifact_dir(artifact.path, deploy_dir)
    elif artifact.output_type in DIRECTORY_OUTPUT_TYPES:
        deploy_path = export_artifact_dir(artifact.path, deploy_dir)
    else:
        deploy_path = export_artifact_file(artifact.path, deploy_dir)

    if publish:
        publish_env(env_key, str(deploy_path))

    return ExportedArtifact(
        project_name=project_output.project_name,
        platform_kind=project_output.platform_kind,
        output_type=artifact.output_type,
        source_path=artifact.path,
        deploy_path=deploy_path,
        env_key=env_key,
        sha256=compute_file_hash(deploy_path) if deploy_path.is_file() else None,
    )


def export_outputs(
    outputs: dict[str, ProjectOutput],
    deploy_dir: Path,
    publish: bool = True,
) -> list[ExportedArtifact]:
    """Export every collected artifact into the deploy directory.

    Raises:
        ExportError: On the first artifact that cannot be exported.
    """
    exported: list[ExportedArtifact] = []
    for project_output in outputs.values():
        for artifact in project_output.outputs:
            result = export_artifact(project_output, artifact, deploy_dir, publish=publish)
            if result is not None:
                logger.info("Exported %s to %s", artifact.path, result.deploy_path)
                exported.append(result)
    return exported


def generate_manifest(
    exported: list[ExportedArtifact],
    solution: str | None = None,
    configuration: str | None = None,
    platform: str | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """Generate a manifest of exported artifacts.

    Returns:
        Manifest dictionary suitable for JSON serialization.
    """
    manifest: dict[str, Any] = {
        "version": "1.0",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "artifacts": [
            {
                "project": e.project_name,
                "platform": e.platform_kind.value,
                "type": e.output_type.value,
                "source_path": str(e.source_path),
                "deploy_path": str(e.deploy_path),
                "env_key": e.env_key,
                "sha256": e.sha256,
            }
            for e in exported
        ],
    }
    if solution:
        manifest["solution"] = solution
    if configuration:
        manifest["configuration"] = configuration
    if platform:
        manifest["platform"] = platform
    if warnings:
        manifest["warnings"] = warnings

    manifest["summary"] = {
        "total_artifacts": len(exported),
        "projects": sorted({e.project_name for e in exported}),
        "types": sorted({e.output_type.value for e in exported}),
    }
    return manifest


def write_manifest(manifest: dict[str, Any], output_path: Path) -> Path:
    """Write manifest to a JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)

    logger.info("Wrote manifest to %s", output_path)
    return output_path


__all__ = [
    "ENV_KEYS",
    "ExportError",
    "ExportedArtifact",
    "compute_file_hash",
    "export_artifact",
    "export_artifact_dir",
    "export_artifact_file",
    "export_outputs",
    "export_zipped_artifact_dir",
    "generate_manifest",
    "publish_env",
    "write_manifest",
]
