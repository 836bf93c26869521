"""Build orchestration module.

This module handles:
- Composing msbuild/xbuild commands per project
- Building each allowed project once per configuration
- Resolving the artifacts a build run produced
- Classifying and exporting artifacts
"""

from xamarin_builder.builds.orchestrator import (
    BuildFailedError,
    BuildKey,
    BuildRecord,
    Builder,
    InvalidConfigurationError,
)

__all__ = [
    "BuildFailedError",
    "BuildKey",
    "BuildRecord",
    "Builder",
    "InvalidConfigurationError",
]

# Lazy imports for submodules to avoid circular imports
# Access via xamarin_builder.builds.artifacts, etc.
