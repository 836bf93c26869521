"""Solution and project model.

This module handles:
- Parsing .sln files and the projects they declare
- Project type and test framework detection
- Output directory resolution per configuration/platform
- Project type allow-list filtering
"""

from xamarin_builder.solution.models import (
    Project,
    ProjectConfig,
    Solution,
    is_allowed,
    resolve_output_directory,
)
from xamarin_builder.solution.parser import ParseError, parse_project, parse_solution

__all__ = [
    "ParseError",
    "Project",
    "ProjectConfig",
    "Solution",
    "is_allowed",
    "parse_project",
    "parse_solution",
    "resolve_output_directory",
]
