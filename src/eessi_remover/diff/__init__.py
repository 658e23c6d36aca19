"""Diff inspection - Find the easystack rebuild files touched by a patch."""

from eessi_remover.diff.exceptions import (
    AmbiguousDiffFile,
    DiffError,
    DiffFileNotFound,
    MalformedSpecName,
)
from eessi_remover.diff.locator import locate_diff_file
from eessi_remover.diff.models import ChangeSpec
from eessi_remover.diff.parser import (
    ChangeSpecFilter,
    extract_build_tool_version,
    extract_change_specs,
    parse_changed_paths,
)

__all__ = [
    "AmbiguousDiffFile",
    "ChangeSpec",
    "ChangeSpecFilter",
    "DiffError",
    "DiffFileNotFound",
    "MalformedSpecName",
    "extract_build_tool_version",
    "extract_change_specs",
    "locate_diff_file",
    "parse_changed_paths",
]
