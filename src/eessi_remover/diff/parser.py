"""Extract rebuild easystack files from a unified diff."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from eessi_remover.diff.exceptions import MalformedSpecName
from eessi_remover.diff.models import ChangeSpec

logger = logging.getLogger("eessi_remover.diff")

# git prefixes destination paths with a synthetic "b/" segment
_DIFF_PREFIX_RE = re.compile(r"^[a-z]/")


@dataclass
class ChangeSpecFilter:
    """Naming convention for easystack files that request rebuilds."""

    easystacks_dir: str = "easystacks"
    # easystack files are YAML; "foo-yml" without the dot is not one
    suffix: str = ".yml"
    rebuilds_marker: str = "/rebuilds/"
    exclude_markers: list[str] = field(default_factory=lambda: ["known-issues", "missing"])

    def matches(self, path: str) -> bool:
        """Check whether a repository path is a rebuild easystack file."""
        if not path.startswith(f"{self.easystacks_dir}/"):
            return False
        if not path.endswith(self.suffix):
            return False
        if any(marker in path for marker in self.exclude_markers):
            return False
        return self.rebuilds_marker in path


def parse_changed_paths(lines: Iterable[str]) -> list[str]:
    """Collect destination paths from the '+++' markers of a unified diff.

    Args:
        lines: Lines of the diff.

    Returns:
        Paths in diff order, with the leading single-letter prefix removed.
    """
    paths = []
    for line in lines:
        if not line.startswith("+++"):
            continue
        fields = line.rstrip("\n").split(" ")
        if len(fields) < 2:
            continue
        # Drop a trailing timestamp as written by `diff -u`
        path = fields[1].split("\t", 1)[0]
        paths.append(_DIFF_PREFIX_RE.sub("", path, count=1))
    return paths


def extract_change_specs(
    diff_path: Path | str, spec_filter: ChangeSpecFilter | None = None
) -> list[ChangeSpec]:
    """Find the rebuild easystack files added or changed by a patch.

    Args:
        diff_path: Path to the pull request diff file.
        spec_filter: Naming convention to apply. Defaults to the EESSI layout.

    Returns:
        Matching change specs in diff order. An empty list means there is
        nothing to remove.
    """
    spec_filter = spec_filter or ChangeSpecFilter()
    diff_path = Path(diff_path)

    with open(diff_path, encoding="utf-8", errors="replace") as f:
        changed = parse_changed_paths(f)

    specs = [ChangeSpec(path) for path in changed if spec_filter.matches(path)]
    logger.info(
        "Found %d rebuild easystack file(s) among %d changed path(s) in %s",
        len(specs),
        len(changed),
        diff_path,
    )
    for spec in specs:
        logger.debug("Rebuild easystack: %s", spec.path)
    return specs


def extract_build_tool_version(spec: ChangeSpec | str, marker: str = "eb-") -> str:
    """Determine the EasyBuild version encoded in an easystack file name.

    The last occurrence of the marker wins, e.g.
    'easystacks/software.eessi.io/2023.06/rebuilds/20240101-eb-4.9.0-foo.yml'
    gives '4.9.0'.

    Args:
        spec: Change spec or path.
        marker: Text that precedes the version token.

    Returns:
        The version string.

    Raises:
        MalformedSpecName: If no version follows the marker.
    """
    path = str(spec)
    match = re.match(rf".*{re.escape(marker)}([0-9.]*)", path)
    if match is None or not match.group(1):
        raise MalformedSpecName(
            f"Cannot determine EasyBuild version from '{path}' "
            f"(expected '{marker}<version>' in the file name)"
        )
    return match.group(1)
