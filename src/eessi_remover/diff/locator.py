"""Locate the pull request patch file in the working directory."""

from __future__ import annotations

import logging
from pathlib import Path

from eessi_remover.diff.exceptions import AmbiguousDiffFile, DiffFileNotFound

logger = logging.getLogger("eessi_remover.diff")


def locate_diff_file(
    directory: Path | str | None = None,
    pattern: str = "[0-9]*.diff",
    allow_multiple: bool = False,
) -> Path:
    """Find the single diff file that corresponds to the pull request.

    Args:
        directory: Directory to search. Defaults to current directory.
        pattern: Glob pattern diff files follow (numeric prefix, .diff suffix).
        allow_multiple: If True, pick the first match in sorted order when
            several files match instead of failing.

    Returns:
        Path to the diff file.

    Raises:
        DiffFileNotFound: If no file matches.
        AmbiguousDiffFile: If several files match and allow_multiple is False.
    """
    directory = Path(directory) if directory is not None else Path.cwd()
    candidates = sorted(p for p in directory.glob(pattern) if p.is_file())

    if not candidates:
        raise DiffFileNotFound(f"No diff file matching '{pattern}' found in {directory}")

    if len(candidates) > 1:
        names = ", ".join(p.name for p in candidates)
        if not allow_multiple:
            raise AmbiguousDiffFile(
                f"Expected exactly one diff file matching '{pattern}' in {directory}, "
                f"found {len(candidates)}: {names}"
            )
        logger.warning("Multiple diff files found (%s), using %s", names, candidates[0].name)

    logger.info("Using diff file %s", candidates[0])
    return candidates[0]
