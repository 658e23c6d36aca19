"""Parse the report of `eb --dry-run-short --rebuild`.

Lines of interest look like:

     * [R] $CFGS/s/someapp/someapp-someversion.eb (module: someapp/someversion)

where [R] flags an installation that already exists and will be rebuilt.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from eessi_remover.easybuild.models import RebuildUnit

DryRunReportParser = Callable[[str], list[RebuildUnit]]

_REBUILD_LINE_RE = re.compile(r"^ \* \[R\]")
_MODULE_RE = re.compile(r"module: (.*[^)])")


def parse_dry_run_report(report: str) -> list[RebuildUnit]:
    """Extract the units flagged for rebuild from a dry-run report.

    Args:
        report: Text output of the dry run.

    Returns:
        Units in report order; empty if nothing installed needs a rebuild.
    """
    units = []
    for line in report.splitlines():
        if not _REBUILD_LINE_RE.match(line):
            continue
        match = _MODULE_RE.search(line)
        if match is None:
            continue
        tokens = match.group(1).split()
        if tokens:
            units.append(RebuildUnit(tokens[0].rstrip(")")))
    return units
