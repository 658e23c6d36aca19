"""Data models for the remover module."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from eessi_remover.diff import ChangeSpec
from eessi_remover.easybuild import RebuildUnit


@dataclass
class RemovalRecord:
    """What was removed for one rebuild unit.

    Attributes:
        unit: The unit whose installation was removed.
        install_dir: Installation directory path.
        module_file: Module file path.
        removed_install_dir: Whether the directory existed and was removed.
        removed_module_file: Whether the module file existed and was removed.
        rejected: Whether the unit was skipped for pointing outside the
            install root.
    """

    unit: RebuildUnit
    install_dir: Path
    module_file: Path
    removed_install_dir: bool = False
    removed_module_file: bool = False
    rejected: bool = False


@dataclass
class SpecResult:
    """Outcome of processing a single easystack file."""

    spec: ChangeSpec
    easybuild_version: str
    removals: list[RemovalRecord] = field(default_factory=list)


@dataclass
class RemovalSummary:
    """Outcome of a full removal run."""

    diff_path: Path
    specs: list[SpecResult] = field(default_factory=list)

    @property
    def nothing_to_do(self) -> bool:
        """Check if the diff requested no rebuilds at all."""
        return len(self.specs) == 0

    @property
    def removals(self) -> list[RemovalRecord]:
        """All removal records, in processing order."""
        return [record for spec in self.specs for record in spec.removals]
