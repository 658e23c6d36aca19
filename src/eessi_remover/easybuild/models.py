"""Data models for the EasyBuild adapter."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RebuildUnit:
    """An installed module that EasyBuild reports as to be rebuilt.

    Attributes:
        name: Module name and version as a single token, e.g. 'foo/1.2'.
    """

    name: str

    def install_dir(self, install_root: Path) -> Path:
        """Installation directory of the unit."""
        return Path(install_root) / "software" / self.name

    def module_file(self, install_root: Path, module_ext: str = "lua") -> Path:
        """Module file of the unit."""
        return Path(install_root) / "modules" / "all" / f"{self.name}.{module_ext}"

    def __str__(self) -> str:
        return self.name


@dataclass
class DryRunResult:
    """Result of an EasyBuild dry run."""

    command: list[str]
    returncode: int
    output: str
    stderr: str = ""

    @property
    def success(self) -> bool:
        """Check if the dry run exited cleanly."""
        return self.returncode == 0
