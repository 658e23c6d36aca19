"""Data models for diff inspection."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChangeSpec:
    """An easystack file added or changed by the patch that requests rebuilds.

    Attributes:
        path: Path relative to the repository root, without the diff prefix.
    """

    path: str

    def __str__(self) -> str:
        return self.path
