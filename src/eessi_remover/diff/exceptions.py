"""Custom exceptions for diff inspection."""

from eessi_remover.exceptions import RemoverError


class DiffError(RemoverError):
    """Base exception for diff inspection errors."""


class DiffFileNotFound(DiffError):
    """No pull request diff file matched the naming convention."""


class AmbiguousDiffFile(DiffError):
    """More than one pull request diff file matched the naming convention."""


class MalformedSpecName(DiffError):
    """An easystack file name carries no EasyBuild version token."""
