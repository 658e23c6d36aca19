"""Custom exceptions for the EasyBuild adapter."""

from eessi_remover.exceptions import RemoverError


class EasyBuildError(RemoverError):
    """Base exception for EasyBuild errors."""


class ActivationFailure(EasyBuildError):
    """The requested EasyBuild version could not be loaded or installed."""


class DryRunError(EasyBuildError):
    """The EasyBuild dry run could not be executed or failed."""
