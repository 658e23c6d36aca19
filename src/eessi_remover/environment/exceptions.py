"""Custom exceptions for environment setup."""

from eessi_remover.exceptions import RemoverError


class EnvironmentSetupError(RemoverError):
    """The build environment could not be set up."""
