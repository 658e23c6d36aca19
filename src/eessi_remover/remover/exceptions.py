"""Exceptions for the remover module."""

from eessi_remover.exceptions import RemoverError


class SpecFileMissing(RemoverError):
    """An easystack file listed in the diff does not exist on disk."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Easystack file {path} not found!")
        self.path = path
