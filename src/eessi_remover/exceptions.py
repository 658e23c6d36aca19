"""Base exception shared by all eessi_remover components."""


class RemoverError(Exception):
    """Base exception for errors that abort a removal run."""
