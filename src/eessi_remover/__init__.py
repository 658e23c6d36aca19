"""eessi-remover - Remove installations that an EESSI pull request asks to rebuild."""

__version__ = "0.1.0"
