"""Remover package - Resolve the rebuild set of a patch and delete it."""

from eessi_remover.remover.exceptions import SpecFileMissing
from eessi_remover.remover.models import RemovalRecord, RemovalSummary, SpecResult
from eessi_remover.remover.orchestrator import ProgressCallback, RebuildRemover
from eessi_remover.remover.remover import is_removable, remove_unit

__all__ = [
    "ProgressCallback",
    "RebuildRemover",
    "RemovalRecord",
    "RemovalSummary",
    "SpecFileMissing",
    "SpecResult",
    "is_removable",
    "remove_unit",
]
