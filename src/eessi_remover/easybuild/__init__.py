"""EasyBuild adapter - Activate EasyBuild and ask it what would be rebuilt."""

from eessi_remover.easybuild.activator import (
    EasyBuildActivator,
    ScriptActivator,
    StaticActivator,
)
from eessi_remover.easybuild.client import EasyBuildClient
from eessi_remover.easybuild.exceptions import (
    ActivationFailure,
    DryRunError,
    EasyBuildError,
)
from eessi_remover.easybuild.models import DryRunResult, RebuildUnit
from eessi_remover.easybuild.report import DryRunReportParser, parse_dry_run_report

__all__ = [
    "ActivationFailure",
    "DryRunError",
    "DryRunReportParser",
    "DryRunResult",
    "EasyBuildActivator",
    "EasyBuildClient",
    "EasyBuildError",
    "RebuildUnit",
    "ScriptActivator",
    "StaticActivator",
    "parse_dry_run_report",
]
