"""RebuildRemover - Resolve which installations a patch rebuilds and remove them."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from eessi_remover.diff import (
    ChangeSpec,
    ChangeSpecFilter,
    extract_build_tool_version,
    extract_change_specs,
)
from eessi_remover.easybuild import (
    ActivationFailure,
    EasyBuildClient,
    RebuildUnit,
    parse_dry_run_report,
)
from eessi_remover.remover.exceptions import SpecFileMissing
from eessi_remover.remover.models import RemovalRecord, RemovalSummary, SpecResult
from eessi_remover.remover.remover import is_removable, remove_unit

if TYPE_CHECKING:
    from eessi_remover.config import RemoverConfig
    from eessi_remover.easybuild import DryRunReportParser, EasyBuildActivator

logger = logging.getLogger(__name__)

# Called with a progress message and one of "info", "ok", "warn"
ProgressCallback = Callable[[str, str], None]


def _no_progress(message: str, level: str) -> None:
    pass


class RebuildRemover:
    """Removes existing installations of software that a patch asks to rebuild.

    For each rebuild easystack file in the diff, in diff order:
    - Determine the EasyBuild version from the file name
    - Activate that EasyBuild version
    - Ask EasyBuild (dry run) which installed modules would be rebuilt
    - Remove the installation directory and module file of each

    The first error aborts the whole run; nothing is retried.
    """

    def __init__(
        self,
        config: RemoverConfig,
        activator: EasyBuildActivator,
        client: EasyBuildClient | None = None,
        report_parser: DryRunReportParser = parse_dry_run_report,
        working_dir: Path | str | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the RebuildRemover.

        Args:
            config: Removal configuration (install root, naming conventions).
            activator: Makes a given EasyBuild version available.
            client: EasyBuild client used for dry runs.
            report_parser: Turns a dry-run report into rebuild units.
            working_dir: Repository checkout the easystack paths are relative to.
            progress: Receives human-readable progress lines.
        """
        self.config = config
        self.activator = activator
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.client = client or EasyBuildClient(
            command=config.easybuild.command,
            generic=config.environment.generic,
            working_dir=self.working_dir,
            timeout=config.easybuild.timeout,
        )
        self.report_parser = report_parser
        self.progress = progress or _no_progress
        self.spec_filter = ChangeSpecFilter(
            easystacks_dir=config.easystacks_dir,
            rebuilds_marker=config.rebuilds_marker,
            exclude_markers=list(config.exclude_markers),
        )

    def extract_change_specs(self, diff_path: Path | str) -> list[ChangeSpec]:
        """Find the rebuild easystack files in the diff."""
        return extract_change_specs(diff_path, self.spec_filter)

    def resolve_rebuild_units(self, spec: ChangeSpec, version: str) -> list[RebuildUnit]:
        """Determine which installed units the easystack file rebuilds.

        Args:
            spec: The rebuild easystack file.
            version: EasyBuild version to use.

        Returns:
            Units flagged for rebuild, possibly empty.

        Raises:
            ActivationFailure: If the EasyBuild version cannot be activated or
                its eb command does not run.
            SpecFileMissing: If the easystack file is not on disk.
            DryRunError: If the dry run fails.
        """
        env = self.activator.activate(version)

        easystack = self.working_dir / spec.path
        if not easystack.is_file():
            logger.error("Easystack file %s not found", easystack)
            raise SpecFileMissing(spec.path)

        self.progress(
            f"Software rebuild(s) requested in {spec.path}, so determining which "
            "existing installation have to be removed...",
            "ok",
        )
        if not self.client.check_available(env):
            raise ActivationFailure(
                f"EasyBuild {version} was loaded, but '{self.client.command} --version' fails"
            )
        result = self.client.dry_run_rebuild(easystack, env=env)
        units = self.report_parser(result.output)
        logger.info("%d unit(s) to rebuild for %s: %s", len(units), spec.path, units)
        return units

    def run(self, diff_path: Path | str, dry_run: bool = False) -> RemovalSummary:
        """Remove the installations that the diff asks to rebuild.

        Args:
            diff_path: Path to the pull request diff file.
            dry_run: Resolve the units but leave the filesystem untouched.

        Returns:
            RemovalSummary describing what was processed and removed.

        Raises:
            RemoverError: On the first fatal error (malformed easystack name,
                activation failure, missing easystack file, failed dry run).
        """
        summary = RemovalSummary(diff_path=Path(diff_path))

        specs = self.extract_change_specs(diff_path)
        if not specs:
            logger.info("No rebuild easystack files in %s", diff_path)
            self.progress("No software needs to be removed.", "info")
            return summary

        install_root = self.config.install_root
        module_ext = self.config.module_ext
        for spec in specs:
            version = extract_build_tool_version(spec, self.config.easybuild.version_marker)
            logger.info("Processing %s with EasyBuild %s", spec.path, version)

            units = self.resolve_rebuild_units(spec, version)
            spec_result = SpecResult(spec=spec, easybuild_version=version)
            for unit in units:
                install_dir = unit.install_dir(install_root)
                module_file = unit.module_file(install_root, module_ext)
                if not is_removable(unit, install_root, module_ext):
                    self.progress(
                        f"Not removing {unit}: it does not resolve below {install_root}",
                        "warn",
                    )
                    record = RemovalRecord(unit, install_dir, module_file, rejected=True)
                elif dry_run:
                    self.progress(f"Would remove {install_dir} and {module_file}", "warn")
                    record = RemovalRecord(unit, install_dir, module_file)
                else:
                    self.progress(f"Removing {install_dir} and {module_file}...", "warn")
                    record = remove_unit(unit, install_root, module_ext)
                spec_result.removals.append(record)
            summary.specs.append(spec_result)

        logger.info(
            "Processed %d easystack file(s), %s %d unit(s)",
            len(summary.specs),
            "resolved" if dry_run else "removed",
            len(summary.removals),
        )
        return summary
