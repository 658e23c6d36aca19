"""EasyBuild CLI wrapper for rebuild dry runs."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping
from pathlib import Path

from eessi_remover.easybuild.exceptions import DryRunError
from eessi_remover.easybuild.models import DryRunResult
from eessi_remover.logging import truncate_output

logger = logging.getLogger("eessi_remover.easybuild.client")


class EasyBuildClient:
    """Client for invoking the EasyBuild `eb` command.

    Only simulations are run; nothing is installed through this client.
    """

    def __init__(
        self,
        command: str = "eb",
        generic: bool = False,
        working_dir: Path | str | None = None,
        timeout: int | None = None,
    ) -> None:
        """Initialize the EasyBuild client.

        Args:
            command: Name or path of the eb executable.
            generic: Build for a generic CPU target (--optarch=GENERIC).
            working_dir: Directory eb runs in. Defaults to current directory.
            timeout: Optional timeout in seconds for each eb call.
        """
        self.command = command
        self.generic = generic
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.timeout = timeout

    def build_command(self, *args: str) -> list[str]:
        """Build the eb command line for the given arguments."""
        cmd = [self.command]
        if self.generic:
            cmd.append("--optarch=GENERIC")
        cmd.extend(args)
        return cmd

    def check_available(self, env: Mapping[str, str] | None = None) -> bool:
        """Check if eb can be executed.

        Args:
            env: Environment to run eb in (as produced by an activator).

        Returns:
            True if `eb --version` succeeds, False otherwise.
        """
        try:
            result = subprocess.run(
                [self.command, "--version"],
                capture_output=True,
                text=True,
                timeout=30,
                cwd=self.working_dir,
                env=dict(env) if env is not None else None,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    def dry_run_rebuild(
        self, easystack: Path | str, env: Mapping[str, str] | None = None
    ) -> DryRunResult:
        """Simulate a forced rebuild of everything in an easystack file.

        Args:
            easystack: Path to the easystack file.
            env: Environment to run eb in (as produced by an activator).

        Returns:
            DryRunResult with the report in `output`.

        Raises:
            DryRunError: If eb cannot be run or exits with an error.
        """
        cmd = self.build_command(
            "--allow-use-as-root-and-accept-consequences",
            "--dry-run-short",
            "--rebuild",
            "--easystack",
            str(easystack),
        )
        logger.info("Running EasyBuild dry run: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.working_dir,
                env=dict(env) if env is not None else None,
            )
        except FileNotFoundError as e:
            logger.error("EasyBuild command not found: %s", self.command)
            raise DryRunError(
                f"EasyBuild command '{self.command}' not found. Is EasyBuild loaded?"
            ) from e
        except subprocess.TimeoutExpired as e:
            logger.error("EasyBuild dry run timed out for %s", easystack)
            raise DryRunError(
                f"EasyBuild dry run for {easystack} timed out after {self.timeout} seconds"
            ) from e

        dry_run = DryRunResult(
            command=cmd,
            returncode=result.returncode,
            output=result.stdout,
            stderr=result.stderr,
        )
        logger.debug("Dry run output:\n%s", truncate_output(dry_run.output))

        if not dry_run.success:
            logger.error(
                "EasyBuild dry run failed for %s (exit code %d): %s",
                easystack,
                dry_run.returncode,
                truncate_output(dry_run.stderr or dry_run.output),
            )
            raise DryRunError(
                f"EasyBuild dry run for {easystack} failed with exit code "
                f"{dry_run.returncode}: {truncate_output(dry_run.stderr or dry_run.output, 500)}"
            )

        return dry_run
