"""Make a specific EasyBuild version available for the dry run.

The EESSI repository ships `load_easybuild_module.sh`, which loads the
EasyBuild module of a given version and installs it first when it is not
available yet. Since it modifies the calling shell, it is sourced in a bash
subprocess and the resulting environment is captured.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from eessi_remover.easybuild.exceptions import ActivationFailure
from eessi_remover.logging import truncate_output

logger = logging.getLogger("eessi_remover.easybuild.activator")


class EasyBuildActivator(Protocol):
    """Activates an EasyBuild version and returns the environment to run eb in."""

    def activate(self, version: str) -> dict[str, str]: ...


class StaticActivator:
    """Activator for an EasyBuild that is already loaded."""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self.env = dict(env) if env is not None else dict(os.environ)
        self.activated: list[str] = []

    def activate(self, version: str) -> dict[str, str]:
        logger.info("Assuming EasyBuild %s is already active", version)
        self.activated.append(version)
        return dict(self.env)


def parse_env_output(output: bytes) -> dict[str, str]:
    """Parse NUL-separated `env -0` output into a mapping."""
    env = {}
    for entry in output.decode("utf-8", errors="surrogateescape").split("\0"):
        if not entry or "=" not in entry:
            continue
        key, _, value = entry.partition("=")
        env[key] = value
    return env


class ScriptActivator:
    """Sources the EasyBuild load script in bash and captures the environment."""

    def __init__(
        self,
        script: Path | str,
        lmod_init: Path | str | None = None,
        module_path: Path | str | None = None,
        base_env: Mapping[str, str] | None = None,
        timeout: int | None = None,
    ) -> None:
        """Initialize the activator.

        Args:
            script: Path to load_easybuild_module.sh.
            lmod_init: Lmod bash init file to source first, so `module` is defined.
            module_path: If set, purge loaded modules and reset $MODULEPATH
                to this directory before loading EasyBuild.
            base_env: Environment to start from. Defaults to os.environ.
            timeout: Optional timeout in seconds (installing EasyBuild can be slow).
        """
        self.script = Path(script)
        self.lmod_init = Path(lmod_init) if lmod_init else None
        self.module_path = Path(module_path) if module_path else None
        self.base_env = dict(base_env) if base_env is not None else dict(os.environ)
        self.timeout = timeout

    def build_shell_script(self) -> str:
        """Build the bash snippet run for activation.

        The load script and its version are passed as $0 and $1.
        """
        steps = []
        if self.lmod_init is not None:
            steps.append(f"source {shlex.quote(str(self.lmod_init))}")
        if self.module_path is not None:
            steps.append("module --force purge")
            steps.append('{ [ -z "$MODULEPATH" ] || module unuse "$MODULEPATH"; }')
            steps.append(f"module use {shlex.quote(str(self.module_path))}")
        steps.append('source "$0" "$1"')
        # Everything the scripts print goes to stderr, stdout carries the environment
        return "{ " + " && ".join(steps) + "; } >&2 && env -0"

    def activate(self, version: str) -> dict[str, str]:
        """Load the given EasyBuild version.

        Args:
            version: EasyBuild version, e.g. '4.9.0'.

        Returns:
            Environment in which that EasyBuild version is loaded.

        Raises:
            ActivationFailure: If the script is missing or fails.
        """
        if not self.script.is_file():
            raise ActivationFailure(f"EasyBuild load script not found: {self.script}")

        logger.info("Loading EasyBuild %s via %s", version, self.script)
        cmd = ["bash", "-c", self.build_shell_script(), str(self.script), version]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                timeout=self.timeout,
                env=self.base_env,
            )
        except FileNotFoundError as e:
            raise ActivationFailure("bash not found, cannot load EasyBuild") from e
        except subprocess.TimeoutExpired as e:
            raise ActivationFailure(
                f"Loading EasyBuild {version} timed out after {self.timeout} seconds"
            ) from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            logger.error("Failed to load EasyBuild %s: %s", version, truncate_output(stderr))
            raise ActivationFailure(
                f"Failed to load EasyBuild {version} (exit code {result.returncode}): "
                f"{truncate_output(stderr, 500)}"
            )

        env = parse_env_output(result.stdout)
        logger.info("Loaded EasyBuild %s", version)
        return env
