"""Prepare the build environment before anything is removed."""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
import tempfile
from collections.abc import MutableMapping
from pathlib import Path

from eessi_remover.config import EnvironmentSettings
from eessi_remover.easybuild.activator import parse_env_output
from eessi_remover.environment.exceptions import EnvironmentSetupError
from eessi_remover.logging import truncate_output

logger = logging.getLogger("eessi_remover.environment")

SUBDIR_OVERRIDE_VAR = "EESSI_SOFTWARE_SUBDIR_OVERRIDE"
SUBDIR_VAR = "EESSI_SOFTWARE_SUBDIR"

# bash bookkeeping and the flags passed to the init script, never exported
_SHELL_VARS = frozenset({"_", "SHLVL", "PWD", "OLDPWD", "EESSI_SILENT", "EESSI_BASIC_ENV"})


def prepare_environment(
    settings: EnvironmentSettings, environ: MutableMapping[str, str]
) -> Path:
    """Export proxy, work directory and source path settings.

    Args:
        settings: Environment settings from the configuration.
        environ: Environment to update in place (usually os.environ).

    Returns:
        Scratch directory created for this run; the caller removes it.
    """
    if settings.http_proxy:
        environ["http_proxy"] = settings.http_proxy
    if settings.https_proxy:
        environ["https_proxy"] = settings.https_proxy
    if settings.build_logs_dir:
        environ["build_logs_dir"] = settings.build_logs_dir

    user = environ.get("USER", "")
    base_tmp = environ.get("TMPDIR") or "/tmp"
    environ["WORKDIR"] = str(Path(base_tmp) / user)

    scratch = Path(tempfile.mkdtemp())
    # keep pyc files out of the EasyBuild installation directory
    environ["PYTHONPYCACHEPREFIX"] = str(scratch / "pycache")

    if settings.shared_fs_path:
        shared_sourcepath = Path(settings.shared_fs_path) / "easybuild" / "sources"
        logger.info("Using %s as shared EasyBuild source path", shared_sourcepath)
        current = environ.get("EASYBUILD_SOURCEPATH")
        environ["EASYBUILD_SOURCEPATH"] = (
            f"{shared_sourcepath}:{current}" if current else str(shared_sourcepath)
        )

    logger.debug("Scratch directory for this run: %s", scratch)
    return scratch


def check_cvmfs_repo(repo: Path | str | None) -> Path:
    """Check that the CVMFS repository is mounted.

    Raises:
        EnvironmentSetupError: If the repository directory is not available.
    """
    if not repo:
        raise EnvironmentSetupError("No CVMFS repository configured ($EESSI_CVMFS_REPO)")
    repo = Path(repo)
    if not repo.is_dir():
        raise EnvironmentSetupError(f"{repo} is not available!")
    return repo


def determine_software_subdir(
    script: Path,
    environ: MutableMapping[str, str],
    generic: bool = False,
) -> str:
    """Determine the software subdirectory for the current build host.

    A predefined $EESSI_SOFTWARE_SUBDIR_OVERRIDE is honoured; otherwise the
    architecture detection script is run and its answer exported.

    Raises:
        EnvironmentSetupError: If detection fails.
    """
    override = environ.get(SUBDIR_OVERRIDE_VAR)
    if override:
        logger.info("Picking up pre-defined $%s: %s", SUBDIR_OVERRIDE_VAR, override)
        return override

    cmd = [sys.executable, str(script)]
    if generic:
        cmd.append("--generic")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise EnvironmentSetupError(f"Cannot run {script}: {e}") from e
    except subprocess.CalledProcessError as e:
        raise EnvironmentSetupError(
            f"Failed to determine software subdirectory via {script}: "
            f"{truncate_output(e.stderr or '', 500)}"
        ) from e

    subdir = result.stdout.strip()
    environ[SUBDIR_OVERRIDE_VAR] = subdir
    logger.info("Determined $%s via '%s': %s", SUBDIR_OVERRIDE_VAR, shlex.join(cmd), subdir)
    return subdir


def load_eessi_environment(
    init_script: Path | str, environ: MutableMapping[str, str]
) -> dict[str, str]:
    """Source the EESSI init script and collect the variables it exports.

    The script runs with $EESSI_SILENT and $EESSI_BASIC_ENV set, so it prints
    nothing and only sets up the basic EESSI variables, respecting
    $EESSI_SOFTWARE_SUBDIR_OVERRIDE.

    Args:
        init_script: Path to init/eessi_environment_variables.
        environ: Environment to source the script in.

    Returns:
        Variables that the script set or changed.

    Raises:
        EnvironmentSetupError: If the script is missing or fails.
    """
    init_script = Path(init_script)
    if not init_script.is_file():
        raise EnvironmentSetupError(f"EESSI init script not found: {init_script}")

    env = dict(environ)
    env["EESSI_SILENT"] = "1"
    env["EESSI_BASIC_ENV"] = "1"
    try:
        result = subprocess.run(
            ["bash", "-c", 'source "$0" >&2 && env -0', str(init_script)],
            capture_output=True,
            env=env,
        )
    except FileNotFoundError as e:
        raise EnvironmentSetupError("bash not found, cannot set up EESSI environment") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise EnvironmentSetupError(
            f"Failed to set up EESSI environment via {init_script}: "
            f"{truncate_output(stderr, 500)}"
        )

    exported = {
        key: value
        for key, value in parse_env_output(result.stdout).items()
        if key not in _SHELL_VARS and environ.get(key) != value
    }
    logger.info("EESSI environment from %s: %s", init_script, sorted(exported))
    return exported


def verify_software_subdir(override: str | None, actual: str | None) -> str:
    """Check that the detected subdirectory is the one the environment uses.

    Args:
        override: Value of $EESSI_SOFTWARE_SUBDIR_OVERRIDE.
        actual: Value of $EESSI_SOFTWARE_SUBDIR after the EESSI environment
            was set up.

    Returns:
        The software subdirectory.

    Raises:
        EnvironmentSetupError: If it is unset or the two values differ.
    """
    if not actual:
        raise EnvironmentSetupError("Failed to determine software subdirectory?!")
    if actual != override:
        raise EnvironmentSetupError(
            f"Values for {SUBDIR_OVERRIDE_VAR} ({override}) and {SUBDIR_VAR} ({actual}) differ!"
        )
    return actual


def check_lmod(lmod_init: Path | str | None, environ: MutableMapping[str, str]) -> str:
    """Check that Lmod can be initialized.

    Returns:
        The Lmod version ($LMOD_VERSION) reported once `ml --version` works.

    Raises:
        EnvironmentSetupError: If Lmod cannot be initialized.
    """
    if not lmod_init or not Path(lmod_init).is_file():
        raise EnvironmentSetupError(f"Lmod init script not found: {lmod_init}")

    # only the version goes to stdout, Lmod's own banner to stderr
    script = (
        f"{{ source {shlex.quote(str(lmod_init))} && ml --version; }} >&2"
        ' && echo "$LMOD_VERSION"'
    )
    try:
        result = subprocess.run(
            ["bash", "-c", script],
            capture_output=True,
            text=True,
            env=dict(environ),
        )
    except FileNotFoundError as e:
        raise EnvironmentSetupError("bash not found, cannot initialize Lmod") from e

    if result.returncode != 0:
        raise EnvironmentSetupError(
            f"Failed to initialize Lmod?! {truncate_output(result.stderr, 500)}"
        )
    version = result.stdout.strip()
    logger.debug("Lmod %s initialized from %s", version, lmod_init)
    return version
