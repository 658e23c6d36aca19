"""CLI entry point for eessi-remover.

Run as root on the build host before installing the software stack of a
pull request: installations the pull request asks to rebuild are removed,
after which the install script is rerun as a regular user.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from pathlib import Path

import click

from eessi_remover import __version__
from eessi_remover.config import RemoverConfig, default_lmod_init, find_config, load_config
from eessi_remover.diff import locate_diff_file
from eessi_remover.easybuild import ScriptActivator
from eessi_remover.environment import (
    check_cvmfs_repo,
    check_lmod,
    determine_software_subdir,
    load_eessi_environment,
    prepare_environment,
    verify_software_subdir,
)
from eessi_remover.environment.bootstrap import SUBDIR_VAR
from eessi_remover.exceptions import RemoverError
from eessi_remover.logging import setup_logging
from eessi_remover.remover import RebuildRemover

logger = logging.getLogger("eessi_remover.cli")

_PROGRESS_COLORS = {"ok": "green", "warn": "yellow"}


def echo_progress(message: str, level: str = "info") -> None:
    """Print a progress line, colored by level."""
    click.secho(message, fg=_PROGRESS_COLORS.get(level))


def fatal_error(message: str) -> None:
    """Print an error and exit with a non-zero status."""
    logger.error(message)
    click.secho(f"ERROR: {message}", fg="red", err=True)
    sys.exit(1)


def build_config(
    config_path: Path | None,
    install_root: Path | None,
    generic: bool,
    http_proxy: str | None,
    https_proxy: str | None,
    build_logs_dir: str | None,
    shared_fs_path: str | None,
    allow_multiple_diffs: bool,
) -> RemoverConfig:
    """Load the configuration and apply command line overrides.

    Raises:
        ConfigError: If the configuration is invalid or the install root unknown.
    """
    if config_path is None:
        config_path = find_config()

    environ = dict(os.environ)
    if install_root:
        environ["EASYBUILD_INSTALLPATH"] = str(install_root)

    if config_path is not None:
        config = load_config(config_path, environ)
    else:
        config = RemoverConfig.from_env(environ, Path.cwd())

    if install_root:
        config.install_root = install_root
    if generic:
        config.environment.generic = True
    if http_proxy:
        config.environment.http_proxy = http_proxy
    if https_proxy:
        config.environment.https_proxy = https_proxy
    if build_logs_dir:
        config.environment.build_logs_dir = build_logs_dir
    if shared_fs_path:
        config.environment.shared_fs_path = shared_fs_path
    if allow_multiple_diffs:
        config.allow_multiple_diffs = True
    return config


def check_environment(config: RemoverConfig) -> None:
    """Run the build host checks the install script does before removal."""
    env = config.environment

    repo = check_cvmfs_repo(env.cvmfs_repo)
    echo_progress(f"{repo} available, OK!", "ok")

    if env.generic:
        echo_progress(">> GENERIC build requested, taking appropriate measures!", "warn")

    echo_progress(">> Determining software subdirectory to use for current build host...")
    override = determine_software_subdir(
        config.get_software_subdir_script_path(), os.environ, generic=env.generic
    )
    os.environ.update(load_eessi_environment(config.get_eessi_init_script_path(), os.environ))
    subdir = verify_software_subdir(override, os.environ.get(SUBDIR_VAR))
    echo_progress(f">> Using {subdir} as software subdirectory!", "ok")

    echo_progress(">> Initializing Lmod...")
    if env.lmod_init is None:
        # $EPREFIX is only known once the EESSI environment is set up
        env.lmod_init = default_lmod_init(os.environ)
    version = check_lmod(env.lmod_init, os.environ)
    echo_progress(f">> Found Lmod {version}", "ok")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to eessi-remover.yaml (auto-detected if not specified)",
)
@click.option(
    "--install-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="EasyBuild installation prefix (default: $EASYBUILD_INSTALLPATH)",
)
@click.option(
    "-g",
    "--generic",
    is_flag=True,
    help="Build for generic architecture target",
)
@click.option("-x", "--http-proxy", metavar="URL", help="Value for $http_proxy")
@click.option("-y", "--https-proxy", metavar="URL", help="Value for $https_proxy")
@click.option(
    "--build-logs-dir",
    help="Location to copy EasyBuild logs to for failed builds",
)
@click.option(
    "--shared-fs-path",
    help="Path to directory on shared filesystem that can be used",
)
@click.option(
    "--diff-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory containing the pull request diff file",
)
@click.option(
    "--allow-multiple-diffs",
    is_flag=True,
    help="Use the first diff file if several are present instead of failing",
)
@click.option(
    "--force-removal",
    is_flag=True,
    help="Remove installations even when not running as root",
)
@click.option(
    "--skip-env-checks",
    is_flag=True,
    help="Skip the CVMFS, software subdirectory and Lmod checks",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be removed without removing anything",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the log file (default: $build_logs_dir or $WORKDIR)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def main(
    config_path: Path | None,
    install_root: Path | None,
    generic: bool,
    http_proxy: str | None,
    https_proxy: str | None,
    build_logs_dir: str | None,
    shared_fs_path: str | None,
    diff_dir: Path,
    allow_multiple_diffs: bool,
    force_removal: bool,
    skip_env_checks: bool,
    dry_run: bool,
    log_dir: Path | None,
    verbose: bool,
) -> None:
    """Remove installations that a pull request asks to rebuild."""
    scratch: Path | None = None
    try:
        config = build_config(
            config_path,
            install_root,
            generic,
            http_proxy,
            https_proxy,
            build_logs_dir,
            shared_fs_path,
            allow_multiple_diffs,
        )

        echo_progress(">> Setting up environment...")
        scratch = prepare_environment(config.environment, os.environ)
        setup_logging(log_dir=log_dir, verbose=verbose)
        if not skip_env_checks:
            check_environment(config)

        if os.geteuid() != 0 and not (force_removal or dry_run):
            echo_progress("Not running as root, skipping removal of existing installations.")
            return

        diff_path = locate_diff_file(
            diff_dir, config.diff_pattern, allow_multiple=config.allow_multiple_diffs
        )
        echo_progress(f">> Inspecting {diff_path} for software to rebuild...")

        activator = ScriptActivator(
            config.get_load_script_path(),
            lmod_init=config.environment.lmod_init,
            module_path=config.get_module_path() if config.environment.lmod_init else None,
            base_env=os.environ,
            timeout=config.easybuild.timeout,
        )
        remover = RebuildRemover(
            config, activator, working_dir=diff_dir, progress=echo_progress
        )
        summary = remover.run(diff_path, dry_run=dry_run)

        if not summary.nothing_to_do:
            verb = "would be removed" if dry_run else "removed"
            echo_progress(
                f">> {len(summary.removals)} installation(s) {verb} "
                f"for {len(summary.specs)} easystack file(s)",
                "ok",
            )
    except RemoverError as e:
        fatal_error(str(e))
    finally:
        if scratch is not None:
            echo_progress(f">> Cleaning up {scratch}...")
            shutil.rmtree(scratch, ignore_errors=True)


if __name__ == "__main__":
    main()
