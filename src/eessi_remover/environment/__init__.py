"""Environment setup - Proxies, software subdirectory, Lmod."""

from eessi_remover.environment.bootstrap import (
    check_cvmfs_repo,
    check_lmod,
    determine_software_subdir,
    load_eessi_environment,
    prepare_environment,
    verify_software_subdir,
)
from eessi_remover.environment.exceptions import EnvironmentSetupError

__all__ = [
    "EnvironmentSetupError",
    "check_cvmfs_repo",
    "check_lmod",
    "determine_software_subdir",
    "load_eessi_environment",
    "prepare_environment",
    "verify_software_subdir",
]
