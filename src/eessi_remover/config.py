"""Configuration loading for eessi-remover."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from eessi_remover.exceptions import RemoverError

CONFIG_FILE_NAME = "eessi-remover.yaml"


class ConfigError(RemoverError):
    """Raised when configuration is invalid or missing."""


def default_lmod_init(environ: Mapping[str, str]) -> str | None:
    """Lmod bash init file of the compatibility layer, if $EPREFIX is known."""
    eprefix = environ.get("EPREFIX")
    if not eprefix:
        return None
    return str(Path(eprefix) / "usr" / "share" / "Lmod" / "init" / "bash")


@dataclass
class EasyBuildSettings:
    """How EasyBuild is activated and invoked."""

    command: str = "eb"
    version_marker: str = "eb-"
    load_script: str = "load_easybuild_module.sh"
    timeout: int | None = None


@dataclass
class EnvironmentSettings:
    """Build environment settings taken over from the install script options."""

    generic: bool = False
    http_proxy: str | None = None
    https_proxy: str | None = None
    shared_fs_path: str | None = None
    build_logs_dir: str | None = None
    cvmfs_repo: str | None = None
    lmod_init: str | None = None
    software_subdir_script: str = "eessi_software_subdir.py"
    eessi_init_script: str = "init/eessi_environment_variables"


@dataclass
class RemoverConfig:
    """Explicit configuration passed into the removal run.

    Replaces the environment variables the shell version relied on
    ($EASYBUILD_INSTALLPATH, proxies, shared filesystem path).
    """

    install_root: Path
    module_ext: str = "lua"
    easystacks_dir: str = "easystacks"
    rebuilds_marker: str = "/rebuilds/"
    exclude_markers: list[str] = field(default_factory=lambda: ["known-issues", "missing"])
    diff_pattern: str = "[0-9]*.diff"
    allow_multiple_diffs: bool = False
    easybuild: EasyBuildSettings = field(default_factory=EasyBuildSettings)
    environment: EnvironmentSettings = field(default_factory=EnvironmentSettings)
    root_path: Path = field(default_factory=Path)

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        root_path: Path,
        environ: Mapping[str, str] | None = None,
    ) -> RemoverConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary from YAML.
            root_path: Root directory containing the config file.
            environ: Environment used for fallbacks. Defaults to os.environ.

        Returns:
            Parsed configuration object.

        Raises:
            ConfigError: If required fields are missing or malformed.
        """
        if environ is None:
            environ = os.environ

        install_root = data.get("install_root") or environ.get("EASYBUILD_INSTALLPATH")
        if not install_root:
            raise ConfigError(
                "Missing required fields: install_root (or $EASYBUILD_INSTALLPATH)"
            )

        exclude_markers = data.get("exclude_markers", ["known-issues", "missing"])
        if not isinstance(exclude_markers, list):
            raise ConfigError("exclude_markers must be a list of strings")

        eb_data = data.get("easybuild", {}) or {}
        easybuild = EasyBuildSettings(
            command=eb_data.get("command", "eb"),
            version_marker=eb_data.get("version_marker", "eb-"),
            load_script=eb_data.get("load_script", "load_easybuild_module.sh"),
            timeout=eb_data.get("timeout"),
        )

        env_data = data.get("environment", {}) or {}
        environment = EnvironmentSettings(
            generic=bool(env_data.get("generic", False)),
            http_proxy=env_data.get("http_proxy"),
            https_proxy=env_data.get("https_proxy"),
            shared_fs_path=env_data.get("shared_fs_path"),
            build_logs_dir=env_data.get("build_logs_dir"),
            cvmfs_repo=env_data.get("cvmfs_repo", environ.get("EESSI_CVMFS_REPO")),
            lmod_init=env_data.get("lmod_init", default_lmod_init(environ)),
            software_subdir_script=env_data.get(
                "software_subdir_script", "eessi_software_subdir.py"
            ),
            eessi_init_script=env_data.get(
                "eessi_init_script", "init/eessi_environment_variables"
            ),
        )

        return cls(
            install_root=Path(install_root),
            module_ext=data.get("module_ext", "lua"),
            easystacks_dir=data.get("easystacks_dir", "easystacks"),
            rebuilds_marker=data.get("rebuilds_marker", "/rebuilds/"),
            exclude_markers=exclude_markers,
            diff_pattern=data.get("diff_pattern", "[0-9]*.diff"),
            allow_multiple_diffs=bool(data.get("allow_multiple_diffs", False)),
            easybuild=easybuild,
            environment=environment,
            root_path=root_path,
        )

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, root_path: Path | None = None
    ) -> RemoverConfig:
        """Create config purely from environment variables and defaults."""
        return cls.from_dict({}, root_path or Path.cwd(), environ)

    def _resolve(self, path: str) -> Path:
        resolved = Path(path)
        if resolved.is_absolute():
            return resolved
        return self.root_path / resolved

    def get_load_script_path(self) -> Path:
        """Get absolute path to the EasyBuild module load script."""
        return self._resolve(self.easybuild.load_script)

    def get_software_subdir_script_path(self) -> Path:
        """Get absolute path to the software subdirectory detection script."""
        return self._resolve(self.environment.software_subdir_script)

    def get_eessi_init_script_path(self) -> Path:
        """Get absolute path to the script exporting the EESSI environment variables."""
        return self._resolve(self.environment.eessi_init_script)

    def get_module_path(self) -> Path:
        """Get the module directory that $MODULEPATH is reset to."""
        return self.install_root / "modules" / "all"


def load_config(
    config_path: Path | str, environ: Mapping[str, str] | None = None
) -> RemoverConfig:
    """Load eessi-remover configuration from a YAML file.

    Args:
        config_path: Path to eessi-remover.yaml file.
        environ: Environment used for fallbacks. Defaults to os.environ.

    Returns:
        Parsed configuration object.

    Raises:
        ConfigError: If file doesn't exist or is invalid.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    return RemoverConfig.from_dict(data, config_path.parent, environ)


def find_config(start_path: Path | str | None = None) -> Path | None:
    """Find eessi-remover.yaml by walking up directory tree.

    Args:
        start_path: Starting directory. Defaults to current directory.

    Returns:
        Path to the config file, or None when there is none. A config file is
        optional; environment variables and CLI options are enough to run.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path)

    current = start_path.resolve()

    while current != current.parent:
        config_path = current / CONFIG_FILE_NAME
        if config_path.exists():
            return config_path
        current = current.parent

    config_path = current / CONFIG_FILE_NAME
    if config_path.exists():
        return config_path

    return None
