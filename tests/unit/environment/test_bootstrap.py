"""Unit tests for environment setup."""

import shutil
import subprocess
import sys
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from eessi_remover.config import EnvironmentSettings
from eessi_remover.environment import (
    EnvironmentSetupError,
    check_cvmfs_repo,
    check_lmod,
    determine_software_subdir,
    load_eessi_environment,
    prepare_environment,
    verify_software_subdir,
)


@pytest.fixture
def prepared() -> Iterator[list[Path]]:
    """Collect scratch directories created by a test and remove them afterwards."""
    scratch_dirs: list[Path] = []
    yield scratch_dirs
    for scratch in scratch_dirs:
        shutil.rmtree(scratch, ignore_errors=True)


@pytest.mark.unit
class TestPrepareEnvironment:
    """Tests for prepare_environment."""

    def test_exports_proxies(self, prepared: list[Path]) -> None:
        environ: dict[str, str] = {"USER": "eessi"}
        settings = EnvironmentSettings(
            http_proxy="http://proxy:3128", https_proxy="http://proxy:3129"
        )

        prepared.append(prepare_environment(settings, environ))

        assert environ["http_proxy"] == "http://proxy:3128"
        assert environ["https_proxy"] == "http://proxy:3129"

    def test_no_proxies_by_default(self, prepared: list[Path]) -> None:
        environ: dict[str, str] = {"USER": "eessi"}

        prepared.append(prepare_environment(EnvironmentSettings(), environ))

        assert "http_proxy" not in environ
        assert "https_proxy" not in environ

    def test_workdir_from_tmpdir(self, prepared: list[Path], tmp_path: Path) -> None:
        environ = {"USER": "eessi", "TMPDIR": str(tmp_path)}

        prepared.append(prepare_environment(EnvironmentSettings(), environ))

        assert environ["WORKDIR"] == str(tmp_path / "eessi")

    def test_workdir_defaults_to_tmp(self, prepared: list[Path]) -> None:
        environ = {"USER": "eessi"}

        prepared.append(prepare_environment(EnvironmentSettings(), environ))

        assert environ["WORKDIR"] == "/tmp/eessi"

    def test_scratch_and_pycache(self, prepared: list[Path]) -> None:
        """A scratch directory is created and pyc files are redirected into it."""
        environ = {"USER": "eessi"}

        scratch = prepare_environment(EnvironmentSettings(), environ)
        prepared.append(scratch)

        assert scratch.is_dir()
        assert environ["PYTHONPYCACHEPREFIX"] == str(scratch / "pycache")

    def test_shared_sourcepath_prepended(self, prepared: list[Path]) -> None:
        environ = {"USER": "eessi", "EASYBUILD_SOURCEPATH": "/local/sources"}
        settings = EnvironmentSettings(shared_fs_path="/shared")

        prepared.append(prepare_environment(settings, environ))

        assert environ["EASYBUILD_SOURCEPATH"] == "/shared/easybuild/sources:/local/sources"

    def test_shared_sourcepath_without_existing(self, prepared: list[Path]) -> None:
        environ = {"USER": "eessi"}
        settings = EnvironmentSettings(shared_fs_path="/shared")

        prepared.append(prepare_environment(settings, environ))

        assert environ["EASYBUILD_SOURCEPATH"] == "/shared/easybuild/sources"

    def test_build_logs_dir(self, prepared: list[Path]) -> None:
        environ = {"USER": "eessi"}
        settings = EnvironmentSettings(build_logs_dir="/logs")

        prepared.append(prepare_environment(settings, environ))

        assert environ["build_logs_dir"] == "/logs"


@pytest.mark.unit
class TestCheckCvmfsRepo:
    """Tests for check_cvmfs_repo."""

    def test_available(self, tmp_path: Path) -> None:
        assert check_cvmfs_repo(tmp_path) == tmp_path

    def test_unavailable(self, tmp_path: Path) -> None:
        with pytest.raises(EnvironmentSetupError, match="is not available"):
            check_cvmfs_repo(tmp_path / "cvmfs" / "software.eessi.io")

    def test_not_configured(self) -> None:
        with pytest.raises(EnvironmentSetupError, match="No CVMFS repository"):
            check_cvmfs_repo(None)


@pytest.mark.unit
class TestDetermineSoftwareSubdir:
    """Tests for determine_software_subdir."""

    def test_predefined_override(self, tmp_path: Path) -> None:
        environ = {"EESSI_SOFTWARE_SUBDIR_OVERRIDE": "x86_64/amd/zen2"}

        with patch("eessi_remover.environment.bootstrap.subprocess.run") as mock_run:
            subdir = determine_software_subdir(tmp_path / "detect.py", environ)

        assert subdir == "x86_64/amd/zen2"
        mock_run.assert_not_called()

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_detects_and_exports(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = MagicMock(returncode=0, stdout="aarch64/neoverse_v1\n")
        environ: dict[str, str] = {}

        subdir = determine_software_subdir(tmp_path / "detect.py", environ)

        assert subdir == "aarch64/neoverse_v1"
        assert environ["EESSI_SOFTWARE_SUBDIR_OVERRIDE"] == "aarch64/neoverse_v1"
        assert mock_run.call_args.args[0] == [sys.executable, str(tmp_path / "detect.py")]

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_generic_flag(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = MagicMock(returncode=0, stdout="x86_64/generic\n")

        determine_software_subdir(tmp_path / "detect.py", {}, generic=True)

        assert mock_run.call_args.args[0][-1] == "--generic"

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_detection_failure(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            1, "detect.py", stderr="unknown CPU"
        )

        with pytest.raises(EnvironmentSetupError, match="unknown CPU"):
            determine_software_subdir(tmp_path / "detect.py", {})


@pytest.mark.unit
class TestLoadEessiEnvironment:
    """Tests for load_eessi_environment."""

    @pytest.fixture
    def init_script(self, tmp_path: Path) -> Path:
        script = tmp_path / "init" / "eessi_environment_variables"
        script.parent.mkdir()
        script.write_text("")
        return script

    def test_missing_script(self, tmp_path: Path) -> None:
        with pytest.raises(EnvironmentSetupError, match="EESSI init script not found"):
            load_eessi_environment(tmp_path / "init" / "eessi_environment_variables", {})

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_returns_changed_variables(self, mock_run: MagicMock, init_script: Path) -> None:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout=(
                b"PATH=/usr/bin\0"
                b"EESSI_SOFTWARE_SUBDIR=x86_64/amd/zen2\0"
                b"EPREFIX=/cvmfs/software.eessi.io/versions/2023.06/compat/linux/x86_64\0"
                b"SHLVL=2\0_=/usr/bin/env\0EESSI_SILENT=1\0"
            ),
            stderr=b"",
        )

        exported = load_eessi_environment(init_script, {"PATH": "/usr/bin"})

        assert exported == {
            "EESSI_SOFTWARE_SUBDIR": "x86_64/amd/zen2",
            "EPREFIX": "/cvmfs/software.eessi.io/versions/2023.06/compat/linux/x86_64",
        }

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_sources_silently(self, mock_run: MagicMock, init_script: Path) -> None:
        """The script is sourced with the silent and basic environment flags."""
        mock_run.return_value = MagicMock(returncode=0, stdout=b"", stderr=b"")
        environ = {"EESSI_SOFTWARE_SUBDIR_OVERRIDE": "x86_64/generic"}

        load_eessi_environment(init_script, environ)

        cmd = mock_run.call_args.args[0]
        env = mock_run.call_args.kwargs["env"]
        assert cmd[:2] == ["bash", "-c"]
        assert cmd[-1] == str(init_script)
        assert env["EESSI_SILENT"] == "1"
        assert env["EESSI_BASIC_ENV"] == "1"
        assert env["EESSI_SOFTWARE_SUBDIR_OVERRIDE"] == "x86_64/generic"
        assert "EESSI_SILENT" not in environ

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_failure(self, mock_run: MagicMock, init_script: Path) -> None:
        mock_run.return_value = MagicMock(
            returncode=1, stdout=b"", stderr=b"EESSI_PREFIX not found\n"
        )

        with pytest.raises(EnvironmentSetupError, match="EESSI_PREFIX not found"):
            load_eessi_environment(init_script, {})


@pytest.mark.unit
class TestVerifySoftwareSubdir:
    """Tests for verify_software_subdir."""

    def test_matching(self) -> None:
        assert verify_software_subdir("x86_64/amd/zen2", "x86_64/amd/zen2") == "x86_64/amd/zen2"

    def test_actual_unset(self) -> None:
        """The EESSI environment must define the subdirectory."""
        with pytest.raises(EnvironmentSetupError, match="Failed to determine"):
            verify_software_subdir("x86_64/amd/zen2", None)

    def test_empty(self) -> None:
        with pytest.raises(EnvironmentSetupError, match="Failed to determine"):
            verify_software_subdir("", None)

    def test_mismatch(self) -> None:
        with pytest.raises(EnvironmentSetupError, match="differ"):
            verify_software_subdir("x86_64/amd/zen2", "x86_64/generic")


@pytest.mark.unit
class TestCheckLmod:
    """Tests for check_lmod."""

    def test_missing_init(self, tmp_path: Path) -> None:
        with pytest.raises(EnvironmentSetupError, match="Lmod init script not found"):
            check_lmod(tmp_path / "bash", {})

    def test_not_configured(self) -> None:
        with pytest.raises(EnvironmentSetupError):
            check_lmod(None, {})

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_success(self, mock_run: MagicMock, tmp_path: Path) -> None:
        init = tmp_path / "bash"
        init.write_text("")
        mock_run.return_value = MagicMock(
            returncode=0, stdout="8.7.32\n", stderr="Modules based on Lua: Version 8.7.32\n"
        )

        assert check_lmod(init, {}) == "8.7.32"
        script = mock_run.call_args.args[0][2]
        assert script.endswith(' && echo "$LMOD_VERSION"')

    @patch("eessi_remover.environment.bootstrap.subprocess.run")
    def test_failure(self, mock_run: MagicMock, tmp_path: Path) -> None:
        init = tmp_path / "bash"
        init.write_text("")
        mock_run.return_value = MagicMock(returncode=127, stdout="", stderr="ml: not found")

        with pytest.raises(EnvironmentSetupError, match="Failed to initialize Lmod"):
            check_lmod(init, {})
