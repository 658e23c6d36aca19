"""Shared pytest fixtures and configuration."""

from collections.abc import Callable
from pathlib import Path
from textwrap import dedent

import pytest


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: tests running real subprocesses")


# Shared fixtures


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    """Create an empty EasyBuild installation prefix."""
    root = tmp_path / "install"
    (root / "software").mkdir(parents=True)
    (root / "modules" / "all").mkdir(parents=True)
    return root


@pytest.fixture
def make_installation(install_root: Path) -> Callable[[str], tuple[Path, Path]]:
    """Return a helper that installs a fake unit under the install root."""

    def _make(unit: str, module_ext: str = "lua") -> tuple[Path, Path]:
        install_dir = install_root / "software" / unit
        (install_dir / "bin").mkdir(parents=True)
        (install_dir / "bin" / "tool").write_text("#!/bin/sh\n")
        module_file = install_root / "modules" / "all" / f"{unit}.{module_ext}"
        module_file.parent.mkdir(parents=True, exist_ok=True)
        module_file.write_text('help([[Fake module]])\n')
        return install_dir, module_file

    return _make


def diff_adding(*paths: str) -> str:
    """Build a git-style unified diff that adds the given files."""
    chunks = []
    for path in paths:
        chunks.append(
            dedent(f"""\
                diff --git a/{path} b/{path}
                new file mode 100644
                index 0000000..e69de29
                --- /dev/null
                +++ b/{path}
                @@ -0,0 +1,2 @@
                +easyconfigs:
                +  - foo-1.2.eb
                """)
        )
    return "".join(chunks)


@pytest.fixture
def write_diff(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes a PR diff adding the given files."""

    def _write(*paths: str, name: str = "1234.diff") -> Path:
        diff_path = tmp_path / name
        diff_path.write_text(diff_adding(*paths))
        return diff_path

    return _write


@pytest.fixture
def write_easystack(tmp_path: Path) -> Callable[[str], Path]:
    """Return a helper that creates an easystack file in the checkout."""

    def _write(path: str) -> Path:
        easystack = tmp_path / path
        easystack.parent.mkdir(parents=True, exist_ok=True)
        easystack.write_text("easyconfigs:\n  - foo-1.2.eb\n")
        return easystack

    return _write
