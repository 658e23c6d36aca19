"""Delete the installation directory and module file of a rebuild unit."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from eessi_remover.easybuild import RebuildUnit
from eessi_remover.remover.models import RemovalRecord

logger = logging.getLogger("eessi_remover.remover")


def _is_below(path: Path, base: Path) -> bool:
    """Check that path lies strictly below base.

    Both are normalized lexically; symlinks are not followed, so a symlinked
    module file still counts as being inside the module tree.
    """
    path = Path(os.path.abspath(path))
    base = Path(os.path.abspath(base))
    return path != base and path.is_relative_to(base)


def is_removable(unit: RebuildUnit, install_root: Path, module_ext: str = "lua") -> bool:
    """Check that both artifacts of a unit stay inside the install root.

    A unit name from a dry-run report is untrusted input: an absolute name or
    one with '..' segments would otherwise point anywhere on the filesystem.
    """
    root = Path(install_root)
    return _is_below(unit.install_dir(root), root / "software") and _is_below(
        unit.module_file(root, module_ext), root / "modules" / "all"
    )


def _remove_path(path: Path) -> bool:
    """Remove a file, symlink or directory tree if it exists.

    Returns:
        True if something was removed.
    """
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
        else:
            logger.debug("Nothing to remove at %s", path)
            return False
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to remove %s: %s", path, e)
        return False
    logger.info("Removed %s", path)
    return True


def remove_unit(unit: RebuildUnit, install_root: Path, module_ext: str = "lua") -> RemovalRecord:
    """Remove both artifacts of a unit, the equivalent of two `rm -rf` calls.

    Missing artifacts are not an error, so this can safely be called again
    for a unit that was already removed. A unit that resolves outside the
    install root is left alone and marked as rejected.

    Args:
        unit: The unit to remove.
        install_root: EasyBuild installation prefix.
        module_ext: Module file extension.

    Returns:
        RemovalRecord describing what was removed.
    """
    record = RemovalRecord(
        unit=unit,
        install_dir=unit.install_dir(install_root),
        module_file=unit.module_file(install_root, module_ext),
    )
    if not is_removable(unit, install_root, module_ext):
        logger.warning(
            "Refusing to remove %s and %s: %r is not a unit below %s",
            record.install_dir,
            record.module_file,
            unit.name,
            install_root,
        )
        record.rejected = True
        return record

    record.removed_install_dir = _remove_path(record.install_dir)
    record.removed_module_file = _remove_path(record.module_file)
    return record
