"""Logging for eessi-remover.

Progress meant for the operator is printed by the CLI. The log file is the
detailed record of which EasyBuild was loaded, what was run and what was
removed. Removal runs as root inside a repository checkout, so the log is
kept with the build logs or in the per-user work directory, not in the
checkout itself.
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "eessi_remover"
LOG_FILE = "eessi-remover.log"
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Silent until setup_logging() runs, e.g. when the configuration is invalid
logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def default_log_dir(environ: Mapping[str, str]) -> Path:
    """Pick the directory for the log file.

    The first one set of $EESSI_REMOVER_LOG_DIR, $build_logs_dir and $WORKDIR
    is used, falling back to the system temporary directory.
    """
    for var in ("EESSI_REMOVER_LOG_DIR", "build_logs_dir", "WORKDIR"):
        if environ.get(var):
            return Path(environ[var])
    return Path(tempfile.gettempdir())


def setup_logging(
    log_dir: str | Path | None = None,
    verbose: bool = False,
    environ: Mapping[str, str] | None = None,
) -> logging.Logger:
    """Send eessi-remover log records to a rotating log file.

    Call after the environment is prepared, so $build_logs_dir and $WORKDIR
    are known.

    Args:
        log_dir: Directory for the log file. Defaults to default_log_dir().
        verbose: Log at DEBUG level and echo records to stderr as well.
        environ: Environment to read defaults from. Defaults to os.environ.
            $EESSI_REMOVER_LOG_LEVEL overrides the level.

    Returns:
        The eessi_remover logger.
    """
    if environ is None:
        environ = os.environ
    log_dir = Path(log_dir) if log_dir else default_log_dir(environ)
    log_dir.mkdir(parents=True, exist_ok=True)

    level_name = environ.get("EESSI_REMOVER_LOG_LEVEL") or ("DEBUG" if verbose else "INFO")
    level = getattr(logging, level_name.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    log_path = log_dir / LOG_FILE
    file_handler = RotatingFileHandler(
        log_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    if verbose:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    logger.info(
        "Logging to %s (level %s, pid %d)", log_path, logging.getLevelName(level), os.getpid()
    )
    return logger


def truncate_output(output: str, max_length: int = 5000) -> str:
    """Shorten command output for log records and error messages.

    The end is kept: that is where eb and bash report what went wrong.
    """
    if len(output) <= max_length:
        return output
    return f"[... {len(output) - max_length} chars truncated]\n" + output[-max_length:]
