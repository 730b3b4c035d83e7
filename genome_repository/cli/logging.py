"""CLI logging configuration with file output.

Provides a shared ``configure_cli_logging`` function that sets up both
console and file logging for CLI commands.  Log files live under
``~/.local/share/genome-repository/logs/``.

Naming convention::

    <command>_<source>.log   # e.g. run_ega.log when importing one source
    <command>.log            # fallback when no source is specified

Follow a run with::

    tail -f ~/.local/share/genome-repository/logs/run.log
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from genome_repository.settings import DATA_BASE_DIR

LOG_DIR = DATA_BASE_DIR / "logs"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_dir() -> Path:
    """Return the CLI log directory, creating it if needed."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    return LOG_DIR


def get_log_file(command: str, source: str | None = None) -> Path:
    """Return the log file path for a CLI command, split per source when given."""
    stem = f"{command}_{source}" if source else command
    return get_log_dir() / f"{stem}.log"


def configure_cli_logging(
    command: str,
    *,
    source: str | None = None,
    verbose: bool = False,
    console_level: int | None = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 3,
) -> Path:
    """Configure logging for a CLI command with file output.

    Sets up:
    - File handler: DEBUG-level rotating log at
      ``~/.local/share/genome-repository/logs/<command>.log``
    - Console handler: WARNING (or INFO if verbose)

    Args:
        command: CLI command name (e.g., "run", "index")
        source: Single source being imported, splits the log file
        verbose: If True, set console to INFO level
        console_level: Override console level (takes precedence over verbose)
        file_level: File log level (default: DEBUG)
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated backups to keep

    Returns:
        Path to the log file
    """
    log_file = get_log_file(command, source=source)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger("genome_repository")

    # Remove handlers from previous calls to avoid duplicates
    for handler in package_logger.handlers[:]:
        if isinstance(handler, (logging.FileHandler, logging.StreamHandler)):
            package_logger.removeHandler(handler)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    package_logger.addHandler(file_handler)

    if console_level is None:
        console_level = logging.INFO if verbose else logging.WARNING
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger.addHandler(console_handler)

    # NOTSET inherits WARNING from the root logger, which would starve the file handler
    if package_logger.level == logging.NOTSET or package_logger.level > file_level:
        package_logger.setLevel(min(file_level, console_level))

    return log_file
