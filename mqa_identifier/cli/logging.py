"""CLI logging configuration with file output.

``configure_cli_logging`` attaches a rotating DEBUG-level file handler to
the ``mqa_identifier`` logger. Log files live under
``~/.local/share/mqa-identifier/logs/`` (override with
``MQA_IDENTIFIER_LOG_DIR``), one per CLI command::

    scan.log

Usage::

    from mqa_identifier.cli.logging import configure_cli_logging

    configure_cli_logging("scan", verbose=verbose)

Follow a running scan with::

    tail -f ~/.local/share/mqa-identifier/logs/scan.log
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Standard log directory follows XDG convention
LOG_DIR = Path.home() / ".local" / "share" / "mqa-identifier" / "logs"


def get_log_dir() -> Path:
    """Return the CLI log directory, creating it if needed."""
    log_dir = Path(os.environ.get("MQA_IDENTIFIER_LOG_DIR", LOG_DIR))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file(command: str) -> Path:
    """Return the log file path for a given CLI command."""
    return get_log_dir() / f"{command}.log"


def configure_cli_logging(
    command: str,
    *,
    verbose: bool = False,
    console_level: int | None = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 3,
) -> Path:
    """Configure logging for a CLI command.

    Sets up:
    - File handler: rotating log at ``<log dir>/<command>.log``
    - Console handler (stderr): WARNING, or INFO when verbose

    Args:
        command: CLI command name (e.g., "scan")
        verbose: If True, set console to INFO level
        console_level: Override console level (takes precedence over verbose)
        file_level: File log level (default: DEBUG)
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated backups to keep

    Returns:
        Path to the log file
    """
    log_file = get_log_file(command)
    package_logger = logging.getLogger("mqa_identifier")

    # Remove handlers from earlier calls to avoid duplicates
    for handler in package_logger.handlers[:]:
        if getattr(handler, "_mqa_cli_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(threadName)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    file_handler._mqa_cli_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(file_handler)

    if console_level is None:
        console_level = logging.INFO if verbose else logging.WARNING
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
    console_handler._mqa_cli_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(console_handler)

    # NOTSET inherits WARNING from the root logger, which would starve the
    # file handler
    lowest = min(file_level, console_level)
    if package_logger.level == logging.NOTSET or package_logger.level > lowest:
        package_logger.setLevel(lowest)

    return log_file
