"""Candidate file enumeration.

Walks input paths recursively (depth-unbounded, sorted for stable output)
and collects files whose extension matches. Unreadable directories and
missing input paths are recorded in the run's error ledger and traversal
continues. Files with other extensions are skipped silently. Symlinked
directories are not followed.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from mqa_identifier.scan.state import ErrorLedger

logger = logging.getLogger(__name__)


def _matches(name: str, extensions: tuple[str, ...]) -> bool:
    return os.path.splitext(name)[1].lower() in extensions


def walk_directory(
    root: Path, ledger: ErrorLedger, extensions: tuple[str, ...]
) -> list[Path]:
    """Collect matching files below ``root``."""

    def on_error(error: OSError) -> None:
        location = error.filename or root
        logger.info("Skipping %s: %s", location, error)
        reason = error.strerror or str(error)
        ledger.record(f"Access denied / filesystem error: {reason}", location)

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames.sort()
        for name in sorted(filenames):
            if not _matches(name, extensions):
                continue
            candidate = Path(dirpath) / name
            if candidate.is_file():
                found.append(candidate)
    return found


def discover_files(
    paths: Iterable[str | Path],
    ledger: ErrorLedger,
    extensions: tuple[str, ...] = (".flac",),
) -> list[Path]:
    """Expand file and directory arguments into candidate files.

    Args:
        paths: Files and/or directories given by the user.
        ledger: Run ledger receiving traversal failures.
        extensions: Lower-cased extensions to keep (including the dot).

    Returns:
        Candidate files in discovery order, without duplicates.
    """
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        try:
            if not path.exists():
                ledger.record("Path does not exist", path)
            elif path.is_dir():
                files.extend(walk_directory(path, ledger, extensions))
            elif _matches(path.name, extensions):
                files.append(path)
        except OSError as e:
            ledger.record(f"Error accessing path: {e.strerror or e}", path)

    unique = list(dict.fromkeys(files))
    logger.info("Discovered %d candidate file(s)", len(unique))
    return unique
