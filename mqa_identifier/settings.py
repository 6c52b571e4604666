"""Project settings loaded from pyproject.toml [tool.mqa-identifier] section.

Settings:
  max-workers    : upper cap on concurrent scan workers (default 16)
  window-seconds : seconds of audio decoded per file (default 3.0)
  extensions     : file extensions considered for scanning (default [".flac"])
  report-file    : path of the end-of-run failure report (default mqa_identifier.log)
  block-size     : frames read from the decoder per block (default 4096)

All settings support environment variable overrides (MQA_IDENTIFIER_* prefix).
"""

import importlib.resources
import os
import tomllib
from functools import cache
from pathlib import Path

DEFAULT_MAX_WORKERS = 16
DEFAULT_WINDOW_SECONDS = 3.0
DEFAULT_EXTENSIONS = (".flac",)
DEFAULT_REPORT_FILE = "mqa_identifier.log"
DEFAULT_BLOCK_SIZE = 4096


@cache
def _load_pyproject_settings() -> dict:
    """Load settings from pyproject.toml [tool.mqa-identifier] section.

    Returns:
        Dictionary of settings from pyproject.toml, empty dict if not found.
    """
    try:
        # Try package resources first (installed package)
        files = importlib.resources.files("mqa_identifier")
        pyproject_path = files.joinpath("..", "pyproject.toml")

        if not pyproject_path.is_file():  # type: ignore[union-attr]
            # Walk up to find pyproject.toml (for development)
            current = Path(__file__).resolve().parent
            while current != current.parent:
                candidate = current / "pyproject.toml"
                if candidate.exists():
                    pyproject_path = candidate
                    break
                current = current.parent
            else:
                return {}

        data = tomllib.loads(pyproject_path.read_text())  # type: ignore[union-attr]
        return data.get("tool", {}).get("mqa-identifier", {})
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def get_max_workers() -> int:
    """Get the cap on concurrent scan workers.

    The effective pool size is ``min(os.cpu_count(), cap)``; the cap bounds
    I/O contention on large libraries.

    Priority: MQA_IDENTIFIER_MAX_WORKERS env → [tool.mqa-identifier].max-workers → 16.
    """
    if env := os.getenv("MQA_IDENTIFIER_MAX_WORKERS"):
        return max(1, int(env))
    value = _load_pyproject_settings().get("max-workers")
    return max(1, int(value)) if value is not None else DEFAULT_MAX_WORKERS


def get_window_seconds() -> float:
    """Get the number of seconds of audio decoded per file.

    Priority: MQA_IDENTIFIER_WINDOW_SECONDS env → [tool.mqa-identifier].window-seconds → 3.0.
    """
    if env := os.getenv("MQA_IDENTIFIER_WINDOW_SECONDS"):
        return float(env)
    value = _load_pyproject_settings().get("window-seconds")
    return float(value) if value is not None else DEFAULT_WINDOW_SECONDS


def get_extensions() -> tuple[str, ...]:
    """Get the lower-cased file extensions considered for scanning.

    Priority: MQA_IDENTIFIER_EXTENSIONS env (comma-separated)
              → [tool.mqa-identifier].extensions → (".flac",).
    """
    if env := os.getenv("MQA_IDENTIFIER_EXTENSIONS"):
        raw = [part.strip() for part in env.split(",") if part.strip()]
    else:
        raw = _load_pyproject_settings().get("extensions") or list(DEFAULT_EXTENSIONS)
    return tuple(_normalize_extension(ext) for ext in raw)


def get_report_file() -> Path:
    """Get the path of the end-of-run failure report written with ``-v``.

    Priority: MQA_IDENTIFIER_REPORT_FILE env → [tool.mqa-identifier].report-file
              → mqa_identifier.log (relative to the working directory).
    """
    if env := os.getenv("MQA_IDENTIFIER_REPORT_FILE"):
        return Path(env)
    return Path(_load_pyproject_settings().get("report-file", DEFAULT_REPORT_FILE))


def get_block_size() -> int:
    """Get the number of frames requested from the decoder per block."""
    if env := os.getenv("MQA_IDENTIFIER_BLOCK_SIZE"):
        return max(1, int(env))
    value = _load_pyproject_settings().get("block-size")
    return max(1, int(value)) if value is not None else DEFAULT_BLOCK_SIZE


def _normalize_extension(ext: str) -> str:
    ext = ext.lower()
    return ext if ext.startswith(".") else f".{ext}"
