"""Console status lines and the end-of-run failure report.

Every console line is emitted inside the run's console lock so lines from
concurrent workers never interleave mid-line; the order of lines from
different files is unspecified.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from rich.console import Console
from rich.text import Text

from mqa_identifier.detection.codecs import format_sample_rate
from mqa_identifier.models import DetectionResult

logger = logging.getLogger(__name__)

REPORT_TITLE = "MQA Identifier Scan Log"

_BANNER = (
    "**************************************************",
    "***********  MQA flac identifier tool  ***********",
    "**************************************************",
)


def display_text(text: str) -> str:
    """Make ``text`` printable on any UTF-8 stream.

    Names decoded from undecodable bytes carry lone surrogates; these become
    backslash escapes such as ``\\udcff`` instead of failing the write.
    """
    return text.encode("utf-8", "backslashreplace").decode("utf-8")


def describe_encoding(result: DetectionResult) -> str:
    """Return the encoding column for a detection result."""
    if not result.is_watermarked:
        return "NOT MQA"
    if not result.original_sample_rate:
        return "MQA"
    studio = "Studio " if result.is_studio else ""
    return f"MQA {studio}{format_sample_rate(result.original_sample_rate)}"


class ScanReporter:
    """Line-atomic console output for a scan run.

    Args:
        console: Rich console to print to.
        lock: Lock guarding each emitted line (usually ``RunContext.console_lock``).
    """

    def __init__(
        self, console: Console | None = None, lock: threading.Lock | None = None
    ) -> None:
        self.console = console or Console(highlight=False)
        self.lock = lock or threading.Lock()

    def line(self, text: str | Text) -> None:
        with self.lock:
            self.console.print(text, soft_wrap=True, highlight=False, markup=False)

    def banner(self, file_count: int) -> None:
        for row in _BANNER:
            self.line(row)
        self.line(f"Found {file_count} file(s) for scanning...\n")
        self.line("  #\tEncoding\tName")

    def file_status(self, index: int, path: Path, result: DetectionResult) -> None:
        encoding = describe_encoding(result)
        style = "bold green" if result.is_watermarked else "dim"
        self.line(
            Text.assemble(
                f"{index:>3}\t", (encoding, style), "\t", display_text(path.name)
            )
        )

    def file_error(self, index: int, path: Path, reason: str) -> None:
        detail = f"\t{display_text(path.name)}: {display_text(reason)}"
        self.line(Text.assemble(f"{index:>3}\t", ("ERROR", "bold red"), detail))

    def dry_run_notice(self, path: Path) -> None:
        self.line(f"DRY RUN: would write tags to {display_text(path.name)}")

    def summary(self, scanned: int, matched: int) -> None:
        self.line("\n**************************************************")
        self.line(f"Scanned {scanned} files")
        self.line(f"Found {matched} MQA files")


def render_report(entries: dict[str, list[str]]) -> str:
    """Render ledger entries grouped by reason (reasons sorted)."""
    lines = [REPORT_TITLE, "=" * len(REPORT_TITLE), ""]
    for reason in sorted(entries):
        lines.append(f"Reason: {reason}")
        lines.extend(f" - {path}" for path in entries[reason])
        lines.append("")
    return "\n".join(lines)


def write_report(entries: dict[str, list[str]], path: Path) -> Path:
    """Write the failure report to ``path`` and return it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        render_report(entries), encoding="utf-8", errors="backslashreplace"
    )
    logger.info("Scan report written to %s", path)
    return path
