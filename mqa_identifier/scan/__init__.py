"""Batch scanning of file trees for MQA watermarks.

Pipeline:
    mqa-identifier <paths>
      1. DISCOVER: recursive walk, extension filter, traversal errors to ledger
      2. VALIDATE: existence, regular file, extension, fLaC header
      3. DETECT: decode first seconds, bit-plane scan, payload decode
      4. TAG: idempotent Vorbis comments on detection (skipped in dry run)

All shared state for one invocation lives on a RunContext owned by the
ScanOrchestrator.
"""

from .discovery import discover_files
from .orchestrator import RunSummary, ScanOrchestrator, default_worker_count
from .report import ScanReporter, render_report, write_report
from .state import AtomicCounter, ErrorLedger, RunContext, RunCounters
from .validation import has_flac_header, validate_candidate

__all__ = [
    "AtomicCounter",
    "ErrorLedger",
    "RunContext",
    "RunCounters",
    "RunSummary",
    "ScanOrchestrator",
    "ScanReporter",
    "default_worker_count",
    "discover_files",
    "has_flac_header",
    "render_report",
    "validate_candidate",
    "write_report",
]
