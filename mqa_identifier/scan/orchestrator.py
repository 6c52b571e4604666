"""Concurrent batch scanning.

Each discovered file becomes one task on a fixed-size thread pool. Task
admission is bounded by a semaphore sized to the pool, so the submitting
thread blocks while every worker is busy; queued tasks start in FIFO order.
This bounds memory and open file handles on very large trees.

Per-file state machine (logged at DEBUG):

    pending → validating → decoding → scanning → detected | not_detected | failed
    detected → tagging → done

Every task runs inside a single isolation boundary: any failure becomes a
ledger entry and a ``failed`` state, never an exception in the pool.
``scanned`` increments once per task regardless of outcome, ``matched``
once per detection. Tagging failures are recorded in the ledger but do not
downgrade a detection.

Usage:
    orchestrator = ScanOrchestrator(dry_run=True)
    summary = orchestrator.run(["/music"])
    print(summary.scanned, summary.matched, summary.ledger)
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from rich.console import Console

from mqa_identifier.detection.detector import Detector
from mqa_identifier.models import DetectionResult, ErrorKind, FileReport, FileState
from mqa_identifier.scan.discovery import discover_files
from mqa_identifier.scan.report import ScanReporter
from mqa_identifier.scan.state import RunContext
from mqa_identifier.scan.validation import validate_candidate
from mqa_identifier.settings import get_max_workers
from mqa_identifier.tagging import TagOutcome, VorbisTagWriter

logger = logging.getLogger(__name__)


class TagWriter(Protocol):
    """Tag persistence collaborator."""

    def write(
        self, path: Path, original_sample_rate: int, dry_run: bool = False
    ) -> TagOutcome: ...


def default_worker_count(cap: int | None = None) -> int:
    """Pool size: available CPUs, bounded by ``cap`` (settings default 16)."""
    cap = cap if cap is not None else get_max_workers()
    return max(1, min(os.cpu_count() or 1, cap))


@dataclass
class RunSummary:
    """Aggregates of a completed run."""

    scanned: int
    matched: int
    ledger: dict[str, list[str]] = field(default_factory=dict)
    reports: list[FileReport] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.reports if r.state == FileState.failed)


@dataclass
class _FileTask:
    index: int
    path: Path
    state: FileState = FileState.pending

    def transition(self, state: FileState) -> None:
        logger.debug(
            "[%d] %s: %s -> %s", self.index, self.path, self.state.value, state.value
        )
        self.state = state


class ScanOrchestrator:
    """Run detection over files and directories with bounded parallelism.

    Args:
        detector: Per-file detector (shared by all workers).
        tag_writer: Collaborator persisting positive detections.
        max_workers: Pool size; defaults to :func:`default_worker_count`.
        dry_run: Detect and report only, never touch files.
        extensions: Extensions considered during traversal and validation.
        console: Console for status lines.
    """

    def __init__(
        self,
        detector: Detector | None = None,
        tag_writer: TagWriter | None = None,
        *,
        max_workers: int | None = None,
        dry_run: bool = False,
        extensions: tuple[str, ...] = (".flac",),
        console: Console | None = None,
    ) -> None:
        self.detector = detector or Detector()
        self.tag_writer = tag_writer or VorbisTagWriter()
        self.max_workers = max_workers or default_worker_count()
        self.dry_run = dry_run
        self.extensions = extensions
        self.console = console

    def run(self, paths: Iterable[str | Path]) -> RunSummary:
        """Scan ``paths`` and return aggregates once every task has finished."""
        context = RunContext(dry_run=self.dry_run)
        reporter = ScanReporter(self.console, context.console_lock)

        files = discover_files(paths, context.ledger, self.extensions)
        reporter.banner(len(files))
        logger.info(
            "Scanning %d file(s) with %d worker(s)%s",
            len(files),
            self.max_workers,
            " (dry run)" if self.dry_run else "",
        )

        reports = self._run_pool(files, context, reporter)

        summary = RunSummary(
            scanned=context.counters.scanned.value,
            matched=context.counters.matched.value,
            ledger=context.ledger.snapshot(),
            reports=reports,
        )
        reporter.summary(summary.scanned, summary.matched)
        logger.info(
            "Scan complete: %d scanned, %d matched, %d failed",
            summary.scanned,
            summary.matched,
            summary.failed,
        )
        return summary

    def _run_pool(
        self, files: list[Path], context: RunContext, reporter: ScanReporter
    ) -> list[FileReport]:
        slots = threading.BoundedSemaphore(self.max_workers)
        submitted: list[tuple[int, Path, Future[FileReport]]] = []

        def release(_: Future[FileReport]) -> None:
            slots.release()

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="mqa-scan"
        ) as executor:
            for index, path in enumerate(files, start=1):
                slots.acquire()  # blocks while every worker is busy
                future = executor.submit(
                    self._process_file, index, path, context, reporter
                )
                future.add_done_callback(release)
                submitted.append((index, path, future))
        # Leaving the executor joins all workers
        return [
            self._collect(index, path, future, context)
            for index, path, future in submitted
        ]

    def _collect(
        self, index: int, path: Path, future: Future[FileReport], context: RunContext
    ) -> FileReport:
        error = future.exception()
        if error is None:
            return future.result()
        # Only reached if the task boundary itself failed
        logger.error("Task for %s escaped its boundary: %r", path, error)
        reason = f"Unexpected error: {error}"
        context.ledger.record(reason, path)
        return FileReport(
            index, path, FileState.failed, reason=reason, kind=ErrorKind.unknown
        )

    def _process_file(
        self, index: int, path: Path, context: RunContext, reporter: ScanReporter
    ) -> FileReport:
        task = _FileTask(index, path)
        try:
            return self._pipeline(task, context, reporter)
        except Exception as e:
            logger.exception("Unexpected error processing %s", path)
            reason = f"Unexpected error: {e}"
            return self._fail(task, ErrorKind.unknown, reason, context, reporter)
        finally:
            context.counters.scanned.increment()

    def _pipeline(
        self, task: _FileTask, context: RunContext, reporter: ScanReporter
    ) -> FileReport:
        task.transition(FileState.validating)
        error = validate_candidate(task.path, self.extensions)
        if error is not None:
            return self._fail(task, error.kind, error.message, context, reporter)

        result = self.detector.detect(task.path, on_state=task.transition)
        if result.error is not None:
            logger.info(
                "%s: %s (%s)", task.path, result.error.message, result.error.kind.value
            )
            return self._fail(
                task, result.error.kind, result.error.message, context, reporter, result
            )

        if not result.is_watermarked:
            task.transition(FileState.not_detected)
            reporter.file_status(task.index, task.path, result)
            return FileReport(task.index, task.path, task.state, result)

        task.transition(FileState.detected)
        context.counters.matched.increment()
        reporter.file_status(task.index, task.path, result)
        outcome = self._tag(task, result, context, reporter)
        if outcome is not None and not outcome.success:
            return FileReport(
                task.index,
                task.path,
                task.state,
                result,
                reason=outcome.reason,
                kind=ErrorKind.tagging,
            )
        return FileReport(task.index, task.path, task.state, result)

    def _tag(
        self,
        task: _FileTask,
        result: DetectionResult,
        context: RunContext,
        reporter: ScanReporter,
    ) -> TagOutcome | None:
        """Tag a detected file; returns None in dry-run mode."""
        task.transition(FileState.tagging)
        outcome = None
        if context.dry_run:
            reporter.dry_run_notice(task.path)
        else:
            try:
                outcome = self.tag_writer.write(
                    task.path, result.original_sample_rate, dry_run=False
                )
            except Exception as e:
                logger.exception("Tag writer raised for %s", task.path)
                outcome = TagOutcome(success=False, reason=f"Tagging error: {e}")
            if not outcome.success:
                reason = outcome.reason or "Tagging failed"
                outcome = TagOutcome(success=False, reason=reason)
                context.ledger.record(reason, task.path)
        task.transition(FileState.done)
        return outcome

    def _fail(
        self,
        task: _FileTask,
        kind: ErrorKind,
        reason: str,
        context: RunContext,
        reporter: ScanReporter,
        result: DetectionResult | None = None,
    ) -> FileReport:
        task.transition(FileState.failed)
        context.ledger.record(reason, task.path)
        try:
            reporter.file_error(task.index, task.path, reason)
        except Exception:
            # Already recorded in the ledger
            logger.exception("Could not print error line for %s", task.path)
        return FileReport(task.index, task.path, task.state, result, reason, kind)
