"""Run-scoped shared state for batch scanning.

Everything workers share lives on one :class:`RunContext`, created at batch
start and owned by the orchestrator:

- :class:`RunCounters`: ``scanned`` / ``matched``, each behind its own lock
- :class:`ErrorLedger`: failure reason → paths, mutated under one lock
- ``console_lock``: one exclusive section per emitted status line

Aggregates are only guaranteed consistent after all workers have joined.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


class AtomicCounter:
    """Integer counter safe for concurrent increments."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class RunCounters:
    """Per-run aggregate counters."""

    scanned: AtomicCounter = field(default_factory=AtomicCounter)
    matched: AtomicCounter = field(default_factory=AtomicCounter)


class ErrorLedger:
    """Failure reasons mapped to affected paths, in insertion order."""

    def __init__(self) -> None:
        self._entries: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def record(self, reason: str, path: Path | str) -> None:
        """Append ``path`` under ``reason``."""
        with self._lock:
            self._entries.setdefault(reason, []).append(str(path))
        logger.debug("Ledger: %s: %s", reason, path)

    def snapshot(self) -> dict[str, list[str]]:
        """Return a copy of the ledger."""
        with self._lock:
            return {reason: list(paths) for reason, paths in self._entries.items()}

    @property
    def total(self) -> int:
        """Number of recorded paths across all reasons."""
        with self._lock:
            return sum(len(paths) for paths in self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __bool__(self) -> bool:
        return len(self) > 0


@dataclass
class RunContext:
    """Shared state for one scan invocation."""

    dry_run: bool = False
    counters: RunCounters = field(default_factory=RunCounters)
    ledger: ErrorLedger = field(default_factory=ErrorLedger)
    console_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
