"""Shared data model for detection and batch scanning.

Results are explicit values: expected failures (bad header, unsupported
format, decode failure) travel as a :class:`DetectionError` inside the
result rather than as exceptions. Exceptions are reserved for collaborator
edges (:class:`DecodeError` from the sample source,
:class:`InvalidBytecodeError` from the rate codec) and for the task boundary
in the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

SUPPORTED_CHANNELS = 2
SUPPORTED_BIT_DEPTHS = frozenset({16, 24})


class ErrorKind(str, Enum):
    """Category of a per-file failure."""

    validation = "validation"  # Missing path, bad extension or header
    unsupported_format = "unsupported_format"  # Wrong channel count or bit depth
    decode = "decode"  # Codec-layer failure
    invalid_bytecode = "invalid_bytecode"  # Out-of-range rate code (internal defect)
    tagging = "tagging"  # Tag persistence failure
    unknown = "unknown"  # Anything caught at the task boundary


class FileState(str, Enum):
    """Lifecycle of one file through the scan pipeline."""

    pending = "pending"
    validating = "validating"
    decoding = "decoding"
    scanning = "scanning"
    detected = "detected"
    not_detected = "not_detected"
    failed = "failed"
    tagging = "tagging"
    done = "done"


class DecodeError(Exception):
    """Raised by a sample source when the stream cannot be decoded."""


class InvalidBytecodeError(ValueError):
    """Raised when a rate code falls outside the 4-bit range."""


@dataclass(frozen=True)
class StreamFormat:
    """Format descriptor reported by the decoder before any samples."""

    sample_rate: int
    channels: int
    bits_per_sample: int

    @property
    def is_supported(self) -> bool:
        return (
            self.channels == SUPPORTED_CHANNELS
            and self.bits_per_sample in SUPPORTED_BIT_DEPTHS
        )

    def describe(self) -> str:
        return f"{self.channels} channels, {self.bits_per_sample} bits"


@dataclass(frozen=True)
class WatermarkMatch:
    """Position of the synchronization word in the sample stream."""

    bit_offset: int  # 0, 1 or 2 above the base bit position
    sample_index: int


@dataclass(frozen=True)
class DetectionError:
    """Error arm of a detection result."""

    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of running detection on one file."""

    is_watermarked: bool = False
    is_studio: bool = False
    original_sample_rate: int = 0
    error: DetectionError | None = None
    match: WatermarkMatch | None = None
    stream_format: StreamFormat | None = None

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def from_error(
        cls,
        kind: ErrorKind,
        message: str,
        stream_format: StreamFormat | None = None,
    ) -> DetectionResult:
        return cls(error=DetectionError(kind, message), stream_format=stream_format)


@dataclass(frozen=True)
class FileReport:
    """Final record of one scan task, returned by the worker pool.

    ``kind`` and ``reason`` are set for failed tasks, and for detected files
    whose tags could not be written (state ``done``, kind ``tagging``).
    """

    index: int
    path: Path
    state: FileState
    result: DetectionResult | None = None
    reason: str | None = None
    kind: ErrorKind | None = None
