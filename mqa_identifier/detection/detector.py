"""Per-file MQA detection.

Opens a file through a :class:`SampleSource`, checks the stream format,
runs the :class:`BitPlaneScanner` over the first few seconds of audio and
returns a :class:`DetectionResult`. Expected failures are returned as
error results, never raised:

- unsupported format → ``ErrorKind.unsupported_format`` (scanner not run)
- decoder failure → ``ErrorKind.decode``
- out-of-range rate code → ``ErrorKind.invalid_bytecode`` (internal defect,
  logged at ERROR)

A file without the sync word is a normal negative result with no error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from mqa_identifier.detection.scanner import BitPlaneScanner
from mqa_identifier.detection.source import FlacSampleSource, SampleSource
from mqa_identifier.models import (
    DecodeError,
    DetectionResult,
    ErrorKind,
    FileState,
    InvalidBytecodeError,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3.0


class Detector:
    """Detect the MQA watermark in one file at a time.

    Stateless between calls, so one instance is shared by all workers.

    Args:
        source: Decoder collaborator (defaults to :class:`FlacSampleSource`).
        window_seconds: Seconds of audio decoded from the start of each file.
    """

    def __init__(
        self,
        source: SampleSource | None = None,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
    ) -> None:
        self.source = source if source is not None else FlacSampleSource()
        self.window_seconds = window_seconds

    def detect(
        self,
        path: Path,
        on_state: Callable[[FileState], None] | None = None,
    ) -> DetectionResult:
        """Run detection on ``path``.

        Args:
            path: File to analyse.
            on_state: Optional callback notified on entering the decoding
                and scanning states.
        """
        notify = on_state or (lambda state: None)
        stream_format = None
        try:
            notify(FileState.decoding)
            with self.source.open(path, self.window_seconds) as stream:
                stream_format = stream.format
                if not stream_format.is_supported:
                    return DetectionResult.from_error(
                        ErrorKind.unsupported_format,
                        f"Unsupported audio format: {stream_format.describe()}",
                        stream_format=stream_format,
                    )

                notify(FileState.scanning)
                scanner = BitPlaneScanner(stream_format.bits_per_sample)
                report = scanner.scan(stream.blocks())
        except DecodeError as e:
            return DetectionResult.from_error(
                ErrorKind.decode, str(e), stream_format=stream_format
            )
        except InvalidBytecodeError as e:
            logger.error("Internal defect while decoding payload of %s: %s", path, e)
            return DetectionResult.from_error(
                ErrorKind.invalid_bytecode, str(e), stream_format=stream_format
            )

        if not report.found:
            logger.debug(
                "No sync word in %d samples of %s", report.samples_scanned, path
            )
            return DetectionResult(stream_format=stream_format)

        if not report.payload_complete:
            logger.info("Truncated MQA payload in %s", path)
        return DetectionResult(
            is_watermarked=True,
            is_studio=report.is_studio,
            original_sample_rate=report.original_sample_rate,
            match=report.match,
            stream_format=stream_format,
        )
