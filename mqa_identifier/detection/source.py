"""Pull-based sample sources.

The detector composes against :class:`SampleSource` instead of subclassing
a concrete decoder. A source opens a file and yields a :class:`SampleStream`
whose ``format`` is available before any samples, followed by a lazy,
finite, non-restartable iterator of ``(n, 2)`` integer blocks holding sample
values at the stream's native bit depth.

Decoding failures surface as :class:`~mqa_identifier.models.DecodeError`,
whether they happen while opening or mid-stream.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np
import soundfile as sf

from mqa_identifier.models import DecodeError, StreamFormat

logger = logging.getLogger(__name__)

# libsndfile subtype -> bits per sample
SUBTYPE_BITS: dict[str, int] = {
    "PCM_S8": 8,
    "PCM_U8": 8,
    "PCM_16": 16,
    "PCM_24": 24,
    "PCM_32": 32,
}


@dataclass
class SampleStream:
    """An open decoded stream: format first, then sample blocks."""

    format: StreamFormat
    _blocks: Iterator[np.ndarray]

    def blocks(self) -> Iterator[np.ndarray]:
        """Iterate over the remaining sample blocks (single pass)."""
        return self._blocks


@runtime_checkable
class SampleSource(Protocol):
    """Interface for decoders feeding the detector."""

    def open(
        self, path: Path, max_seconds: float
    ) -> AbstractContextManager[SampleStream]:
        """Open ``path`` and bound the stream to its first ``max_seconds``.

        Raises:
            DecodeError: If the file cannot be opened or decoded.
        """
        ...


class FlacSampleSource:
    """FLAC decoding through libsndfile (``soundfile``).

    libsndfile returns integer PCM scaled to the full int32 range, so blocks
    are shifted back down to the stream's native bit depth before use.

    Args:
        block_size: Frames read per block.
    """

    def __init__(self, block_size: int = 4096) -> None:
        self.block_size = block_size

    @contextmanager
    def open(self, path: Path, max_seconds: float) -> Iterator[SampleStream]:
        try:
            handle = sf.SoundFile(str(path))
        except (sf.SoundFileError, OSError) as e:
            raise DecodeError(f"Initializing decoder failed: {e}") from e

        with handle:
            stream_format = StreamFormat(
                sample_rate=int(handle.samplerate),
                channels=int(handle.channels),
                bits_per_sample=SUBTYPE_BITS.get(handle.subtype, 0),
            )
            frames = int(stream_format.sample_rate * max_seconds)
            logger.debug(
                "Opened %s: %d Hz, %s (subtype %s), reading %d frames",
                path,
                stream_format.sample_rate,
                stream_format.describe(),
                handle.subtype,
                frames,
            )
            yield SampleStream(
                format=stream_format,
                _blocks=self._read_blocks(handle, stream_format, frames),
            )

    def _read_blocks(
        self, handle: sf.SoundFile, stream_format: StreamFormat, frames: int
    ) -> Iterator[np.ndarray]:
        bits = stream_format.bits_per_sample
        shift = 32 - bits if 0 < bits < 32 else 0
        if frames <= 0:
            return
        try:
            for block in handle.blocks(
                blocksize=self.block_size,
                frames=frames,
                dtype="int32",
                always_2d=True,
            ):
                yield block >> shift if shift else block
        except (sf.SoundFileError, OSError) as e:
            raise DecodeError(f"Decoding failed: {e}") from e
