"""Shared fixtures: synthetic sample streams and FLAC files.

Watermarked streams are built by choosing the difference signal
``d = left ^ right`` directly: random bits everywhere, with the sync word
and payload written into one bit-plane ``bits_per_sample - 16 + offset``.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from mqa_identifier.detection.scanner import SYNC_BITS, SYNC_WORD
from mqa_identifier.detection.source import SampleStream
from mqa_identifier.models import DecodeError, StreamFormat

TEST_SAMPLE_RATE = 8000


def _bits(value: int, width: int) -> list[int]:
    return [(value >> (width - 1 - i)) & 1 for i in range(width)]


def build_pairs(
    n_samples: int,
    bits_per_sample: int = 24,
    *,
    sync_end: int | None = None,
    offset: int = 0,
    rate_code: int = 0b0101,
    provenance: int = 0b10010,
    seed: int = 1234,
) -> np.ndarray:
    """Return an ``(n, 2)`` int64 array of stereo samples.

    Args:
        n_samples: Number of sample pairs.
        bits_per_sample: Bit depth the values must fit in.
        sync_end: Index of the last sync word sample; None for no watermark.
        offset: Bit-plane offset (0-2) above ``bits_per_sample - 16``.
        rate_code: 4-bit rate code written at sync_end + 3..6.
        provenance: 5-bit provenance field written at sync_end + 29..33.
        seed: RNG seed.
    """
    rng = np.random.default_rng(seed)
    limit = 1 << (bits_per_sample - 2)
    left = rng.integers(-limit, limit, size=n_samples, dtype=np.int64)
    diff = rng.integers(0, limit, size=n_samples, dtype=np.int64)

    if sync_end is not None:
        position = bits_per_sample - 16 + offset
        fields = {sync_end - SYNC_BITS + 1: _bits(SYNC_WORD, SYNC_BITS)}
        fields[sync_end + 3] = _bits(rate_code, 4)
        fields[sync_end + 29] = _bits(provenance, 5)
        for start, bits in fields.items():
            for i, bit in enumerate(bits):
                index = start + i
                if index >= n_samples:
                    break
                diff[index] = (diff[index] & ~(1 << position)) | (bit << position)

    return np.column_stack([left, left ^ diff])


def write_flac(
    path: Path,
    pairs: np.ndarray,
    bits_per_sample: int = 24,
    sample_rate: int = TEST_SAMPLE_RATE,
) -> Path:
    """Write native-depth samples to a FLAC file through libsndfile."""
    scaled = (np.asarray(pairs, dtype=np.int64) << (32 - bits_per_sample)).astype(
        np.int32
    )
    sf.write(
        str(path),
        scaled,
        sample_rate,
        subtype=f"PCM_{bits_per_sample}",
        format="FLAC",
    )
    return path


class FakeSampleSource:
    """In-memory sample source for detector and orchestrator tests."""

    def __init__(
        self,
        stream_format: StreamFormat,
        blocks: list | None = None,
        *,
        open_error: str | None = None,
        fail_after: int | None = None,
    ) -> None:
        self.stream_format = stream_format
        self.blocks = blocks or []
        self.open_error = open_error
        self.fail_after = fail_after
        self.opened: list[tuple[Path, float]] = []
        self.blocks_read = 0

    def _iter_blocks(self):
        for i, block in enumerate(self.blocks):
            if self.fail_after is not None and i >= self.fail_after:
                raise DecodeError("Decoding failed: corrupt frame")
            self.blocks_read += 1
            yield block

    @contextmanager
    def open(self, path, max_seconds):
        if self.open_error:
            raise DecodeError(self.open_error)
        self.opened.append((path, max_seconds))
        yield SampleStream(format=self.stream_format, _blocks=self._iter_blocks())


@pytest.fixture
def pairs_factory():
    """Factory building synthetic stereo sample arrays."""
    return build_pairs


@pytest.fixture
def flac_factory(tmp_path):
    """Factory writing synthetic FLAC files into ``tmp_path``.

    Usage:
        path = flac_factory("mqa.flac", sync_end=500, rate_code=0b0001)
    """

    def make(
        name: str,
        n_samples: int = 4000,
        bits_per_sample: int = 24,
        sample_rate: int = TEST_SAMPLE_RATE,
        **kwargs,
    ) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        pairs = build_pairs(n_samples, bits_per_sample, **kwargs)
        return write_flac(path, pairs, bits_per_sample, sample_rate)

    return make


@pytest.fixture
def mono_flac(tmp_path) -> Path:
    """A 16-bit mono FLAC file (unsupported format)."""
    path = tmp_path / "mono.flac"
    sf.write(str(path), np.zeros(4000, dtype=np.int16), 44100, format="FLAC")
    return path


@pytest.fixture
def flac_writer():
    """Write a given sample array to FLAC: ``flac_writer(path, pairs, bits)``."""
    return write_flac


@pytest.fixture
def fake_source_factory():
    """Factory for :class:`FakeSampleSource`."""
    return FakeSampleSource


@pytest.fixture(autouse=True)
def _isolated_log_dir(tmp_path, monkeypatch):
    """Keep CLI log files out of the user's home directory."""
    monkeypatch.setenv("MQA_IDENTIFIER_LOG_DIR", str(tmp_path / "logs"))
