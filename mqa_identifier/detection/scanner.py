"""Bit-plane search for the MQA synchronization word.

MQA hides its stream in the least-significant bits of the stereo difference
signal. For every sample pair the scanner takes ``d = left ^ right`` and
tracks three bit-planes of ``d`` starting at ``bits_per_sample - 16`` (the
16th bit from the top). Each plane is a 36-bit sliding register; a plane
matches when its register equals :data:`SYNC_WORD`.

Matching rules:
- the earliest sample wins
- on the same sample, offset 0 beats 1 beats 2
- the pre-stream history is all zeros, so a match always needs 36 real
  samples (the sync word's top bit is set)

After a match the scanner keeps consuming until 33 samples past the match
are buffered, then reads the payload from the matched plane:

- samples +3..+6   → 4-bit original rate code (MSB first)
- samples +29..+33 → 5-bit provenance field (MSB first)

Blocks are processed with numpy sliding windows; a 35-sample history is
carried between blocks so matches spanning block boundaries are found.

Usage:
    scanner = BitPlaneScanner(bits_per_sample=24)
    for block in stream.blocks():
        if scanner.feed(block):
            break
    report = scanner.finish()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from mqa_identifier.detection.codecs import decode_original_rate, decode_provenance
from mqa_identifier.models import WatermarkMatch

logger = logging.getLogger(__name__)

SYNC_WORD = 0xBE0498C88
SYNC_BITS = 36
PLANE_COUNT = 3

# Payload field positions, relative to the matched sample
RATE_FIELD = slice(3, 7)
PROVENANCE_FIELD = slice(29, 34)
PAYLOAD_SPAN = PROVENANCE_FIELD.stop - 1

_SYNC_PATTERN = np.array(
    [(SYNC_WORD >> (SYNC_BITS - 1 - i)) & 1 for i in range(SYNC_BITS)],
    dtype=np.uint8,
)


@dataclass(frozen=True)
class ScanReport:
    """Result of scanning a sample stream."""

    match: WatermarkMatch | None = None
    original_sample_rate: int = 0
    is_studio: bool = False
    payload_complete: bool = False
    samples_scanned: int = 0

    @property
    def found(self) -> bool:
        return self.match is not None


def bits_to_int(bits: Sequence[int] | np.ndarray) -> int:
    """Pack a sequence of bits, most-significant first, into an integer."""
    value = 0
    for bit in bits:
        value = (value << 1) | int(bit)
    return value


class BitPlaneScanner:
    """Streaming search for the watermark synchronization word.

    Args:
        bits_per_sample: Bit depth of the decoded stream (16 or 24 for MQA).
    """

    def __init__(self, bits_per_sample: int) -> None:
        if bits_per_sample < 16:
            raise ValueError(f"Bit depth too small for MQA: {bits_per_sample}")
        self.bits_per_sample = bits_per_sample
        self.base_position = bits_per_sample - 16
        self._shifts = self.base_position + np.arange(PLANE_COUNT)
        self._history = np.zeros((SYNC_BITS - 1, PLANE_COUNT), dtype=np.uint8)
        self._consumed = 0
        self._match: WatermarkMatch | None = None
        self._tail: list[np.ndarray] = []
        self._tail_len = 0
        self._report: ScanReport | None = None

    @property
    def done(self) -> bool:
        return self._report is not None

    @property
    def match(self) -> WatermarkMatch | None:
        return self._match

    def plane_bits(self, block: Iterable[Sequence[int]] | np.ndarray) -> np.ndarray:
        """Return the ``(n, 3)`` candidate bits of the difference signal."""
        pairs = np.asarray(block, dtype=np.int64).reshape(-1, 2)
        diff = pairs[:, 0] ^ pairs[:, 1]
        return ((diff[:, None] >> self._shifts) & 1).astype(np.uint8)

    def feed(self, block: Iterable[Sequence[int]] | np.ndarray) -> bool:
        """Consume the next block of sample pairs.

        Returns:
            True once scanning is complete (match found and payload buffered).
        """
        if self._report is not None:
            return True

        bits = self.plane_bits(block)
        start = self._consumed
        self._consumed += len(bits)
        if len(bits) == 0:
            return False

        if self._match is None:
            window = np.concatenate([self._history, bits])
            self._history = window[-(SYNC_BITS - 1) :]

            # views[j, k] holds the 36 bits of plane k ending at sample start + j
            views = sliding_window_view(window, SYNC_BITS, axis=0)
            hits = (views == _SYNC_PATTERN).all(axis=2)
            rows = np.flatnonzero(hits.any(axis=1))
            if rows.size == 0:
                return False

            row = int(rows[0])
            self._match = WatermarkMatch(
                bit_offset=int(np.argmax(hits[row])),
                sample_index=start + row,
            )
            logger.debug(
                "Sync word at sample %d (bit offset %d)",
                self._match.sample_index,
                self._match.bit_offset,
            )
            bits = bits[row + 1 :]

        self._tail.append(bits[:, self._match.bit_offset])
        self._tail_len += len(bits)
        if self._tail_len >= PAYLOAD_SPAN:
            self._report = self._extract_payload()
            return True
        return False

    def finish(self) -> ScanReport:
        """Return the scan report; call once the stream is exhausted or done."""
        if self._report is None:
            if self._match is not None:
                logger.debug(
                    "Stream ended %d samples after sync word; payload unavailable",
                    self._tail_len,
                )
            self._report = ScanReport(match=self._match, samples_scanned=self._consumed)
        return self._report

    def scan(
        self, blocks: Iterable[Iterable[Sequence[int]] | np.ndarray]
    ) -> ScanReport:
        """Feed blocks until the scan completes or the input is exhausted."""
        for block in blocks:
            if self.feed(block):
                break
        return self.finish()

    def _extract_payload(self) -> ScanReport:
        # tail[0] is the sample right after the match
        tail = np.concatenate(self._tail)
        rate_code = bits_to_int(tail[RATE_FIELD.start - 1 : RATE_FIELD.stop - 1])
        provenance = bits_to_int(
            tail[PROVENANCE_FIELD.start - 1 : PROVENANCE_FIELD.stop - 1]
        )
        return ScanReport(
            match=self._match,
            original_sample_rate=decode_original_rate(rate_code),
            is_studio=decode_provenance(provenance),
            payload_complete=True,
            samples_scanned=self._consumed,
        )
