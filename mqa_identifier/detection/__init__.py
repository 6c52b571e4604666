"""Watermark detection: payload codecs, bit-plane scanner and per-file detector.

Pipeline for one file:
    1. OPEN: pull-based sample source yields the stream format
    2. CHECK: stereo 16/24-bit only
    3. SCAN: 36-bit sync word search across three bit-planes of left ^ right
    4. PAYLOAD: original sample rate and provenance read after the sync word
"""

from .codecs import (
    RATE_TABLE,
    decode_original_rate,
    decode_provenance,
    format_sample_rate,
)
from .detector import Detector
from .scanner import SYNC_WORD, BitPlaneScanner, ScanReport
from .source import FlacSampleSource, SampleSource, SampleStream

__all__ = [
    "RATE_TABLE",
    "SYNC_WORD",
    "BitPlaneScanner",
    "Detector",
    "FlacSampleSource",
    "SampleSource",
    "SampleStream",
    "ScanReport",
    "decode_original_rate",
    "decode_provenance",
    "format_sample_rate",
]
