"""Tests for the per-file detector."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from mqa_identifier.detection import Detector, FlacSampleSource
from mqa_identifier.models import (
    ErrorKind,
    FileState,
    InvalidBytecodeError,
    StreamFormat,
    WatermarkMatch,
)

STEREO_24 = StreamFormat(sample_rate=44_100, channels=2, bits_per_sample=24)


class TestDetectorWithFakeSource:
    """Detector behaviour against an in-memory sample source."""

    def test_watermarked_stream(self, fake_source_factory, pairs_factory):
        """A stream carrying the sync word yields a positive result."""
        pairs = pairs_factory(2000, 24, sync_end=700, offset=1, rate_code=0b1001)
        source = fake_source_factory(STEREO_24, [pairs[:1000], pairs[1000:]])

        result = Detector(source).detect(Path("a.flac"))

        assert result.is_watermarked
        assert result.original_sample_rate == 96_000
        assert result.is_studio is True
        assert result.match == WatermarkMatch(bit_offset=1, sample_index=700)
        assert result.error is None
        assert result.stream_format == STEREO_24

    def test_negative_result_has_no_error(self, fake_source_factory, pairs_factory):
        """No sync word is a normal outcome, not a failure."""
        source = fake_source_factory(STEREO_24, [pairs_factory(3000, 24)])

        result = Detector(source).detect(Path("a.flac"))

        assert not result.is_watermarked
        assert not result.failed
        assert result.original_sample_rate == 0

    @pytest.mark.parametrize(
        "stream_format,label",
        [
            (StreamFormat(44_100, 1, 16), "1 channels, 16 bits"),
            (StreamFormat(44_100, 6, 24), "6 channels, 24 bits"),
            (StreamFormat(96_000, 2, 32), "2 channels, 32 bits"),
            (StreamFormat(44_100, 2, 8), "2 channels, 8 bits"),
        ],
    )
    def test_unsupported_format_skips_scan(
        self, fake_source_factory, pairs_factory, stream_format, label
    ):
        """Unsupported formats fail before any samples are read."""
        source = fake_source_factory(stream_format, [pairs_factory(100, 16)])

        result = Detector(source).detect(Path("a.flac"))

        assert result.error.kind == ErrorKind.unsupported_format
        assert result.error_message == f"Unsupported audio format: {label}"
        assert source.blocks_read == 0
        assert not result.is_watermarked

    def test_open_failure(self, fake_source_factory):
        """A decoder that cannot open the file yields a decode error."""
        source = fake_source_factory(
            STEREO_24, open_error="Initializing decoder failed: bad stream"
        )

        result = Detector(source).detect(Path("a.flac"))

        assert result.error.kind == ErrorKind.decode
        assert result.error_message == "Initializing decoder failed: bad stream"
        assert result.stream_format is None

    def test_mid_stream_failure(self, fake_source_factory, pairs_factory):
        """Decoding errors after the header keep the stream format."""
        pairs = pairs_factory(3000, 24)
        source = fake_source_factory(
            STEREO_24, [pairs[:1000], pairs[1000:2000], pairs[2000:]], fail_after=1
        )

        result = Detector(source).detect(Path("a.flac"))

        assert result.error.kind == ErrorKind.decode
        assert "Decoding failed" in result.error_message
        assert result.stream_format == STEREO_24

    def test_stops_reading_after_match(self, fake_source_factory, pairs_factory):
        """Blocks past the payload are never pulled from the source."""
        pairs = pairs_factory(4000, 24, sync_end=200)
        blocks = [pairs[i : i + 500] for i in range(0, 4000, 500)]
        source = fake_source_factory(STEREO_24, blocks)

        Detector(source).detect(Path("a.flac"))

        assert source.blocks_read == 1

    def test_window_passed_to_source(self, fake_source_factory):
        """The configured window bounds how much audio is opened."""
        source = fake_source_factory(STEREO_24, [])

        Detector(source, window_seconds=1.5).detect(Path("x.flac"))

        assert source.opened == [(Path("x.flac"), 1.5)]

    def test_state_callbacks(self, fake_source_factory, pairs_factory):
        """The callback sees decoding then scanning."""
        source = fake_source_factory(STEREO_24, [pairs_factory(200, 24)])
        states = []

        Detector(source).detect(Path("a.flac"), on_state=states.append)

        assert states == [FileState.decoding, FileState.scanning]

    def test_unsupported_format_never_scans(self, fake_source_factory):
        """Only the decoding state is entered for an unsupported stream."""
        source = fake_source_factory(StreamFormat(44_100, 1, 16), [])
        states = []

        Detector(source).detect(Path("a.flac"), on_state=states.append)

        assert states == [FileState.decoding]

    def test_truncated_payload(self, fake_source_factory, pairs_factory):
        """A match too close to the end is still reported as MQA."""
        pairs = pairs_factory(200, 24, sync_end=180)
        source = fake_source_factory(STEREO_24, [pairs])

        result = Detector(source).detect(Path("a.flac"))

        assert result.is_watermarked
        assert result.original_sample_rate == 0
        assert not result.failed

    def test_invalid_bytecode_is_reported(self, fake_source_factory):
        """Codec defects become invalid_bytecode results and are logged."""
        source = fake_source_factory(STEREO_24, [])
        scanner = MagicMock()
        scanner.scan.side_effect = InvalidBytecodeError("Invalid bytecode: 16")

        with (
            patch(
                "mqa_identifier.detection.detector.BitPlaneScanner",
                return_value=scanner,
            ),
            patch("mqa_identifier.detection.detector.logger") as mock_logger,
        ):
            result = Detector(source).detect(Path("a.flac"))

        assert result.error.kind == ErrorKind.invalid_bytecode
        assert result.error_message == "Invalid bytecode: 16"
        mock_logger.error.assert_called_once()

    def test_default_source(self):
        """Without a source the detector decodes FLAC through libsndfile."""
        assert isinstance(Detector().source, FlacSampleSource)


class TestDetectorOnFlacFiles:
    """End-to-end detection on FLAC files written by libsndfile."""

    @pytest.mark.parametrize("bits_per_sample", [16, 24])
    def test_watermarked_file(self, flac_factory, bits_per_sample):
        """The watermark survives a FLAC round trip."""
        path = flac_factory(
            "mqa.flac",
            bits_per_sample=bits_per_sample,
            sync_end=1500,
            offset=2,
            rate_code=0b0100,
            provenance=3,
        )

        result = Detector().detect(path)

        assert result.is_watermarked
        assert result.original_sample_rate == 176_400
        assert result.is_studio is False
        assert result.match == WatermarkMatch(bit_offset=2, sample_index=1500)

    def test_plain_file(self, flac_factory):
        """An ordinary FLAC file is not MQA."""
        path = flac_factory("plain.flac")

        result = Detector().detect(path)

        assert not result.is_watermarked
        assert not result.failed
        assert result.stream_format == StreamFormat(8000, 2, 24)

    def test_mono_file(self, mono_flac):
        """Mono files are rejected as unsupported."""
        result = Detector().detect(mono_flac)

        assert result.error.kind == ErrorKind.unsupported_format
        assert result.error_message == "Unsupported audio format: 1 channels, 16 bits"

    def test_watermark_outside_window(self, flac_factory):
        """Sync words beyond the detection window are not found."""
        # 8000 Hz * 3 s = 24000 samples scanned
        path = flac_factory("late.flac", n_samples=30_000, sync_end=26_000)

        assert not Detector().detect(path).is_watermarked

    def test_longer_window_finds_late_watermark(self, flac_factory):
        """Widening the window reaches the late sync word."""
        path = flac_factory("late.flac", n_samples=30_000, sync_end=26_000)

        result = Detector(window_seconds=4.0).detect(path)

        assert result.is_watermarked

    def test_garbage_file(self, tmp_path):
        """Bytes that are not audio fail at decoder initialisation."""
        path = tmp_path / "garbage.flac"
        path.write_text("definitely not audio\n" * 20)

        result = Detector().detect(path)

        assert result.error.kind == ErrorKind.decode
        assert result.error_message.startswith("Initializing decoder failed")
