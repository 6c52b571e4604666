"""Vorbis comment tagging for detected MQA files.

Two tags are ensured on a positive detection:

- ``MQAENCODER``: encoder identity string
- ``ORIGINALSAMPLERATE``: only when the original rate is known (> 0)

Writes are idempotent: existing tags are never duplicated or overwritten,
and the file is saved only when a tag was actually added. Failures are
returned as a :class:`TagOutcome`, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from mutagen import MutagenError
from mutagen.flac import FLAC

logger = logging.getLogger(__name__)

ENCODER_TAG = "MQAENCODER"
ORIGINAL_RATE_TAG = "ORIGINALSAMPLERATE"
ENCODER_VALUE = (
    "MQAEncode v1.1, 2.3.3+800 (a505918), "
    "F8EC1703-7616-45E5-B81E-D60821434062, Dec 01 2017 22:19:30"
)


@dataclass(frozen=True)
class TagOutcome:
    """Result of a tagging attempt."""

    success: bool
    modified: bool = False
    reason: str | None = None


class VorbisTagWriter:
    """Persist detection results into a FLAC file's Vorbis comment block."""

    def write(
        self, path: Path, original_sample_rate: int, dry_run: bool = False
    ) -> TagOutcome:
        """Ensure the MQA tags exist on ``path``.

        Args:
            path: FLAC file to tag.
            original_sample_rate: Recovered original rate, 0 if unknown.
            dry_run: If True, return immediately without touching the file.
        """
        if dry_run:
            return TagOutcome(success=True)

        try:
            audio = FLAC(path)
            if audio.tags is None:
                audio.add_tags()

            modified = False
            if ENCODER_TAG not in audio.tags:
                audio.tags[ENCODER_TAG] = ENCODER_VALUE
                modified = True
            if original_sample_rate > 0 and ORIGINAL_RATE_TAG not in audio.tags:
                audio.tags[ORIGINAL_RATE_TAG] = str(original_sample_rate)
                modified = True

            if modified:
                audio.save()
                logger.debug("Tagged %s", path)
            return TagOutcome(success=True, modified=modified)
        except (MutagenError, OSError) as e:
            logger.warning("Tagging failed for %s: %s", path, e)
            return TagOutcome(success=False, reason=f"Tagging error: {e}")


def read_tags(path: Path) -> dict[str, list[str]]:
    """Return the MQA tag values currently stored in ``path``."""
    audio = FLAC(path)
    tags = audio.tags or {}
    return {
        key: list(tags[key]) for key in (ENCODER_TAG, ORIGINAL_RATE_TAG) if key in tags
    }
