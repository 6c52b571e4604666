"""Pre-decode validation gate.

Cheap checks run before a file reaches the decoder. Any failure yields a
validation :class:`DetectionError` and the decoder is never invoked.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mqa_identifier.models import DetectionError, ErrorKind

logger = logging.getLogger(__name__)

FLAC_MAGIC = b"fLaC"
ID3_MAGIC = b"ID3"
_ID3_HEADER_SIZE = 10
_ID3_FOOTER_FLAG = 0x10


def _syncsafe(data: bytes) -> int:
    value = 0
    for byte in data:
        value = (value << 7) | (byte & 0x7F)
    return value


def has_flac_header(path: Path) -> bool:
    """Check for the ``fLaC`` stream marker, skipping a leading ID3v2 tag."""
    with path.open("rb") as f:
        head = f.read(_ID3_HEADER_SIZE)
        if head.startswith(ID3_MAGIC) and len(head) == _ID3_HEADER_SIZE:
            skip = _ID3_HEADER_SIZE + _syncsafe(head[6:10])
            if head[5] & _ID3_FOOTER_FLAG:
                skip += _ID3_HEADER_SIZE
            f.seek(skip)
            return f.read(len(FLAC_MAGIC)) == FLAC_MAGIC
        return head[: len(FLAC_MAGIC)] == FLAC_MAGIC


def validate_candidate(
    path: Path, extensions: tuple[str, ...] = (".flac",)
) -> DetectionError | None:
    """Validate ``path`` before decoding.

    Checks, in order: existence, regular file, extension, header magic.

    Returns:
        None when the file may be decoded, otherwise the validation error.
    """

    def fail(message: str) -> DetectionError:
        return DetectionError(ErrorKind.validation, message)

    if not path.exists():
        return fail("Path does not exist")
    if not path.is_file():
        return fail("Not a regular file")
    if path.suffix.lower() not in extensions:
        return fail(f"Unexpected extension: {path.suffix or '(none)'}")
    try:
        if not has_flac_header(path):
            return fail("Invalid FLAC header")
    except PermissionError:
        return fail("Permission denied")
    except OSError as e:
        return fail(f"Unreadable file: {e.strerror or e}")
    return None
