"""Payload codecs for the MQA watermark.

The watermark carries two small fields after its synchronization word:

- a 4-bit original sample rate code, decoded by :func:`decode_original_rate`
- a 5-bit provenance field, decoded by :func:`decode_provenance`

The rate code is read as 4 bits even though the field is usually described
as 5 bits wide; widening it changes detection output and is not done without
reference files to validate against.
"""

from __future__ import annotations

from mqa_identifier.models import InvalidBytecodeError

RATE_CODE_BITS = 4
PROVENANCE_BITS = 5
STUDIO_THRESHOLD = 8

# Highest rate still displayed as plain PCM kHz
_MAX_PCM_LABEL_RATE = 768_000


def _rate_for_code(code: int) -> int:
    # LSB selects the rate family; the remaining 3 bits, bit-reversed, are a
    # power-of-two exponent.
    base = 48_000 if code & 1 else 44_100
    exponent = ((code >> 3) & 1) | (((code >> 2) & 1) << 1) | (((code >> 1) & 1) << 2)
    multiplier = 1 << exponent
    if multiplier > 16:
        # DSD-class rates
        multiplier *= 2
    return base * multiplier


RATE_TABLE: tuple[int, ...] = tuple(
    _rate_for_code(code) for code in range(1 << RATE_CODE_BITS)
)


def decode_original_rate(code: int) -> int:
    """Return the original sample rate (Hz) for a 4-bit rate code.

    Raises:
        InvalidBytecodeError: If ``code`` is outside [0, 15].
    """
    if not 0 <= code < len(RATE_TABLE):
        raise InvalidBytecodeError(f"Invalid bytecode: {code}")
    return RATE_TABLE[code]


def decode_provenance(value: int) -> bool:
    """Return True when the 5-bit provenance field marks a studio master."""
    return value > STUDIO_THRESHOLD


def format_sample_rate(rate: int) -> str:
    """Format a sample rate for display.

    PCM rates print in kHz (``44.1K``, ``352.8K``); higher rates print as
    DSD multiples of 44.1 kHz (``DSD256``) or 48 kHz (``DSD256x48``).
    """
    if rate <= _MAX_PCM_LABEL_RATE:
        return f"{rate / 1000:g}K"
    if rate % 44_100 == 0:
        return f"DSD{rate // 44_100}"
    return f"DSD{rate // 48_000}x48"
