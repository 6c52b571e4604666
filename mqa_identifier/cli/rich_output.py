"""Styled or plain status lines.

Status lines are coloured only when a person is watching them. The
``MQA_IDENTIFIER_RICH`` variable (``1``/``true``/``yes``/``on`` or
``0``/``false``/``no``/``off``) settles it outright; otherwise ``NO_COLOR``
and ``CI`` turn colour off, and so does a status stream that is not a
terminal (pipes, redirects into a log, cron).
"""

from __future__ import annotations

import os
import sys
from typing import TextIO

from rich.console import Console

_FORCE_ON = frozenset({"1", "true", "yes", "on"})
_FORCE_OFF = frozenset({"0", "false", "no", "off"})


def _is_terminal(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except ValueError:
        # Closed stream
        return False


def should_use_rich(stream: TextIO | None = None) -> bool:
    """Whether status lines written to ``stream`` (default stdout) get colour."""
    override = os.environ.get("MQA_IDENTIFIER_RICH", "").strip().lower()
    if override in _FORCE_ON:
        return True
    if override in _FORCE_OFF:
        return False
    if "NO_COLOR" in os.environ or os.environ.get("CI"):
        return False
    return _is_terminal(stream if stream is not None else sys.stdout)


def make_console(stream: TextIO | None = None) -> Console:
    """Console for scan status lines on ``stream`` (default stdout)."""
    if should_use_rich(stream):
        return Console(file=stream, force_terminal=True, highlight=False)
    return Console(file=stream, color_system=None, highlight=False)
