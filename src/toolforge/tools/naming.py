"""Tool name normalization.

Function-calling APIs require tool names matching
``^[a-zA-Z0-9_-]{1,64}$``; we additionally require a leading letter.
Display names are free text, so every name is sanitized and then made
unique within one registry build.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 64
FALLBACK_NAME = "tool"

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")
_UNDERSCORE_RUNS = re.compile(r"_{2,}")
_LEADING_NON_ALPHA = re.compile(r"^[^A-Za-z]+")


def sanitize_name(raw_name: str) -> str:
    """Reduce *raw_name* to a function-calling identifier.

    Never returns an empty string; the result is not checked for
    uniqueness (see :func:`normalize_name`).
    """
    name = _WHITESPACE.sub("_", raw_name.strip())
    name = _DISALLOWED.sub("", name)
    name = _UNDERSCORE_RUNS.sub("_", name)
    name = _LEADING_NON_ALPHA.sub("", name)
    name = name[:MAX_NAME_LENGTH]
    return name or FALLBACK_NAME


def normalize_name(raw_name: str, already_used: set[str]) -> str:
    """Sanitize *raw_name* and make it unique against *already_used*.

    Collisions get the first free ``_2``, ``_3``, ... suffix, with the base
    shortened so the result stays within 64 characters. The returned name
    is added to *already_used*, so callers normalizing a batch must share
    one set and go sequentially.
    """
    base = sanitize_name(raw_name)
    final = base
    counter = 2
    while final in already_used:
        suffix = f"_{counter}"
        final = base[: MAX_NAME_LENGTH - len(suffix)] + suffix
        counter += 1

    if final != base:
        logger.warning("Tool name collision: %r -> %r", raw_name, final)
    elif final != raw_name:
        logger.debug("Tool name sanitized: %r -> %r", raw_name, final)

    already_used.add(final)
    return final
