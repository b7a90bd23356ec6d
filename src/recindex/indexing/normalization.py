"""Text and identifier normalization helpers used during indexing."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_PI_REPLACE_RE = re.compile(r"[ ,:()]")
_PI_ILLEGAL_RE = re.compile(r"[^\w|-]")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def apply_identifier_modifications(pi: str | None) -> str | None:
    """Trim an identifier and replace characters unusable in file names."""

    if not pi:
        return pi
    return _PI_REPLACE_RE.sub("_", pi.strip())


def has_illegal_identifier_characters(pi: str) -> bool:
    return _PI_ILLEGAL_RE.search(pi) is not None
