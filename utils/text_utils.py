"""
Text utilities for handling French/Dutch supplier text with accents.

Used for variant normalization and free-text search.
"""

import re
import unicodedata
from typing import Optional

_SEPARATORS = re.compile(r"[-_\s./:]+")


def strip_accents(text: Optional[str]) -> str:
    """
    Remove accent marks, keeping the base characters.

    - "Crème" → "Creme"
    - "Pâquerette" → "Paquerette"

    Args:
        text: Original text (may have accents)

    Returns:
        ASCII-folded text, or "" if input is empty
    """
    if not text:
        return ""

    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize('NFD', text)

    # Remove accent marks (combining characters in Unicode category 'Mn')
    return ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )


def fold_text(text: Optional[str]) -> str:
    """Lowercase, accent-free, trimmed text for comparisons."""
    return strip_accents(text).lower().strip()


def strip_separators(text: str) -> str:
    """Drop hyphens, underscores, whitespace and similar joiners."""
    return _SEPARATORS.sub("", text)
