"""
Word tokenization shared by every lexical algorithm.

Text is lower-cased, stripped of everything outside [a-z0-9] and
whitespace, then split on whitespace runs. Non-ASCII letters are removed
rather than transliterated, so "café" becomes "caf".
"""

import re
from typing import List, Optional

_DISALLOWED = re.compile(r"[^a-z0-9\s]")


def tokenize(text: Optional[str]) -> List[str]:
    """
    Split text into lowercase alphanumeric tokens.

    Args:
        text: Raw document text (None is treated as empty)

    Returns:
        Tokens in document order; empty list for empty input
    """
    if not text:
        return []
    cleaned = _DISALLOWED.sub("", text.lower())
    return cleaned.split()
