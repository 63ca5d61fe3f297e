"""Shared text tokenization for the similarity engine.

Stored notes and drafts must be tokenized identically, otherwise overlap
scores between them stop being symmetric.
"""

from __future__ import annotations

import re
from typing import FrozenSet, List, Optional

from notebridge.config import config

# Anything that is not a letter or digit separates tokens (underscore included)
_SPLIT_PATTERN = re.compile(r"[\W_]+")

STOP_WORDS = frozenset(
    "a an and are as at be been but by can do does for from had has have he her "
    "his how i if in into is it its just me my no nor not of on or our own she "
    "so some such than that the their them then there these they this to too us "
    "very was we were what when where which while who whom why will with would "
    "you your".split()
)


def tokenize(text: Optional[str], min_length: Optional[int] = None) -> List[str]:
    """Case-fold, split on non-alphanumerics, drop short fragments and stop words.

    Args:
        text: Arbitrary text; None is treated as "".
        min_length: Minimum token length. Defaults to config.min_token_length.

    Returns:
        Tokens in text order (duplicates kept).
    """
    if not text:
        return []
    if min_length is None:
        min_length = config.min_token_length
    return [
        t
        for t in _SPLIT_PATTERN.split(text.casefold())
        if len(t) >= min_length and t not in STOP_WORDS
    ]


def token_set(text: Optional[str], min_length: Optional[int] = None) -> FrozenSet[str]:
    """Tokenize ``text`` into a set for overlap comparisons."""
    return frozenset(tokenize(text, min_length))
