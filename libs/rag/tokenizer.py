"""Tokenization and suffix stemming used by the resource scorer."""

from __future__ import annotations

import re
from typing import List

_SEPARATORS = re.compile(r"[^a-z0-9]+")


def tokenize(text: str) -> List[str]:
    """Split ``text`` into lowercase ``[a-z0-9]`` runs.

    Everything else (whitespace, punctuation, apostrophes, hyphens, non-ASCII
    letters) separates tokens. Order and duplicates are kept.

        >>> tokenize("Minimal-Pairs: /s/ vs. /z/!")
        ['minimal', 'pairs', 's', 'vs', 'z']
        >>> tokenize("!!!")
        []
    """
    if not text:
        return []
    return [tok for tok in _SEPARATORS.split(text.lower()) if tok]


def stem(token: str) -> str:
    """Reduce a lowercase token to a crude plural-free stem.

    Rules, first match wins: tokens of three characters or fewer are kept,
    ``-ies`` becomes ``-y``, ``-es`` is dropped, then a trailing ``-s`` is
    dropped.

        >>> stem("puppies"), stem("boxes"), stem("cats"), stem("is")
        ('puppy', 'box', 'cat', 'is')
    """
    if len(token) <= 3:
        return token
    if token.endswith("ies"):
        return token[:-3] + "y"
    if token.endswith("es"):
        return token[:-2]
    if token.endswith("s"):
        return token[:-1]
    return token


__all__ = ["tokenize", "stem"]
