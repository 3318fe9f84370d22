from __future__ import annotations

import re
from typing import Iterable, List

_LETTER = re.compile(r"[a-z]", re.IGNORECASE)


def derive_letter_tags(title: str) -> List[str]:
    """Return phonetic tags for every distinct letter of ``title``.

    Each letter yields ``x``, ``/x/`` and ``letter-x``, grouped per letter in
    order of first appearance. Only ASCII letters count.
    """
    seen: List[str] = []
    for match in _LETTER.finditer(title or ""):
        letter = match.group(0).lower()
        if letter not in seen:
            seen.append(letter)
    tags: List[str] = []
    for letter in seen:
        tags.extend((letter, f"/{letter}/", f"letter-{letter}"))
    return tags


def merge_tags(*groups: Iterable[str]) -> List[str]:
    """Union tag groups, keeping the first occurrence of each tag."""
    merged: List[str] = []
    seen: set[str] = set()
    for group in groups:
        for tag in group:
            if tag not in seen:
                seen.add(tag)
                merged.append(tag)
    return merged


__all__ = ["derive_letter_tags", "merge_tags"]
