"""Packaging of a shortlist for the text generator and parsing of its notes."""

from __future__ import annotations

import re
from typing import List, Sequence

from libs.core.models import Resource

NO_MATCHES = "No matching resources in the library."

_NUMBERING = re.compile(r"^\s*\d+\)\s*")


def _tags_text(resource: Resource) -> str:
    return ", ".join(resource.tags or [])


def resource_context(resources: Sequence[Resource]) -> str:
    """One numbered line per shortlisted resource, for the chat prompt."""
    if not resources:
        return NO_MATCHES
    return "\n".join(
        f"{idx}. {r.title} - {r.description} "
        f"(type: {r.type or 'resource'}, tags: {_tags_text(r)})"
        for idx, r in enumerate(resources, start=1)
    )


def resource_brief(resources: Sequence[Resource]) -> str:
    """Multi-line brief of each resource, numbered from 1, for note writing."""
    return "\n\n".join(
        f"{idx}. Title: {r.title}\n"
        f"Description: {r.description}\n"
        f"Type: {r.type or 'resource'}\n"
        f"Tags: {_tags_text(r) or 'none'}"
        for idx, r in enumerate(resources, start=1)
    )


def parse_numbered_notes(text: str, count: int) -> List[str]:
    """Map generator output lines ``1) ...``, ``2) ...`` onto ``count`` slots.

    Numbering is stripped and blank lines dropped; the i-th remaining line
    belongs to the i-th resource. Missing lines become empty strings.
    """
    lines = [_NUMBERING.sub("", line).strip() for line in (text or "").split("\n")]
    lines = [line for line in lines if line]
    return [lines[idx] if idx < len(lines) else "" for idx in range(count)]


__all__ = ["NO_MATCHES", "resource_context", "resource_brief", "parse_numbered_notes"]
