from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from libs.core.models import Resource

from .scorer import score_resource
from .tokenizer import tokenize

SHORTLIST_SIZE = 5


@dataclass(frozen=True)
class ScoredCandidate:
    resource: Resource
    score: int


def score_candidates(query: str, resources: Sequence[Resource]) -> List[ScoredCandidate]:
    """Score every resource and keep those with a positive score, in input order."""
    if not tokenize(query):
        return []
    candidates = (ScoredCandidate(r, score_resource(query, r)) for r in resources)
    return [c for c in candidates if c.score > 0]


def rank_resources(
    query: str, resources: Sequence[Resource], limit: int = SHORTLIST_SIZE
) -> List[Resource]:
    """Return the ``limit`` best matches for ``query``, best first.

    ``resources`` is expected newest first; ``sorted`` is stable, so equal
    scores keep that order.
    """
    ranked = sorted(score_candidates(query, resources), key=lambda c: c.score, reverse=True)
    return [c.resource for c in ranked[:limit]]


__all__ = ["ScoredCandidate", "score_candidates", "rank_resources", "SHORTLIST_SIZE"]
