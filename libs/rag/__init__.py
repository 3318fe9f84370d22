"""Keyword retrieval over the resource library.

Components:
- tokenizer: lowercase alphanumeric tokens and suffix stemming
- letter_tags: single-letter phonetic tags derived from titles
- scorer: per-resource corpus and four-signal relevance score
- ranker: positive-score filtering and top-K truncation
- context: prompt packaging of a shortlist and parsing of per-item notes
"""

from .tokenizer import tokenize, stem
from .letter_tags import derive_letter_tags, merge_tags
from .scorer import build_corpus, score_resource
from .ranker import ScoredCandidate, rank_resources, score_candidates, SHORTLIST_SIZE
from .context import NO_MATCHES, parse_numbered_notes, resource_brief, resource_context

__all__ = [
    "tokenize",
    "stem",
    "derive_letter_tags",
    "merge_tags",
    "build_corpus",
    "score_resource",
    "ScoredCandidate",
    "rank_resources",
    "score_candidates",
    "SHORTLIST_SIZE",
    "NO_MATCHES",
    "parse_numbered_notes",
    "resource_brief",
    "resource_context",
]
