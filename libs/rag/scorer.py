"""
Keyword relevance scoring of a resource against a chat query.

The score is the sum of four integer signals, computed per query token:

    exact   +2  token appears verbatim among the corpus tokens
    stem    +1  stem(token) appears among the stems of the corpus tokens
    tag     +1  token is a substring of at least one stored tag
    phrase  +1  once, if the whole lowercased query occurs in the corpus

Exact hits also count as stem hits, so a verbatim match is worth 3 and a
plural/singular variant only 1. The corpus is rebuilt on every call.
"""

from __future__ import annotations

from typing import List

from libs.core.models import Resource

from .letter_tags import derive_letter_tags
from .tokenizer import stem, tokenize

EXACT_WEIGHT = 2
STEM_WEIGHT = 1
TAG_WEIGHT = 1
PHRASE_WEIGHT = 1


def build_corpus(resource: Resource) -> str:
    """Concatenate the searchable fields of ``resource`` into one string.

    Order: title, description, stored tags, letter tags derived from the
    title, extracted text.
    """
    parts: List[str] = [
        resource.title,
        resource.description,
        " ".join(resource.tags or []),
        " ".join(derive_letter_tags(resource.title)),
        resource.extracted_text or "",
    ]
    return " ".join(parts)


def score_resource(query: str, resource: Resource) -> int:
    """Return the relevance of ``resource`` for ``query`` (0 means no match)."""
    query_tokens = tokenize(query)
    if not query_tokens:
        return 0

    corpus = build_corpus(resource)
    corpus_tokens = tokenize(corpus)
    token_set = set(corpus_tokens)
    stem_set = {stem(tok) for tok in corpus_tokens}
    lowered_tags = [tag.lower() for tag in resource.tags or []]

    score = 0
    for tok in query_tokens:
        if tok in token_set:
            score += EXACT_WEIGHT
        if stem(tok) in stem_set:
            score += STEM_WEIGHT
        # once per token, however many tags contain it
        if any(tok in tag for tag in lowered_tags):
            score += TAG_WEIGHT

    if query.lower() in corpus.lower():
        score += PHRASE_WEIGHT
    return score


__all__ = ["build_corpus", "score_resource"]
