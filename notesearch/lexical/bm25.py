"""Okapi BM25 scoring.

    score(D, Q) = sum over t in Q of IDF(t) * f(t, D) * (k1 + 1) / (f(t, D) + k1 * (1 - b + b * |D| / avgdl))
    IDF(t) = ln((N - n(t) + 0.5) / (n(t) + 0.5) + 1)

This IDF variant is always positive, so a document's score never drops when a query
term occurs in it more often.
"""

import math
import re
from collections import Counter
from typing import Sequence

from pydantic import BaseModel

_WORD_PATTERN = re.compile(r"\w+")
_WHITESPACE_PATTERN = re.compile(r"\s+")


class BM25Constants(BaseModel):
    k1: float = 1.2
    b: float = 0.75


def preprocess_text(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return _WHITESPACE_PATTERN.sub(" ", text.lower()).strip()


def tokenize(text: str) -> list[str]:
    """Split text into runs of word characters."""
    return _WORD_PATTERN.findall(text)


def inverse_document_frequency(term: str, term_counts: Sequence[Counter]) -> float:
    containing = sum(1 for counts in term_counts if counts[term] > 0)
    total = len(term_counts)
    return math.log((total - containing + 0.5) / (containing + 0.5) + 1)


def bm25_scores(
    tokenized_documents: Sequence[Sequence[str]],
    keywords: Sequence[str],
    constants: BM25Constants | None = None,
) -> list[float]:
    """Score every document against the query keywords.

    Args:
        tokenized_documents: Tokens of each document
        keywords: Query tokens; repeated keywords count repeatedly
        constants: k1 and b

    Returns:
        One score per document, in document order
    """
    constants = constants or BM25Constants()
    if not tokenized_documents or not keywords:
        return [0.0] * len(tokenized_documents)

    lengths = [len(tokens) for tokens in tokenized_documents]
    average_length = sum(lengths) / len(lengths)
    if average_length == 0:
        return [0.0] * len(tokenized_documents)

    term_counts = [Counter(tokens) for tokens in tokenized_documents]
    idf = {term: inverse_document_frequency(term, term_counts) for term in set(keywords)}

    scores = []
    for counts, length in zip(term_counts, lengths):
        length_norm = constants.k1 * (1 - constants.b + constants.b * length / average_length)
        score = 0.0
        for term in keywords:
            frequency = counts[term]
            if frequency:
                score += idf[term] * frequency * (constants.k1 + 1) / (frequency + length_norm)
        scores.append(score)
    return scores
