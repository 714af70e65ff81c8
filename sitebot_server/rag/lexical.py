"""Lexical (sparse) statistics over a knowledge-base generation.

Term weighting is TF-IDF with a saturating term-frequency curve, close in
spirit to BM25 but without document-length normalization:

    idf(t)          = ln((N + 1) / (df(t) + 0.5))
    contribution(t) = idf(t) * (k1 * tf) / (1 + b + tf)

with k1 = 1.2 and b = 0.25 by default.
"""

import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

# Anything outside ASCII letters/digits and the extended Latin letters used by the
# site's languages separates tokens
TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9äöåæø]+")


def tokenize(text: str) -> list[str]:
    """Lower-case and split text into tokens, dropping single-character tokens."""
    return [token for token in TOKEN_SPLIT_RE.split(str(text).lower()) if len(token) > 1]


def unique_terms(terms: Iterable[str]) -> list[str]:
    """Deduplicate terms, keeping first-occurrence order."""
    return list(dict.fromkeys(terms))


def term_frequencies(text: str) -> dict[str, int]:
    """Count whole-word, case-insensitive occurrences of each distinct token.

    A token that the tokenizer produced always counts at least once, even when
    the word-boundary match finds nothing (e.g. a token glued to a digit run).
    """
    frequencies = {}
    for term in unique_terms(tokenize(text)):
        pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
        frequencies[term] = len(pattern.findall(text)) or 1
    return frequencies


def inverse_document_frequency(document_frequency: int, total_chunks: int) -> float:
    """ln((N + 1) / (df + 0.5)) with N floored at 1."""
    n = max(total_chunks, 1)
    return math.log((n + 1) / (document_frequency + 0.5))


@dataclass(frozen=True)
class LexicalIndex:
    """Immutable term statistics for one generation."""

    idf: Mapping[str, float] = field(default_factory=dict)
    tf: Mapping[int, Mapping[str, int]] = field(default_factory=dict)
    k1: float = 1.2
    b: float = 0.25

    @property
    def vocabulary_size(self) -> int:
        return len(self.idf)

    def term_score(self, term: str, chunk_id: int) -> float:
        """Saturating TF-IDF contribution of one term to one chunk (0 if absent)."""
        frequency = self.tf.get(chunk_id, {}).get(term, 0)
        if not frequency:
            return 0.0
        return self.idf.get(term, 0.0) * (self.k1 * frequency) / (1 + self.b + frequency)

    def score(self, terms: Iterable[str], chunk_id: int) -> float:
        """Sum of term contributions over the distinct query terms."""
        return sum(self.term_score(term, chunk_id) for term in unique_terms(terms))


def build_lexical_index(chunks: Iterable, k1: float = 1.2, b: float = 0.25) -> LexicalIndex:
    """Compute TF tables and IDF values from scratch for a complete chunk set.

    Args:
        chunks: Objects with ``id`` and ``text`` attributes (every chunk of the generation)
        k1: Term-frequency scale
        b: Saturation offset

    Returns:
        LexicalIndex for exactly these chunks
    """
    tf: dict[int, Mapping[str, int]] = {}
    df: dict[str, int] = {}

    for chunk in chunks:
        frequencies = term_frequencies(chunk.text)
        tf[chunk.id] = MappingProxyType(frequencies)
        for term in frequencies:
            df[term] = df.get(term, 0) + 1

    total = len(tf)
    idf = {term: inverse_document_frequency(count, total) for term, count in df.items()}

    return LexicalIndex(idf=MappingProxyType(idf), tf=MappingProxyType(tf), k1=k1, b=b)
