"""Hybrid lexical + semantic retrieval over a knowledge-base generation.

Every chunk gets

    score = dense_weight * cosine(query_vector, chunk_vector) + sparse_weight * tanh(lexical_score)

Chunks with a positive score are ranked (ties broken by ascending chunk id),
the top-K are kept, and their text is packed into a context string tagged
with each chunk's source URL until the character budget is reached.
"""

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from langchain_core.embeddings import Embeddings

from .config import RAGConfig
from .knowledge_base import Chunk, KnowledgeBase
from .lexical import tokenize, unique_terms

logger = logging.getLogger(__name__)

SOURCE_TAG = "[Source]"


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity of two vectors; 0 if either is missing, all-zero, or the lengths differ."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if not norm_a or not norm_b:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


@dataclass(frozen=True)
class ScoredChunk:
    chunk: Chunk
    score: float
    dense: float
    sparse: float


@dataclass(frozen=True)
class RetrievalResult:
    """Ranked chunks for one query and the context built from them."""

    query: str
    ranked: tuple[ScoredChunk, ...]
    context: str
    generation: int

    @property
    def sources(self) -> list[str]:
        return list(dict.fromkeys(scored.chunk.url for scored in self.ranked))


def format_context_entry(chunk: Chunk) -> str:
    return f"{SOURCE_TAG} {chunk.url}\n{chunk.text}\n\n"


def build_context(chunks: Sequence[Chunk], max_chars: int) -> tuple[str, int]:
    """Concatenate tagged chunks while the total length stays within ``max_chars``.

    The first chunk that would overflow the budget ends the context; it is
    not truncated.

    Returns:
        Tuple of (context string, number of chunks included)
    """
    parts = []
    length = 0
    for chunk in chunks:
        entry = format_context_entry(chunk)
        if length + len(entry) > max_chars:
            break
        parts.append(entry)
        length += len(entry)
    return "".join(parts), len(parts)


class HybridRetriever:
    """Scores and ranks chunks of whatever generation is live when a query starts."""

    def __init__(
        self,
        config: RAGConfig,
        embeddings: Embeddings,
        knowledge_base: Callable[[], KnowledgeBase],
    ):
        """Initialize the retriever.

        Args:
            config: RAG configuration (weights, top-K, context budget)
            embeddings: Embeddings used for the query vector
            knowledge_base: Callable returning the live generation
        """
        self.config = config
        self.embeddings = embeddings
        self._knowledge_base = knowledge_base

    def score_chunks(
        self, query_vector: Sequence[float] | None, terms: list[str], kb: KnowledgeBase
    ) -> list[ScoredChunk]:
        """Score every chunk of ``kb``; returns only chunks with a positive combined score."""
        scored = []
        for chunk in kb.chunks:
            dense = cosine_similarity(query_vector, chunk.vector) if chunk.vector is not None else 0.0
            sparse = kb.lexical.score(terms, chunk.id)
            score = self.config.dense_weight * dense + self.config.sparse_weight * math.tanh(sparse)
            if score > 0:
                scored.append(ScoredChunk(chunk=chunk, score=score, dense=dense, sparse=sparse))
        return scored

    def rank(self, scored: list[ScoredChunk], top_k: int | None = None) -> list[ScoredChunk]:
        """Sort by descending score, then ascending chunk id, and keep the top ``top_k``."""
        if top_k is None:
            top_k = self.config.search_top_k
        ordered = sorted(scored, key=lambda s: (-s.score, s.chunk.id))
        return ordered[:top_k]

    def retrieve(self, query: str, top_k: int | None = None, kb: KnowledgeBase | None = None) -> RetrievalResult:
        """Rank the live generation's chunks for a query and build the context.

        Args:
            query: User question
            top_k: Override for the number of chunks considered
            kb: Generation to search (defaults to the live one at call time)

        Returns:
            RetrievalResult; empty if the generation has no chunks
        """
        # One reference for the whole query; a concurrent publish does not affect it
        if kb is None:
            kb = self._knowledge_base()

        if kb.is_empty:
            logger.debug("[RAG] Knowledge base is empty, returning empty context")
            return RetrievalResult(query=query, ranked=(), context="", generation=kb.version)

        query_vector = self.embeddings.embed_query(query)
        terms = unique_terms(tokenize(query))

        ranked = self.rank(self.score_chunks(query_vector, terms, kb), top_k)
        context, included = build_context([s.chunk for s in ranked], self.config.max_context_chars)

        logger.debug(
            f"[RAG] Query matched {len(ranked)} chunks (generation {kb.version}), "
            f"{included} fit in {len(context)} context chars"
        )
        return RetrievalResult(query=query, ranked=tuple(ranked), context=context, generation=kb.version)

    def retrieve_context(self, query: str) -> str:
        """Context string for a query (empty when nothing is indexed)."""
        return self.retrieve(query).context
