"""Semantic embeddings for chunks and queries."""

import logging
import sys
from collections.abc import Sequence

from langchain_core.embeddings import Embeddings
from tqdm import tqdm

from ..backends import call_embeddings

logger = logging.getLogger(__name__)


class BackendEmbeddings(Embeddings):
    """LangChain embeddings backed by the configured server backend."""

    def __init__(self, config):
        """Initialize with a ServerConfig (backend type, endpoints, model, timeouts)."""
        self.config = config

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return call_embeddings(list(texts), self.config)

    def embed_query(self, text: str) -> list[float]:
        vectors = call_embeddings([text], self.config)
        if not vectors:
            raise ValueError("Embedding backend returned no vector for the query")
        return vectors[0]


def embed_chunks(
    texts: Sequence[str],
    embeddings: Embeddings,
    batch_size: int = 96,
    show_progress: bool = False,
) -> list[tuple[float, ...] | None]:
    """Embed texts in order-preserving batches.

    A batch that fails, or returns a different number of vectors than it was
    sent, leaves all of its positions as None; other batches are unaffected.

    Args:
        texts: Chunk texts, in chunk order
        embeddings: Embeddings implementation to call
        batch_size: Texts per request
        show_progress: Show a progress bar

    Returns:
        List aligned with ``texts``: a vector tuple, or None where embedding failed
    """
    if batch_size <= 0:
        raise ValueError(f"Batch size must be positive, got {batch_size}")

    vectors: list[tuple[float, ...] | None] = [None] * len(texts)
    failed_batches = 0
    dimensions: set[int] = set()

    with tqdm(
        total=len(texts), desc="Embedding chunks", unit="chunks", disable=not show_progress, file=sys.stderr
    ) as pbar:
        for start in range(0, len(texts), batch_size):
            batch = list(texts[start : start + batch_size])
            end = start + len(batch)
            try:
                result = embeddings.embed_documents(batch)
            except Exception as e:
                failed_batches += 1
                logger.warning(f"[RAG] Embedding batch {start}-{end - 1} failed: {e}")
                pbar.update(len(batch))
                continue

            if len(result) != len(batch):
                failed_batches += 1
                logger.warning(
                    f"[RAG] Embedding batch {start}-{end - 1} returned {len(result)} vectors for "
                    f"{len(batch)} texts, leaving batch unembedded"
                )
                pbar.update(len(batch))
                continue

            for offset, vector in enumerate(result):
                vectors[start + offset] = tuple(float(x) for x in vector)
                dimensions.add(len(vector))
            logger.debug(f"[RAG] Embedded batch {start}-{end - 1}")
            pbar.update(len(batch))

    embedded = sum(1 for v in vectors if v is not None)
    dims = ",".join(str(d) for d in sorted(dimensions)) or "-"
    if failed_batches:
        logger.warning(
            f"[RAG] Embeddings ready for {embedded}/{len(texts)} chunks ({failed_batches} batch(es) failed). Dim: {dims}"
        )
    else:
        logger.info(f"[RAG] Embeddings ready for {embedded} chunks. Dim: {dims}")

    return vectors
