"""Retrieval core: crawling, chunking, hybrid indexing and search of one website."""

from .config import RAGConfig
from .embedder import BackendEmbeddings
from .indexer import ReindexInProgressError, SiteIndex
from .knowledge_base import Chunk, KnowledgeBase
from .retriever import HybridRetriever, RetrievalResult

__all__ = [
    "BackendEmbeddings",
    "Chunk",
    "HybridRetriever",
    "KnowledgeBase",
    "RAGConfig",
    "ReindexInProgressError",
    "RetrievalResult",
    "SiteIndex",
]
