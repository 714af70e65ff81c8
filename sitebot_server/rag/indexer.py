"""Site knowledge-base indexer with hybrid retrieval.

Main class for building and searching the site knowledge base:
- Sitemap + fallback URL discovery
- Plain-text extraction and fixed-size chunking
- TF-IDF term statistics
- Batched semantic embeddings
- Hybrid lexical + semantic search

Each crawl builds a complete new generation off to the side and publishes it
with a single reference swap, so queries always see a whole generation.
"""

import logging
import sys
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from langchain_core.embeddings import Embeddings
from tqdm import tqdm

from .chunker import chunk_text
from .config import RAGConfig
from .crawler import SiteCrawler
from .embedder import embed_chunks
from .extractor import Skipped
from .knowledge_base import Chunk, KnowledgeBase
from .lexical import build_lexical_index
from .retriever import HybridRetriever, RetrievalResult

logger = logging.getLogger(__name__)


class ReindexInProgressError(RuntimeError):
    """Raised when a re-index is requested while another one is running."""


class SiteIndex:
    """Owns the live knowledge-base generation and rebuilds it from the site."""

    def __init__(self, config: RAGConfig, embeddings: Embeddings, crawler: SiteCrawler | None = None):
        """Initialize the site index.

        Args:
            config: RAG configuration
            embeddings: Embeddings for chunks and queries
            crawler: Optional crawler (defaults to one built from config)
        """
        self.config = config
        self.embeddings = embeddings
        self.crawler = crawler or SiteCrawler.from_config(config)
        self.retriever = HybridRetriever(config, embeddings, lambda: self.live)

        self._live = KnowledgeBase.empty()
        self._crawl_lock = threading.Lock()
        self._last_version = 0
        self.last_error: str | None = None

    @property
    def live(self) -> KnowledgeBase:
        """The generation queries currently read."""
        return self._live

    @property
    def is_reindexing(self) -> bool:
        return self._crawl_lock.locked()

    def reindex(self) -> KnowledgeBase:
        """Crawl the site, build a new generation and publish it.

        Returns:
            The live generation after the crawl

        Raises:
            ReindexInProgressError: If another re-index is running
        """
        if not self._crawl_lock.acquire(blocking=False):
            raise ReindexInProgressError("Re-crawl already in progress")
        try:
            return self._reindex_locked()
        finally:
            self._crawl_lock.release()

    def start_background_reindex(self, callback: Callable[["SiteIndex"], None] | None = None):
        """Start a re-index in a background thread.

        The current generation stays queryable until the new one is published.

        Args:
            callback: Optional function to call when complete (receives self)

        Returns:
            threading.Thread: The background thread (already started), or None if a
            re-index is already running
        """
        if not self._crawl_lock.acquire(blocking=False):
            logger.info("[RAG] Re-index requested while one is running, ignoring request")
            return None

        def _background_task():
            try:
                self._reindex_locked()
                if callback:
                    callback(self)
            except Exception as e:
                self.last_error = str(e)
                logger.exception(f"[RAG] Background re-index failed: {e}")
            finally:
                self._crawl_lock.release()

        thread = threading.Thread(target=_background_task, name="sitebot-reindex", daemon=True)
        thread.start()
        logger.info("[RAG] Background re-index thread started")
        return thread

    def _reindex_locked(self) -> KnowledgeBase:
        self._last_version += 1
        generation = self.build_generation(self._last_version)

        if generation.is_empty and not self._live.is_empty:
            # Keep serving the previous build rather than an empty one (site unreachable)
            logger.warning(
                f"[RAG] Crawl produced 0 chunks, keeping generation {self._live.version} "
                f"({len(self._live)} chunks)"
            )
            return self._live

        self._live = generation
        self.last_error = None
        logger.info(f"[RAG] Published generation {generation.version}: {generation.stats()}")
        return generation

    def build_generation(self, version: int = 0) -> KnowledgeBase:
        """Build a complete generation without touching the live one.

        Args:
            version: Generation number to stamp on the result

        Returns:
            New KnowledgeBase with chunks, term statistics and embeddings
        """
        logger.info("[RAG] " + "=" * 70)
        logger.info(f"[RAG] Building knowledge base generation {version} from {self.config.base_url}")
        logger.info("[RAG] " + "=" * 70)

        # Phase 1: Discover URLs
        logger.info("[RAG] Phase 1/4: Discovering URLs")
        start_time = time.time()
        urls = self.crawler.discover_urls()
        logger.info(f"[RAG] Discovered {len(urls)} URLs in {time.time() - start_time:.1f}s")

        # Phase 2: Fetch, extract and chunk pages
        logger.info(f"[RAG] Phase 2/4: Crawling {len(urls)} pages...")
        start_time = time.time()
        chunks, pages = self._crawl_pages(urls)
        logger.info(
            f"[RAG] Crawled {len(chunks)} chunks from {len(pages)} pages in {time.time() - start_time:.1f}s"
        )

        # Phase 3: Term statistics over the complete chunk set
        logger.info("[RAG] Phase 3/4: Building sparse index...")
        lexical = build_lexical_index(chunks, k1=self.config.sparse_k1, b=self.config.sparse_b)
        logger.info(f"[RAG] Sparse index ready. Terms: {lexical.vocabulary_size}")

        # Phase 4: Embeddings
        logger.info(f"[RAG] Phase 4/4: Embedding {len(chunks)} chunks...")
        start_time = time.time()
        vectors = embed_chunks(
            [chunk.text for chunk in chunks],
            self.embeddings,
            batch_size=self.config.embed_batch_size,
            show_progress=self.config.show_progress,
        )
        chunks = [Chunk(id=c.id, url=c.url, text=c.text, vector=v) for c, v in zip(chunks, vectors)]
        logger.info(f"[RAG] Embedding phase done in {time.time() - start_time:.1f}s")

        return KnowledgeBase(
            chunks=tuple(chunks),
            lexical=lexical,
            version=version,
            built_at=datetime.now(),
            pages=tuple(pages),
        )

    def _crawl_pages(self, urls: list[str]) -> tuple[list[Chunk], list[str]]:
        """Fetch pages one by one and chunk the usable ones.

        Returns:
            Tuple of (chunks with sequential ids, URLs that produced chunks)
        """
        chunks: list[Chunk] = []
        pages: list[str] = []
        skipped = 0

        pbar = tqdm(
            urls,
            desc="Crawling pages",
            unit="page",
            disable=not self.config.show_progress,
            file=sys.stderr,
        )
        for url in pbar:
            result = self.crawler.fetch_document(url)
            if isinstance(result, Skipped):
                skipped += 1
                logger.info(f"[CRAWLER] · skip {url}: {result.reason}")
                continue

            pieces = chunk_text(result.text, self.config.chunk_size)
            for piece in pieces:
                chunks.append(Chunk(id=len(chunks), url=url, text=piece))
            pages.append(url)
            logger.info(f"[CRAWLER] ✓ {url} chunks={len(pieces)} chars={result.length}")
            pbar.set_postfix_str(f"chunks={len(chunks)}, skipped={skipped}", refresh=True)

        return chunks, pages

    def search(self, query: str, top_k: int | None = None) -> RetrievalResult:
        """Search the live generation with hybrid retrieval.

        Args:
            query: Search query
            top_k: Number of chunks considered (default from config)

        Returns:
            RetrievalResult with ranked chunks and the context string
        """
        return self.retriever.retrieve(query, top_k=top_k)

    def retrieve_context(self, query: str) -> str:
        return self.retriever.retrieve_context(query)

    def stats(self) -> dict[str, Any]:
        """Size of the live generation plus crawl status."""
        stats = self._live.stats()
        stats["reindexing"] = self.is_reindexing
        if self.last_error:
            stats["last_error"] = self.last_error
        return stats
