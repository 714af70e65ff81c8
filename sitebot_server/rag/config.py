"""RAG configuration dataclass."""

from dataclasses import dataclass, field

# Desktop browser identifier; some site hosts reject unknown crawlers outright
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/127 Safari/537.36"
)

DEFAULT_FALLBACK_PATHS = [
    "/",
    "/home",
    "/services",
    "/about-us",
    "/contact",
    "/references",
    "/get-a-quote",
    "/consultation",
]


@dataclass
class RAGConfig:
    """Configuration for site crawling, indexing and hybrid search.

    Attributes:
        base_url: Site root to crawl (e.g., "https://www.example.com")

        # Crawling settings
        max_pages: Maximum number of URLs to process per crawl (default: 120)
        request_timeout: HTTP timeout for page and sitemap requests in seconds
        user_agent: User-Agent header sent with every page request
        excluded_path_prefixes: First path segments to skip (non-primary-language sections)
        fallback_paths: Well-known paths always added to the sitemap URLs
        min_doc_chars: Pages with less extracted text than this are skipped (default: 180)
        main_content_min_chars: If <main>/<article> text is shorter, the full page is used (default: 120)

        # Chunking settings
        chunk_size: Characters per chunk (default: 800)

        # Embedding settings
        embed_batch_size: Chunks per embedding request (default: 96)

        # Search settings
        dense_weight: Weight of cosine similarity in the combined score (default: 0.7)
        sparse_weight: Weight of tanh(lexical score) in the combined score (default: 0.3)
        sparse_k1: Term-frequency scale of the lexical score (default: 1.2)
        sparse_b: Saturation offset of the lexical score (default: 0.25)
        search_top_k: Number of chunks considered for the context (default: 12)
        max_context_chars: Upper bound on the emitted context length (default: 9000)
    """

    # Core settings
    base_url: str

    # Crawling settings
    max_pages: int = 120
    request_timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    excluded_path_prefixes: list[str] = field(default_factory=lambda: ["fi", "sv"])
    fallback_paths: list[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_PATHS))
    min_doc_chars: int = 180
    main_content_min_chars: int = 120
    show_progress: bool = True

    # Chunking settings
    chunk_size: int = 800

    # Embedding settings
    embed_batch_size: int = 96

    # Search settings
    dense_weight: float = 0.7
    sparse_weight: float = 0.3
    sparse_k1: float = 1.2
    sparse_b: float = 0.25
    search_top_k: int = 12
    max_context_chars: int = 9000

    def __post_init__(self):
        """Normalize base_url and validate sizes and weights."""
        self.base_url = self.base_url.rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an absolute http(s) URL, got {self.base_url!r}")

        total_weight = self.dense_weight + self.sparse_weight
        if abs(total_weight - 1.0) > 0.01:  # Allow small floating point error
            raise ValueError(
                f"Hybrid search weights must sum to 1.0, got {total_weight} "
                f"(dense={self.dense_weight}, sparse={self.sparse_weight})"
            )

        for name in ("max_pages", "chunk_size", "embed_batch_size", "search_top_k", "max_context_chars"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        self.excluded_path_prefixes = [p.strip("/") for p in self.excluded_path_prefixes if p.strip("/")]

    @classmethod
    def from_env(cls, env_prefix: str = "", **overrides):
        """Create a RAGConfig from environment variables.

        ``SITE_URL`` is required unless ``base_url`` is passed in ``overrides``.

        Raises:
            ValueError: If no site URL is configured
        """
        from dotenv import load_dotenv

        from ..config import env_getter

        load_dotenv()
        get_env = env_getter(env_prefix)

        values = {
            "base_url": get_env("SITE_URL", ""),
            "max_pages": int(get_env("MAX_PAGES", str(cls.max_pages))),
            "request_timeout": float(get_env("REQUEST_TIMEOUT", str(cls.request_timeout))),
            "user_agent": get_env("CRAWLER_USER_AGENT", DEFAULT_USER_AGENT),
            "min_doc_chars": int(get_env("MIN_DOC_CHARS", str(cls.min_doc_chars))),
            "chunk_size": int(get_env("CHUNK_SIZE", str(cls.chunk_size))),
            "embed_batch_size": int(get_env("EMBED_BATCH_SIZE", str(cls.embed_batch_size))),
            "search_top_k": int(get_env("TOP_K", str(cls.search_top_k))),
            "max_context_chars": int(get_env("MAX_CONTEXT_CHARS", str(cls.max_context_chars))),
            "show_progress": get_env("SHOW_PROGRESS", "").lower() not in ("false", "0", "no"),
        }
        excluded = get_env("EXCLUDED_PATH_PREFIXES", None)
        if excluded is not None:
            values["excluded_path_prefixes"] = [p.strip() for p in excluded.split(",") if p.strip()]
        values.update(overrides)

        if not values["base_url"]:
            raise ValueError("SITE_URL is not set")

        return cls(**values)
