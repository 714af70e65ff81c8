"""Shared pytest fixtures for SiteBot Server tests."""

import threading

import pytest
import requests
from langchain_core.embeddings import Embeddings

from sitebot_server.config import ServerConfig
from sitebot_server.rag.config import RAGConfig
from sitebot_server.rag.knowledge_base import Chunk, KnowledgeBase
from sitebot_server.rag.lexical import build_lexical_index, tokenize

SITE = "https://example.com"

# Each dimension counts words starting with one stem; the last dimension is a constant bias
CONCEPT_STEMS = ["video", "produc", "servic", "call", "contact", "price", "film"]


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network access")


class KeywordEmbeddings(Embeddings):
    """Deterministic embeddings: one dimension per concept stem plus a bias term.

    Optionally fails selected embed_documents calls (by call index) and can
    block inside embed_documents until ``release`` is set.
    """

    def __init__(self, fail_on_calls=()):
        self.fail_on_calls = set(fail_on_calls)
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self.started: threading.Event | None = None
        self.release: threading.Event | None = None

    def vector(self, text: str) -> list[float]:
        words = tokenize(text)
        return [float(sum(1 for w in words if w.startswith(stem))) for stem in CONCEPT_STEMS] + [1.0]

    def embed_documents(self, texts):
        call_index = len(self.document_calls)
        self.document_calls.append(list(texts))
        if self.started is not None:
            self.started.set()
        if self.release is not None:
            self.release.wait(timeout=10)
        if call_index in self.fail_on_calls:
            raise RuntimeError("embedding service unavailable")
        return [self.vector(t) for t in texts]

    def embed_query(self, text):
        self.query_calls.append(text)
        return self.vector(text)


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, text="", url="", json_data=None):
        self.status_code = status_code
        self.text = text
        self.content = text.encode("utf-8")
        self.url = url
        self._json = json_data

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)

    def json(self):
        return self._json


class FakeSite:
    """URL -> response table installed in place of requests.get."""

    def __init__(self):
        self.responses = {}
        self.requests = []

    def add(self, url, text="", status=200):
        self.responses[url] = FakeResponse(status, text, url)

    def add_error(self, url, error):
        self.responses[url] = error

    def get(self, url, headers=None, timeout=None, **kwargs):
        self.requests.append({"url": url, "headers": headers or {}, "timeout": timeout})
        entry = self.responses.get(url)
        if entry is None:
            return FakeResponse(404, "Not found", url)
        if isinstance(entry, Exception):
            raise entry
        return entry


def make_page(title, body, description=None):
    """Build an HTML page with a <main> region."""
    meta = f'<meta name="description" content="{description}">' if description else ""
    return (
        f"<html><head><title>{title}</title>{meta}<style>body {{ color: red; }}</style></head>"
        f"<body><nav>Home | Services | Contact</nav><main><h1>{title}</h1><p>{body}</p></main>"
        f"<script>var tracking = 'ignore me';</script></body></html>"
    )


@pytest.fixture
def site_url():
    return SITE


@pytest.fixture
def embeddings():
    """Deterministic keyword embeddings."""
    return KeywordEmbeddings()


@pytest.fixture
def embeddings_factory():
    """Create keyword embeddings with failing calls."""
    return KeywordEmbeddings


@pytest.fixture
def rag_config():
    """RAG configuration for the example site, without progress bars."""
    return RAGConfig(base_url=SITE, show_progress=False)


@pytest.fixture
def server_config():
    """Server configuration that needs no network access."""
    config = ServerConfig()
    config.BACKEND_TYPE = "ollama"
    config.HEALTH_CHECK_ON_STARTUP = False
    config.CRAWL_ON_STARTUP = False
    return config


@pytest.fixture
def fake_site(monkeypatch):
    """Serve registered pages instead of making HTTP requests."""
    site = FakeSite()
    monkeypatch.setattr("sitebot_server.rag.crawler.requests.get", site.get)
    return site


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def response_factory():
    return FakeResponse


@pytest.fixture
def make_knowledge_base():
    """Build a generation directly from (url, text) pairs."""

    def _make(pages, embeddings=None, version=1, embed=True):
        embeddings = embeddings or KeywordEmbeddings()
        chunks = []
        for i, (url, text) in enumerate(pages):
            vector = tuple(embeddings.vector(text)) if embed else None
            chunks.append(Chunk(id=i, url=url, text=text, vector=vector))
        return KnowledgeBase(chunks=tuple(chunks), lexical=build_lexical_index(chunks), version=version)

    return _make
