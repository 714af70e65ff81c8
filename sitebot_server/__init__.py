"""SiteBot Server - answers questions about a website from a crawled hybrid-search knowledge base."""

from .config import MissingCredentialError, ServerConfig
from .rag import BackendEmbeddings, RAGConfig, ReindexInProgressError, SiteIndex
from .server import SiteBotServer

__version__ = "0.1.0"
__all__ = [
    "BackendEmbeddings",
    "MissingCredentialError",
    "RAGConfig",
    "ReindexInProgressError",
    "ServerConfig",
    "SiteBotServer",
    "SiteIndex",
]
