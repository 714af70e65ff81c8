"""In-memory knowledge base generations."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .lexical import LexicalIndex


@dataclass(frozen=True)
class Chunk:
    """A slice of one page's text, the unit of indexing and retrieval.

    ``id`` is unique within a generation and joins the chunk to its
    term-frequency table.
    """

    id: int
    url: str
    text: str
    vector: tuple[float, ...] | None = None

    @property
    def embedded(self) -> bool:
        return self.vector is not None


@dataclass(frozen=True)
class KnowledgeBase:
    """One complete, immutable build of the knowledge base.

    Chunks, lexical statistics and vectors all come from the same crawl pass.
    A generation is never modified after construction; a re-crawl builds a
    new one.
    """

    chunks: tuple[Chunk, ...] = ()
    lexical: LexicalIndex = field(default_factory=LexicalIndex)
    version: int = 0
    built_at: datetime | None = None
    pages: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "KnowledgeBase":
        return cls()

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    @property
    def embedded_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.embedded)

    def stats(self) -> dict[str, Any]:
        """Generation size for health/diagnostic reporting."""
        return {
            "chunks": len(self.chunks),
            "embedded": self.embedded_count,
            "vocab": self.lexical.vocabulary_size,
            "pages": len(self.pages),
            "generation": self.version,
            "built_at": self.built_at.isoformat() if self.built_at else None,
        }
