"""Plain-text extraction from fetched HTML pages.

The extractor turns raw markup into one normalized document per page:
title and description lines from the page metadata, followed by the text
of the primary content regions (``<main>``/``<article>``), or of the
whole page when those regions are missing or nearly empty.
"""

import logging
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

# Elements whose content is never page text
NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]

# Closing one of these starts a new line in the extracted text
BLOCK_TAGS = [
    "p",
    "div",
    "section",
    "article",
    "main",
    "li",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "br",
    "tr",
    "blockquote",
]

WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Fetched:
    """A page that produced usable text."""

    url: str
    text: str

    @property
    def length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class Skipped:
    """A page that was not indexed, and why."""

    url: str
    reason: str


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return WHITESPACE_RE.sub(" ", text).strip()


class TextExtractor:
    """Converts page markup into a normalized plain-text document."""

    def __init__(self, min_doc_chars: int = 180, main_content_min_chars: int = 120):
        """Initialize the extractor.

        Args:
            min_doc_chars: Documents shorter than this are reported as Skipped
            main_content_min_chars: Below this, main/article text is replaced by the full page text
        """
        self.min_doc_chars = min_doc_chars
        self.main_content_min_chars = main_content_min_chars

    def extract(self, html: str, url: str) -> Fetched | Skipped:
        """Extract the document for one page.

        Args:
            html: Raw page markup
            url: Source URL of the page

        Returns:
            Fetched with the document text, or Skipped if the page has too little text
        """
        if not html or not html.strip():
            return Skipped(url, "empty response")

        soup = BeautifulSoup(html, "html.parser")

        title = self._extract_title(soup)
        description = self._extract_description(soup)

        self._strip_non_content(soup)

        body = self._extract_primary_text(soup)
        if not body or len(body) < self.main_content_min_chars:
            body = self._region_text(soup)

        parts = []
        if title:
            parts.append(f"TITLE: {title}")
        if description:
            parts.append(f"DESCRIPTION: {description}")
        if body:
            parts.append(f"BODY:\n{body}")
        document = "\n\n".join(parts)

        if len(document) < self.min_doc_chars:
            return Skipped(url, f"below threshold ({len(document)} < {self.min_doc_chars} chars)")

        return Fetched(url, document)

    def _extract_title(self, soup: BeautifulSoup) -> str:
        if soup.title:
            return normalize_whitespace(soup.title.get_text())
        return ""

    def _extract_description(self, soup: BeautifulSoup) -> str:
        meta = soup.find("meta", attrs={"name": re.compile(r"^description$", re.I)})
        if meta and meta.get("content"):
            return normalize_whitespace(meta["content"])
        return ""

    def _strip_non_content(self, soup: BeautifulSoup):
        """Remove scripts, styles and comments, and mark block boundaries with line breaks."""
        for element in soup(NON_CONTENT_TAGS):
            element.decompose()
        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()
        for element in soup.find_all(BLOCK_TAGS):
            element.append("\n")

    def _extract_primary_text(self, soup: BeautifulSoup) -> str:
        """Collect text from <main> and <article> regions, counting nested regions once."""
        regions = []
        for region in soup.find_all(["main", "article"]):
            if any(parent is kept for parent in region.parents for kept in regions):
                continue
            regions.append(region)

        texts = [self._region_text(region) for region in regions]
        return normalize_whitespace(" ".join(t for t in texts if t))

    def _region_text(self, region) -> str:
        return normalize_whitespace(region.get_text(separator=" "))
