"""Site crawler: URL discovery and page fetching.

URL discovery combines two sources:
1. The site's sitemap.xml (a sitemap index is followed into its sub-sitemaps)
2. A fixed list of well-known paths (home, services, contact, ...) that is
   always added, so a missing or incomplete sitemap still yields the core pages
"""

import logging
import xml.etree.ElementTree as ET
from urllib.parse import urljoin, urlparse

import requests

from .extractor import Fetched, Skipped, TextExtractor

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = {"ns": "http://www.sitemaps.org/schemas/sitemap/0.9"}


class SiteCrawler:
    """Discovers a site's pages and fetches them as normalized documents."""

    def __init__(
        self,
        base_url: str,
        max_pages: int = 120,
        request_timeout: float = 15.0,
        user_agent: str = "",
        excluded_path_prefixes: list[str] | None = None,
        fallback_paths: list[str] | None = None,
        extractor: TextExtractor | None = None,
    ):
        """Initialize the site crawler.

        Args:
            base_url: Site root; only URLs under it are crawled
            max_pages: Maximum number of URLs returned by discovery
            request_timeout: HTTP request timeout in seconds
            user_agent: User-Agent header for all requests
            excluded_path_prefixes: First path segments to skip (e.g. ["fi", "sv"])
            fallback_paths: Paths always added to the discovered URLs
            extractor: Text extractor for fetched pages
        """
        self.base_url = base_url.rstrip("/")
        self.base_netloc = urlparse(self.base_url).netloc.lower()
        self.max_pages = max_pages
        self.request_timeout = request_timeout
        self.user_agent = user_agent
        self.excluded_path_prefixes = [p.strip("/") for p in (excluded_path_prefixes or []) if p.strip("/")]
        self.fallback_paths = fallback_paths or []
        self.extractor = extractor or TextExtractor()

    @classmethod
    def from_config(cls, config) -> "SiteCrawler":
        """Create a crawler from a RAGConfig."""
        return cls(
            base_url=config.base_url,
            max_pages=config.max_pages,
            request_timeout=config.request_timeout,
            user_agent=config.user_agent,
            excluded_path_prefixes=config.excluded_path_prefixes,
            fallback_paths=config.fallback_paths,
            extractor=TextExtractor(
                min_doc_chars=config.min_doc_chars, main_content_min_chars=config.main_content_min_chars
            ),
        )

    @property
    def headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "text/html,application/xhtml+xml"}

    def discover_urls(self) -> list[str]:
        """Collect candidate page URLs from the sitemap plus the fallback paths.

        Returns:
            De-duplicated URLs in discovery order, capped at max_pages
        """
        urls = self._discover_sitemap()
        logger.info(f"[CRAWLER] Found {len(urls)} URLs from sitemap")

        for path in self.fallback_paths:
            urls.append(self._normalize_url(urljoin(self.base_url, path)))

        result = list(dict.fromkeys(url for url in urls if url))

        if len(result) > self.max_pages:
            logger.info(f"[CRAWLER] Limiting to {self.max_pages} pages (found {len(result)})")
            result = result[: self.max_pages]

        logger.info(f"[CRAWLER] Total unique URLs: {len(result)}")
        return result

    def _discover_sitemap(self) -> list[str]:
        """Fetch and parse the site's sitemap.xml.

        Returns:
            Page URLs from the sitemap, or an empty list if it is missing or unreadable
        """
        sitemap_url = f"{self.base_url}/sitemap.xml"
        try:
            response = requests.get(sitemap_url, headers={"User-Agent": self.user_agent}, timeout=self.request_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.info(f"[CRAWLER] Failed to fetch {sitemap_url}: {e}")
            return []

        return self._parse_sitemap_xml(response.content)

    def _parse_sitemap_xml(self, xml_content: bytes, follow_index: bool = True) -> list[str]:
        """Parse sitemap XML content.

        Args:
            xml_content: Raw XML bytes
            follow_index: Whether to fetch sub-sitemaps of a sitemap index

        Returns:
            List of page URLs that pass the site and language filters
        """
        try:
            tree = ET.fromstring(xml_content)
        except ET.ParseError as e:
            logger.warning(f"[CRAWLER] Failed to parse sitemap XML: {e}")
            return []

        # Sitemap index: <sitemapindex><sitemap><loc>
        sitemap_elements = tree.findall("ns:sitemap", SITEMAP_NAMESPACE) or tree.findall("sitemap")
        if sitemap_elements:
            if not follow_index:
                logger.debug("[CRAWLER] Nested sitemap index ignored")
                return []
            logger.info(f"[CRAWLER] Found sitemap index with {len(sitemap_elements)} sub-sitemaps")
            urls = []
            for sitemap_elem in sitemap_elements:
                loc = self._find_loc(sitemap_elem)
                if not loc:
                    continue
                try:
                    response = requests.get(loc, headers={"User-Agent": self.user_agent}, timeout=self.request_timeout)
                    response.raise_for_status()
                    urls.extend(self._parse_sitemap_xml(response.content, follow_index=False))
                except requests.RequestException as e:
                    logger.warning(f"[CRAWLER] Failed to fetch sub-sitemap {loc}: {e}")
            return urls

        # Regular sitemap: <urlset><url><loc>
        urls = []
        url_elements = tree.findall("ns:url", SITEMAP_NAMESPACE) or tree.findall("url")
        for url_elem in url_elements:
            loc = self._find_loc(url_elem)
            if not loc:
                continue
            url = self._normalize_url(loc)
            if self._should_crawl_url(url):
                urls.append(url)
        return urls

    @staticmethod
    def _find_loc(element) -> str | None:
        # Note: explicit 'is not None' checks because empty XML elements are falsy
        loc = element.find("ns:loc", SITEMAP_NAMESPACE)
        if loc is None:
            loc = element.find("loc")
        if loc is not None and loc.text:
            return loc.text.strip()
        return None

    def fetch_page(self, url: str) -> str | Skipped:
        """Fetch a single page.

        Args:
            url: URL to fetch

        Returns:
            Page markup, or Skipped if the request failed or returned a non-success status
        """
        try:
            logger.debug(f"[CRAWLER] Fetching: {url}")
            response = requests.get(url, headers=self.headers, timeout=self.request_timeout)
        except requests.RequestException as e:
            return Skipped(url, f"fetch failed: {e}")

        if not response.ok:
            return Skipped(url, f"HTTP {response.status_code}")

        return response.text

    def fetch_document(self, url: str) -> Fetched | Skipped:
        """Fetch a page and extract its document text."""
        page = self.fetch_page(url)
        if isinstance(page, Skipped):
            return page
        return self.extractor.extract(page, url)

    def _normalize_url(self, url: str) -> str:
        """Drop the fragment and trailing slashes."""
        return url.split("#")[0].rstrip("/")

    def _should_crawl_url(self, url: str) -> bool:
        """Check that a URL belongs to the site and is not in an excluded language section.

        Args:
            url: Normalized URL to check

        Returns:
            True if URL should be crawled
        """
        try:
            parsed = urlparse(url)
        except ValueError as e:
            logger.debug(f"[CRAWLER] Unparseable URL {url!r}: {e}")
            return False

        if parsed.netloc.lower() != self.base_netloc or not url.startswith(self.base_url):
            logger.debug(f"[CRAWLER] Outside site: {url}")
            return False

        path = parsed.path.lstrip("/")
        for prefix in self.excluded_path_prefixes:
            if path == prefix or path.startswith(prefix + "/"):
                logger.debug(f"[CRAWLER] Excluded language section: {url}")
                return False

        return True
