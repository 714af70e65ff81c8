"""Tests for HTML text extraction."""

import pytest

from sitebot_server.rag.extractor import Fetched, Skipped, TextExtractor, normalize_whitespace

LONG_BODY = (
    "We are a film production company based in Vaasa and Helsinki. We produce commercial video content, "
    "corporate films and event recordings for clients across the Nordics. Our crew handles scripting, "
    "filming, editing, sound design and color grading from the first idea to the finished delivery."
)


@pytest.mark.unit
class TestTextExtractor:
    """Test TextExtractor.extract."""

    def test_title_description_and_body(self, page_factory):
        html = page_factory("Services", LONG_BODY, description="Video production in Finland")

        result = TextExtractor().extract(html, "https://example.com/services")

        assert isinstance(result, Fetched)
        assert result.url == "https://example.com/services"
        assert result.text.startswith("TITLE: Services\n\nDESCRIPTION: Video production in Finland\n\nBODY:\n")
        assert LONG_BODY in result.text
        assert result.length == len(result.text)

    def test_scripts_styles_and_comments_removed(self):
        html = (
            "<html><head><style>.x { --stylesheet-marker: 1 }</style></head><body><main>"
            f"<!-- hidden comment --><p>{LONG_BODY}</p><script>alert('tracking')</script>"
            "</main></body></html>"
        )

        result = TextExtractor().extract(html, "https://example.com/")

        assert isinstance(result, Fetched)
        assert "stylesheet-marker" not in result.text
        assert "tracking" not in result.text
        assert "hidden comment" not in result.text

    def test_prefers_main_region(self, page_factory):
        html = page_factory("About", LONG_BODY)

        result = TextExtractor().extract(html, "https://example.com/about-us")

        assert isinstance(result, Fetched)
        # Navigation sits outside <main>
        assert "Home | Services | Contact" not in result.text

    def test_falls_back_to_full_page_when_main_is_short(self):
        html = f"<html><body><main>Short.</main><div><p>{LONG_BODY}</p></div></body></html>"

        result = TextExtractor().extract(html, "https://example.com/")

        assert isinstance(result, Fetched)
        assert LONG_BODY in result.text
        assert "Short." in result.text

    def test_falls_back_to_full_page_without_main(self):
        html = f"<html><body><div><p>{LONG_BODY}</p></div></body></html>"

        result = TextExtractor().extract(html, "https://example.com/")

        assert isinstance(result, Fetched)
        assert LONG_BODY in result.text

    def test_article_nested_in_main_counted_once(self):
        html = f"<html><body><main><article><p>{LONG_BODY}</p></article></main></body></html>"

        result = TextExtractor().extract(html, "https://example.com/")

        assert isinstance(result, Fetched)
        assert result.text.count("Vaasa and Helsinki") == 1

    def test_block_boundaries_separate_words(self):
        html = "<html><body><div><p>first</p><p>second</p><li>third</li></div></body></html>"

        result = TextExtractor(min_doc_chars=0, main_content_min_chars=0).extract(html, "https://example.com/")

        assert isinstance(result, Fetched)
        assert "first second third" in result.text

    def test_whitespace_collapsed(self):
        html = f"<html><body><main><p>  {LONG_BODY}\n\n\t  More   text.</p></main></body></html>"

        result = TextExtractor().extract(html, "https://example.com/")

        assert isinstance(result, Fetched)
        body = result.text.split("BODY:\n", 1)[1]
        assert "  " not in body
        assert body == body.strip()

    def test_below_threshold_is_skipped(self):
        html = "<html><head><title>Hi</title></head><body><main>Too little here.</main></body></html>"

        result = TextExtractor().extract(html, "https://example.com/tiny")

        assert isinstance(result, Skipped)
        assert result.url == "https://example.com/tiny"
        assert "below threshold" in result.reason

    @pytest.mark.parametrize("html", ["", "   "])
    def test_empty_markup_is_skipped(self, html):
        result = TextExtractor().extract(html, "https://example.com/")

        assert isinstance(result, Skipped)

    def test_threshold_is_configurable(self):
        html = "<html><body><main>Tiny page.</main></body></html>"

        result = TextExtractor(min_doc_chars=10).extract(html, "https://example.com/")

        assert isinstance(result, Fetched)


@pytest.mark.unit
def test_normalize_whitespace():
    assert normalize_whitespace("  a \n\n b\t c  ") == "a b c"
