"""Tests for the extraction strategy chain."""

import pytest

from app.models.document import ExtractedContent
from app.services.errors import ErrorKind, ExtractionFailed
from app.services.extractor import (
    DEFAULT_STRATEGIES,
    extract_content,
    landmark_strategy,
    simple_extract,
)
from app.services.signals import parse_document

_ARTICLE_HTML = """
<html>
<head><title>Garden Log</title><meta name="description" content="What grew this year."></head>
<body>
  <div class="sidebar">Archive links</div>
  <article>
    <h1>Garden Log</h1>
    <p>The tomatoes came in late this year, but the beans more than made up
    for it. We planted three rows of runner beans along the fence and they
    climbed past the top wire by midsummer.</p>
    <p>Next year the squash moves to the sunny bed near the shed, and the
    herbs get their own raised box so the mint stops taking over.</p>
  </article>
</body>
</html>
"""


def _never(document, html):
    return None


def _boom(document, html):
    raise RuntimeError("strategy exploded")


class TestExtractContent:
    def test_extracts_article_body(self):
        doc = parse_document(_ARTICLE_HTML)
        content = extract_content(doc)
        assert "runner beans" in content.body_text
        assert "Archive links" not in content.body_text
        assert content.excerpt == "What grew this year."

    def test_falls_through_to_next_strategy(self):
        doc = parse_document(_ARTICLE_HTML)
        content = extract_content(doc, strategies=(("never", _never), ("landmark", landmark_strategy)))
        assert content.strategy == "landmark:article"
        assert content.title == "Garden Log"

    def test_strategy_exception_is_not_fatal(self):
        doc = parse_document(_ARTICLE_HTML)
        content = extract_content(doc, strategies=(("boom", _boom), ("landmark", landmark_strategy)))
        assert "tomatoes" in content.body_text

    def test_all_strategies_fail_raises_with_count(self):
        doc = parse_document("<html><body><div>   </div></body></html>")
        with pytest.raises(ExtractionFailed) as exc_info:
            extract_content(doc, strategies=(("never", _never), ("boom", _boom)))
        exc = exc_info.value
        assert exc.strategies_attempted == 2
        assert exc.details["strategies_attempted"] == 2
        assert exc.kind is ErrorKind.SERVICE_UNAVAILABLE
        assert "boom: strategy exploded" in exc.details["errors"]

    def test_empty_page_never_succeeds(self):
        doc = parse_document("")
        with pytest.raises(ExtractionFailed) as exc_info:
            extract_content(doc)
        assert exc_info.value.strategies_attempted == len(DEFAULT_STRATEGIES)


class TestLandmarkStrategy:
    def test_skips_empty_landmarks(self):
        html = "<main></main><div class='entry-content'><p>Real text</p></div>"
        content = landmark_strategy(parse_document(html), html)
        assert content is not None
        assert content.body_text == "Real text"
        assert content.strategy == "landmark:.entry-content"

    def test_excerpt_from_body_when_undeclared(self):
        html = "<article><p>" + ("word " * 100) + "</p></article>"
        content = landmark_strategy(parse_document(html), html)
        assert len(content.excerpt) == 200


class TestSimpleExtract:
    def test_whole_body(self):
        doc = parse_document("<html><head><title>T</title></head><body><div>Loose text</div></body></html>")
        content = simple_extract(doc)
        assert content.title == "T"
        assert content.body_text == "Loose text"
        assert content.strategy == "simple"

    def test_blank_body_raises(self):
        with pytest.raises(ExtractionFailed):
            simple_extract(parse_document("<body></body>"))


class TestExtractedContent:
    def test_blank_body_text_rejected(self):
        with pytest.raises(ValueError):
            ExtractedContent(title="t", body_html="", body_text="   ", excerpt="")

    def test_reading_time_rounds_up(self):
        content = ExtractedContent(title="t", body_html="", body_text="w " * 201, excerpt="")
        assert content.word_count == 201
        assert content.reading_time == 2
