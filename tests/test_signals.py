"""Tests for app.services.signals.parse_document."""

from app.services.signals import parse_document

_BLOG_HTML = """
<!DOCTYPE html>
<html>
<head>
  <title>Notes on Slow Mornings</title>
  <meta name="description" content="A short essay about mornings.">
  <meta property="og:title" content="Slow Mornings">
  <meta property="og:type" content="article">
  <meta property="og:image" content="https://example.com/cover.jpg">
  <meta property="article:tag" content="life">
  <meta property="article:tag" content="habits">
  <meta name="keywords" content="Life, coffee">
  <link rel="canonical" href="https://example.com/slow-mornings">
</head>
<body class="single-post theme-light">
  <nav><ol><li>Home</li><li>Blog</li></ol></nav>
  <article>
    <h1>Slow Mornings</h1>
    <p>Coffee first, then everything else.</p>
  </article>
</body>
</html>
"""


class TestMetadata:
    def test_reads_declared_metadata(self):
        doc = parse_document(_BLOG_HTML, "https://example.com/slow-mornings")
        meta = doc.metadata
        assert meta.title == "Notes on Slow Mornings"
        assert meta.description == "A short essay about mornings."
        assert meta.og_title == "Slow Mornings"
        assert meta.og_type == "article"
        assert meta.og_image == "https://example.com/cover.jpg"
        assert meta.canonical == "https://example.com/slow-mornings"
        assert doc.url == "https://example.com/slow-mornings"

    def test_tags_are_deduplicated_case_insensitively(self):
        meta = parse_document(_BLOG_HTML).metadata
        assert meta.tags == ("life", "habits", "coffee")

    def test_body_classes(self):
        meta = parse_document(_BLOG_HTML).metadata
        assert meta.body_classes == ("single-post", "theme-light")

    def test_schema_type_from_json_ld_graph(self):
        html = (
            '<html><head><script type="application/ld+json">'
            '{"@context": "https://schema.org", "@graph": [{"@type": "HowTo"}]}'
            "</script></head><body><p>x</p></body></html>"
        )
        assert parse_document(html).metadata.schema_type == "HowTo"

    def test_schema_type_from_itemtype(self):
        html = '<div itemscope itemtype="https://schema.org/ScholarlyArticle"><p>x</p></div>'
        assert parse_document(html).metadata.schema_type == "https://schema.org/ScholarlyArticle"

    def test_malformed_json_ld_is_ignored(self):
        html = '<script type="application/ld+json">{not json</script><p>x</p>'
        assert parse_document(html).metadata.schema_type is None

    def test_title_falls_back_to_h1(self):
        assert parse_document("<h1>Only Heading</h1>").metadata.title == "Only Heading"


class TestStructuralFlags:
    def test_navigation_list_is_not_ordered_steps(self):
        doc = parse_document(_BLOG_HTML)
        assert doc.has_article_root is True
        assert doc.has_ordered_steps is False

    def test_code_block(self):
        doc = parse_document("<pre><code>print('hi')</code></pre><pre>plain</pre>")
        assert doc.has_code_block is True
        assert doc.code_block_count == 2

    def test_language_class_counts_as_code(self):
        doc = parse_document('<pre class="language-python">x = 1</pre>')
        assert doc.has_code_block is True

    def test_plain_pre_is_not_a_code_block(self):
        doc = parse_document("<pre>  ascii art  </pre>")
        assert doc.has_code_block is False
        assert doc.code_block_count == 1

    def test_ordered_steps_and_citations(self):
        doc = parse_document("<ol><li>One</li></ol><blockquote>Quoted</blockquote>")
        assert doc.has_ordered_steps is True
        assert doc.has_citation_markers is True

    def test_heading_count(self):
        doc = parse_document("<h1>a</h1><h2>b</h2><h3>c</h3><p>d</p>")
        assert doc.heading_count == 3


class TestMalformedInput:
    def test_empty_markup(self):
        doc = parse_document("")
        assert doc.metadata.title == ""
        assert doc.metadata.description is None
        assert not any(
            (doc.has_article_root, doc.has_code_block, doc.has_ordered_steps, doc.has_citation_markers)
        )

    def test_unclosed_tags_do_not_raise(self):
        doc = parse_document("<div><p>Unclosed <b>bold")
        assert doc.has_code_block is False
