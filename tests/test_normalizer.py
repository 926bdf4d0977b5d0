"""Tests for slugs, folder layout and frontmatter."""

from app.services.normalizer import (
    MAX_SLUG_LENGTH,
    folder_structure,
    format_tags,
    generate_slug,
    make_frontmatter,
)


class TestGenerateSlug:
    def test_basic_title(self):
        assert generate_slug("Hello, World!") == "hello-world"

    def test_accents_are_folded(self):
        assert generate_slug("Crème Brûlée Guide") == "creme-brulee-guide"

    def test_falls_back_to_url_path(self):
        assert generate_slug("", "https://example.com/blog/my-post.html") == "my-post"

    def test_untitled_when_nothing_usable(self):
        assert generate_slug("!!!") == "untitled"

    def test_length_is_capped(self):
        slug = generate_slug("word " * 100)
        assert len(slug) <= MAX_SLUG_LENGTH
        assert not slug.endswith("-")


class TestFolderStructure:
    def test_genre_keyword_and_leaf(self):
        folder = folder_structure("tutorial", ["python", "asyncio", "testing", "extra"])
        assert folder.path == "tutorial/python/asyncio-testing"
        assert folder.category == "tutorial"
        assert folder.subcategory == "python"

    def test_no_keywords(self):
        assert folder_structure("blog_post", []).path == "blog-post/uncategorized"

    def test_single_keyword(self):
        assert folder_structure("research_note", ["soil"]).path == "research-note/soil"


class TestFrontmatter:
    def test_renders_scalars_lists_and_booleans(self):
        block = make_frontmatter(
            {"title": 'Say "hi"', "tags": ["a", "b"], "draft": False, "count": 3, "empty": ""}
        )
        assert block.splitlines() == [
            "---",
            'title: "Say \\"hi\\""',
            'tags: ["a", "b"]',
            "draft: false",
            "count: 3",
            "---",
        ]


class TestFormatTags:
    def test_hash_prefixed_slugs(self):
        assert format_tags(["Web Dev", "python", "!!"]) == "#web-dev #python"
