"""Tests for template catalog loading and template selection."""

import pytest

from app.models.document import ExtractedContent
from app.models.genre import Genre
from app.models.keyword import KeywordScore
from app.services.signals import parse_document
from app.services.templates import (
    DEFAULT_TEMPLATE_ID,
    TemplateSignals,
    catalog_ids,
    collect_signals,
    get_catalog,
    load_candidates,
    score_candidates,
    select_template,
    template_path,
)


def _ids():
    return {candidate.id for candidate in get_catalog()}


class TestCatalog:
    def test_bundled_catalog_has_every_genre_template(self):
        ids = _ids()
        for genre in Genre:
            assert genre.template_id in ids
        assert "web-clip" in ids

    def test_catalog_without_default_is_rejected(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("templates:\n  - id: tutorial\n    name: Tutorial\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_candidates(path)

    def test_catalog_ids_match_catalog(self):
        assert set(catalog_ids()) == _ids()


class TestTemplatePath:
    def test_catalog_id_resolves_inside_templates_dir(self):
        path = template_path("tutorial")
        assert path.name == "tutorial.md"
        assert path.parent.name == "templates"

    @pytest.mark.parametrize(
        "template_id",
        ["../../etc/passwd", "..", "sub/tutorial", "sub\\tutorial", ""],
    )
    def test_path_like_ids_are_refused(self, template_id):
        with pytest.raises(ValueError):
            template_path(template_id)


class TestSelectTemplate:
    def test_all_zero_scores_default_to_blog_post(self):
        assert select_template(None, [], TemplateSignals(body_text="")) == DEFAULT_TEMPLATE_ID

    def test_always_returns_a_catalog_id(self):
        ids = _ids()
        for genre in Genre:
            assert select_template(genre, [], TemplateSignals(body_text="some text")) in ids

    def test_code_blocks_favour_code_snippet(self):
        signals = TemplateSignals(body_text="x = 1", code_block_count=2)
        assert select_template(None, [], signals) == "code-snippet"

    def test_tie_for_first_defaults_to_blog_post(self):
        signals = TemplateSignals(body_text="", tags=("tutorial", "research"))
        scores = score_candidates(None, [], signals, get_catalog())
        assert scores["tutorial"] == scores["research-note"] == 10
        assert select_template(None, [], signals) == DEFAULT_TEMPLATE_ID

    def test_keyword_terms_map_like_tags(self):
        keywords = [KeywordScore(term="research", weight=3.0)]
        assert select_template(None, keywords, TemplateSignals(body_text="")) == "research-note"

    def test_many_headings_add_bonus(self):
        signals = TemplateSignals(body_text="", heading_count=6)
        scores = score_candidates(Genre.TUTORIAL, [], signals, get_catalog())
        assert scores["tutorial"] == 25
        assert scores["affiliate-post"] == 5

    def test_body_patterns_score_each_match(self):
        signals = TemplateSignals(body_text="The research and further research.")
        scores = score_candidates(None, [], signals, get_catalog())
        assert scores["research-note"] == 10

    def test_web_clip_is_never_scored(self):
        scores = score_candidates(Genre.BLOG_POST, [], TemplateSignals(body_text=""), get_catalog())
        assert "web-clip" not in scores


class TestCollectSignals:
    def test_counts_code_blocks_in_extracted_body(self):
        html = "<article><h2>Usage</h2><pre><code>a()</code></pre><pre><code>b()</code></pre></article>"
        doc = parse_document(html)
        content = ExtractedContent(
            title="t",
            body_html=html,
            body_text="Usage a() b()",
            excerpt="",
        )
        signals = collect_signals(doc, content, tags=["Python"])
        assert signals.code_block_count == 2
        assert signals.heading_count == 1
        assert signals.tags == ("Python",)
