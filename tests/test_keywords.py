"""Tests for app.services.keywords."""

import pytest

from app.services.keywords import KeywordCorpus, rank_keywords, tokenize


class TestTokenize:
    def test_lowercases_and_splits_on_punctuation(self):
        assert tokenize("Hello, World! It's fine.") == ["hello", "world", "it's", "fine"]


class TestRankKeywords:
    def test_term_frequency_without_corpus(self):
        ranked = rank_keywords("apple banana apple cherry")
        assert [(k.term, k.weight) for k in ranked] == [
            ("apple", 2.0),
            ("banana", 1.0),
            ("cherry", 1.0),
        ]

    def test_stopwords_digits_and_single_letters_dropped(self):
        ranked = rank_keywords("the cat and a dog in 2024 x")
        assert {k.term for k in ranked} == {"cat", "dog"}

    def test_at_most_ten_unique_terms(self):
        text = " ".join(f"term{chr(97 + i)}" for i in range(15)) * 2
        ranked = rank_keywords(text)
        terms = [k.term for k in ranked]
        assert len(terms) == 10
        assert len(set(terms)) == 10

    def test_sorted_by_weight_descending(self):
        ranked = rank_keywords("gamma beta beta alpha alpha alpha")
        weights = [k.weight for k in ranked]
        assert weights == sorted(weights, reverse=True)

    def test_deterministic(self):
        text = "river stone river moss stone fern lichen moss"
        assert rank_keywords(text) == rank_keywords(text)

    def test_empty_text(self):
        assert rank_keywords("") == []
        assert rank_keywords("the and of") == []

    def test_corpus_document_frequency_lowers_common_terms(self):
        corpus = KeywordCorpus(["apple pie", "apple tart"])
        ranked = rank_keywords("apple banana", corpus)
        assert [k.term for k in ranked] == ["banana", "apple"]
        assert ranked[0].weight == pytest.approx(1.405465)
        assert ranked[1].weight == pytest.approx(0.712318)


class TestKeywordCorpus:
    def test_add_publishes_new_snapshot(self):
        corpus = KeywordCorpus()
        before = corpus.snapshot()
        corpus.add("moss fern")
        assert before == ()
        assert len(corpus) == 1
        assert corpus.snapshot()[0] == frozenset({"moss", "fern"})
