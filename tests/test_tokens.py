"""Tests for tokens.py — tokenizer and centroid similarity."""

import math

import pytest

from models import TokenCentroid
from tokens import (
    cosine_similarity,
    create_centroid,
    extract_tokens,
    features_hash,
    jaccard_similarity,
    tokenize,
    update_centroid,
    weighted_similarity,
)


class TestExtractTokens:
    def test_lowercases_and_strips_punctuation(self):
        assert extract_tokens("Fix: Parser CRASH!") == ["fix", "parser", "crash"]

    def test_splits_on_hyphens(self):
        assert extract_tokens("rate-limiter design") == ["rate", "limiter", "design"]

    def test_drops_short_tokens_and_stop_words(self):
        assert extract_tokens("How to do it with the API") == ["how", "api"]

    def test_empty(self):
        assert extract_tokens("") == []


class TestTokenize:
    def test_host_labels_kept_when_long(self):
        assert tokenize(host="www.github.com") == ["www", "github", "com"]
        assert tokenize(host="go.dev") == ["dev"]

    def test_host_labels_skip_stop_words_filter(self):
        # "the" would be a stop word in text, not in a host
        assert tokenize(host="the.example.org") == ["the", "example", "org"]

    def test_field_order(self):
        tokens = tokenize(
            host="docs.python.org",
            path_tokens=["library", "asyncio-task.html"],
            title="Coroutines and Tasks",
            h1="Coroutines",
            meta="Awaitable objects",
        )
        assert tokens == [
            "docs", "python", "org",
            "library", "asyncio", "task", "html",
            "coroutines", "tasks",
            "coroutines",
            "awaitable", "objects",
        ]

    def test_nothing_given(self):
        assert tokenize() == []


class TestFeaturesHash:
    def test_order_insensitive(self):
        assert features_hash(["b", "a", "c"]) == features_hash(["c", "b", "a"]) == "a|b|c"

    def test_does_not_mutate_input(self):
        tokens = ["b", "a"]
        features_hash(tokens)
        assert tokens == ["b", "a"]


class TestCentroid:
    def test_create_counts_occurrences(self):
        c = create_centroid([["api", "rust", "api"], ["rust"]])
        assert c.tokens == {"api": 2, "rust": 2}
        assert c.total_weight == 4

    def test_create_with_weights(self):
        c = create_centroid([["api"], ["api", "docs"]], weights=[2, 0.5])
        assert c.tokens == {"api": 2.5, "docs": 0.5}
        assert c.total_weight == 3

    def test_update_returns_new_centroid(self):
        c = create_centroid([["api"]])
        updated = update_centroid(c, ["api", "docs"], 0.1)
        assert c.tokens == {"api": 1}
        assert c.total_weight == 1
        assert updated.tokens == pytest.approx({"api": 1.1, "docs": 0.1})
        assert updated.total_weight == pytest.approx(1.2)

    def test_sequential_updates_sum(self):
        c = TokenCentroid()
        c = update_centroid(c, ["api", "api", "docs"], 0.1)
        c = update_centroid(c, ["api"], 0.2)
        assert c.tokens["api"] == pytest.approx(0.1 * 2 + 0.2 * 1)
        assert c.tokens["docs"] == pytest.approx(0.1)
        assert c.total_weight == pytest.approx(0.1 * 3 + 0.2 * 1)


class TestSimilarity:
    def test_empty_sides_are_zero(self):
        c = create_centroid([["api"]])
        assert weighted_similarity(TokenCentroid(), ["api"]) == 0
        assert weighted_similarity(c, []) == 0
        assert cosine_similarity(c, []) == 0
        assert jaccard_similarity(TokenCentroid(), ["api"]) == 0

    def test_identical_single_token(self):
        c = create_centroid([["api"]])
        assert cosine_similarity(c, ["api"]) == pytest.approx(1.0)
        assert jaccard_similarity(c, ["api"]) == pytest.approx(1.0)
        assert weighted_similarity(c, ["api"]) == pytest.approx(1.0)

    def test_known_values(self):
        c = TokenCentroid(tokens={"api": 3, "docs": 4}, total_weight=7)
        # dot = 3, |c| = 5, sqrt(2) incoming tokens
        assert cosine_similarity(c, ["api", "rust"]) == pytest.approx(3 / (5 * math.sqrt(2)))
        # 1 shared over 3 distinct
        assert jaccard_similarity(c, ["api", "rust"]) == pytest.approx(1 / 3)
        assert weighted_similarity(c, ["api", "rust"]) == pytest.approx(
            0.6 * 3 / (5 * math.sqrt(2)) + 0.4 / 3
        )

    def test_jaccard_ignores_duplicates_and_weights(self):
        c = TokenCentroid(tokens={"api": 100, "docs": 1}, total_weight=101)
        assert jaccard_similarity(c, ["api", "api", "api"]) == pytest.approx(0.5)

    @pytest.mark.parametrize("tokens", [
        ["api"], ["api", "api", "api"], ["x", "y", "z"], ["api", "docs", "rust", "go"],
    ])
    def test_bounded(self, tokens):
        c = TokenCentroid(tokens={"api": 0.3, "docs": 7, "rust": 2}, total_weight=9.3)
        assert 0 <= weighted_similarity(c, tokens) <= 1
