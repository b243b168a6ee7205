"""Tests for the in-memory hybrid retrieval store."""

from __future__ import annotations

import math
import time
from unittest.mock import MagicMock

import pytest

from repodocs.indexer.resolver import resolve
from repodocs.storage.retrieval_store import (
    HybridRetrievalStore,
    cosine_similarity,
    format_results,
    tokenize,
)
from tests.helpers import keyword_vector, make_file, make_symbol


def _embedder(side_effect=None):
    embedder = MagicMock()
    embedder.embed.side_effect = side_effect or (lambda texts: [keyword_vector(t) for t in texts])
    return embedder


class TestTokenize:
    def test_lowercases_and_drops_short_tokens(self):
        assert tokenize("Get the USER_id of an ox") == {"get", "the", "user_id"}

    def test_splits_on_punctuation(self):
        assert tokenize("foo.bar(baz)-qux") == {"foo", "bar", "baz", "qux"}

    def test_empty(self):
        assert tokenize("") == frozenset()


class TestCosine:
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == 0.0

    def test_opposite(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize("a,b", [
        ([], []),
        ([1.0], []),
        ([1.0, 2.0], [1.0]),
        ([0.0, 0.0], [1.0, 1.0]),
    ])
    def test_degenerate_vectors_score_zero(self, a, b):
        assert cosine_similarity(a, b) == 0.0

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)
        assert cosine_similarity([3.0, 4.0], [4.0, 3.0]) == pytest.approx(24 / 25)


class TestKeywordOnly:
    def test_empty_store(self):
        store = HybridRetrievalStore()
        assert store.similarity_search("anything") == []
        assert len(store) == 0

    def test_ranking_by_token_overlap(self):
        store = HybridRetrievalStore()
        store.index_files([
            make_file("a.ts", "nothing relevant"),
            make_file("b.ts", "function foo returns users"),
            make_file("c.ts", "list users"),
        ])
        results = store.similarity_search("foo users", k=3)

        assert [r.chunk.file_path for r in results] == ["b.ts", "c.ts", "a.ts"]
        assert results[0].score == pytest.approx(0.3)
        assert results[1].score == pytest.approx(0.15)
        assert [r.match_type for r in results] == ["keyword", "keyword", "none"]
        assert not store.embeddings_enabled

    def test_ties_keep_insertion_order(self):
        store = HybridRetrievalStore()
        store.index_files([make_file(f"f{i}.ts", "demo code") for i in range(5)])
        results = store.similarity_search("demo", k=5)
        assert [r.chunk.file_path for r in results] == [f"f{i}.ts" for i in range(5)]

    def test_results_bounded_and_sorted(self):
        store = HybridRetrievalStore()
        store.index_files([
            make_file("a.ts", "alpha"),
            make_file("b.ts", "alpha beta"),
            make_file("c.ts", "alpha beta gamma"),
        ])
        results = store.similarity_search("alpha beta gamma", k=2)
        assert len(results) == 2
        assert [r.chunk.file_path for r in results] == ["c.ts", "b.ts"]
        scores = [r.score for r in store.similarity_search("alpha beta gamma", k=10)]
        assert scores == sorted(scores, reverse=True)
        assert len(scores) == 3

    def test_non_positive_k(self):
        store = HybridRetrievalStore()
        store.index_files([make_file("a.ts", "alpha")])
        assert store.similarity_search("alpha", k=0) == []

    def test_query_without_tokens(self):
        store = HybridRetrievalStore()
        store.index_files([make_file("a.ts", "alpha")])
        (result,) = store.similarity_search("?!", k=1)
        assert result.score == 0.0
        assert result.match_type == "none"


class TestWithEmbeddings:
    def test_blended_score(self):
        store = HybridRetrievalStore(embedder=_embedder())
        store.index_files([
            make_file("a.ts", "foo foo"),
            make_file("b.ts", "service"),
        ])
        results = store.similarity_search("foo", k=2)

        assert results[0].chunk.file_path == "a.ts"
        assert results[0].score == pytest.approx(1.0)
        assert results[0].match_type == "hybrid"
        assert results[1].score == 0.0
        assert store.embeddings_enabled

    def test_vector_only_match(self):
        store = HybridRetrievalStore(embedder=_embedder())
        store.index_files([make_file("a.ts", "servicex run")])
        (result,) = store.similarity_search("service", k=1)
        # "servicex" shares no token with "service" but both embed the same term
        assert result.match_type == "vector"
        assert result.score == pytest.approx(0.7 * (1 / math.sqrt(2)))

    def test_embedding_failure_keeps_chunks(self):
        def boom(texts):
            raise RuntimeError("embedder down")

        store = HybridRetrievalStore(embedder=_embedder(boom))
        added = store.index_files([make_file("a.ts", "foo users")])
        assert added == 1
        assert store.chunks[0].embedding is None

        (result,) = store.similarity_search("users", k=1)
        assert result.match_type == "keyword"
        assert result.score == pytest.approx(0.3)

    def test_count_mismatch_drops_vectors(self):
        store = HybridRetrievalStore(embedder=_embedder(lambda texts: []))
        store.index_files([make_file("a.ts", "foo")])
        assert store.chunks[0].embedding is None

    def test_concurrent_embedding_preserves_order(self):
        def slow_first(texts):
            if "first" in texts[0]:
                time.sleep(0.05)
            return [keyword_vector(t) for t in texts]

        store = HybridRetrievalStore(embedder=_embedder(slow_first), max_workers=4)
        files = [make_file(f"f{i}.ts", "first" if i == 0 else f"file {i}") for i in range(6)]
        seen = []
        store.index_files(files, on_progress=lambda p: seen.append(p["file"]))

        assert seen == [f.path for f in files]
        assert [c.file_path for c in store.chunks] == [f.path for f in files]


class TestIndexing:
    def test_chunk_ids_and_lines(self):
        content = "\n".join(f"line {i}" for i in range(400))
        store = HybridRetrievalStore(chunk_size=1000, overlap=200)
        store.index_files([make_file("src/big.ts", content)])

        ids = [c.id for c in store.chunks]
        assert ids == [f"src/big.ts-{i}" for i in range(len(ids))]
        assert len(ids) > 1
        assert store.chunks[0].start_line == 1
        assert store.get_chunk("src/big.ts-1").start_line > 1
        assert store.file_paths() == {"src/big.ts"}

    def test_progress_reports_each_file_in_order(self):
        store = HybridRetrievalStore()
        seen = []
        store.index_files(
            [make_file("a.ts", "a"), make_file("b.ts", "b"), make_file("c.ts", "")],
            on_progress=seen.append,
        )
        assert [(p["current"], p["total"], p["file"]) for p in seen] == [
            (1, 3, "a.ts"), (2, 3, "b.ts"), (3, 3, "c.ts"),
        ]
        assert seen[2]["chunks"] == 0

    def test_related_symbols_are_one_hop(self):
        graph = resolve([
            [make_symbol("util", "u.ts", 1, "function util() {}")],
            [make_symbol("wrapper", "a.ts", 1, "function wrapper() { util(); }")],
            [make_symbol("top", "b.ts", 1, "function top() { wrapper(); }")],
        ])
        store = HybridRetrievalStore(graph=graph)
        store.index_files([make_file("c.ts", "const x = util();")])

        assert store.chunks[0].related_symbol_ids == ("u.ts:util:1", "a.ts:wrapper:1")

    def test_clear(self):
        store = HybridRetrievalStore()
        store.index_files([make_file("a.ts", "alpha")])
        store.clear()
        assert len(store) == 0
        assert store.similarity_search("alpha") == []


def test_format_results():
    store = HybridRetrievalStore()
    store.index_files([make_file("src/a.ts", "function foo() {}")])
    text = format_results(store.similarity_search("foo", k=1), "foo")
    assert "src/a.ts:1-1 (keyword)" in text
    assert "| function foo() {}" in text
    assert format_results([], "foo") == "No results found for 'foo'."
