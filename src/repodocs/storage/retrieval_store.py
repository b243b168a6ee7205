"""In-memory hybrid retrieval: embedding cosine similarity blended with keyword overlap."""

from __future__ import annotations

import logging
import math
import re
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from repodocs.indexer.chunker import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, TextWindow, split_text
from repodocs.indexer.resolver import KnowledgeGraph
from repodocs.llm.provider import EmbeddingProvider
from repodocs.models import SourceFile

logger = logging.getLogger(__name__)

VECTOR_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3

_TOKEN_RE = re.compile(r"[a-z0-9_]+")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")


def tokenize(text: str) -> frozenset[str]:
    """Lowercased alphanumeric/underscore runs longer than two characters."""
    return frozenset(t for t in _TOKEN_RE.findall(text.lower()) if len(t) > 2)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Dot product over the product of norms.

    Empty, mismatched or zero-magnitude vectors return ``0.0``.
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


@dataclass(frozen=True)
class Chunk:
    id: str  # "{file_path}-{chunk_index}"
    file_path: str
    chunk_index: int
    content: str
    start_line: int
    end_line: int
    related_symbol_ids: tuple[str, ...]
    tokens: frozenset[str]
    embedding: tuple[float, ...] | None = None


@dataclass
class SearchResult:
    chunk: Chunk
    score: float
    match_type: str  # "vector", "keyword", "hybrid" or "none"


def _match_type(vector_score: float, keyword_score: float) -> str:
    if vector_score > 0 and keyword_score > 0:
        return "hybrid"
    if vector_score > 0:
        return "vector"
    if keyword_score > 0:
        return "keyword"
    return "none"


class HybridRetrievalStore:
    """Chunk index for a single run.

    Holds every chunk of the run in memory together with an inverted index
    (token -> chunk ids). Embeddings come from ``embedder``; passing ``None``
    puts the store in keyword-only mode for its whole lifetime.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider | None = None,
        graph: KnowledgeGraph | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        max_workers: int = 1,
    ) -> None:
        self._embedder = embedder
        self._graph = graph or KnowledgeGraph()
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._max_workers = max(1, max_workers)
        self._chunks: list[Chunk] = []
        self._by_id: dict[str, Chunk] = {}
        self._inverted: dict[str, set[str]] = {}

    @property
    def embeddings_enabled(self) -> bool:
        return self._embedder is not None

    @property
    def chunks(self) -> list[Chunk]:
        return list(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        return self._by_id.get(chunk_id)

    def file_paths(self) -> set[str]:
        return {c.file_path for c in self._chunks}

    def clear(self) -> None:
        self._chunks = []
        self._by_id = {}
        self._inverted = {}

    # ── Indexing ──

    def _related_symbols(self, content: str) -> tuple[str, ...]:
        """Symbols named in the chunk, plus their direct callers (one hop)."""
        direct: dict[str, None] = {}
        for ident in _IDENTIFIER_RE.findall(content):
            for sid in self._graph.name_index.get(ident, ()):
                direct[sid] = None

        related = dict(direct)
        for sid in direct:
            sym = self._graph.get(sid)
            if sym is None:
                continue
            for caller in sym.relationships.called_by:
                related[caller] = None
        return tuple(related)

    def _embed_windows(
        self, path: str, windows: list[TextWindow]
    ) -> list[tuple[float, ...] | None]:
        if self._embedder is None or not windows:
            return [None] * len(windows)
        t0 = time.perf_counter()
        try:
            vectors = self._embedder.embed([w.text for w in windows])
        except Exception as e:
            logger.warning("Embedding failed for %s, keeping keyword-only chunks: %s", path, e)
            return [None] * len(windows)
        logger.debug("Embedded %d chunk(s) of %s in %.0fms",
                     len(windows), path, (time.perf_counter() - t0) * 1000)
        if len(vectors) != len(windows):
            logger.warning("Embedding count mismatch for %s (%d != %d)", path, len(vectors), len(windows))
            return [None] * len(windows)
        return [tuple(v) if v else None for v in vectors]

    def index_files(
        self,
        files: Sequence[SourceFile],
        on_progress: Callable[[dict], None] | None = None,
    ) -> int:
        """Chunk, tokenize, embed and index ``files`` in order.

        ``on_progress`` is called once per file, in file order. Returns the
        number of chunks added.
        """
        total = len(files)
        split = [
            (f, split_text(f.content, self._chunk_size, self._overlap))
            for f in files
        ]

        def embed(item: tuple[SourceFile, list[TextWindow]]):
            f, windows = item
            return self._embed_windows(f.path, windows)

        added = 0
        # executor.map yields in submission order, so chunk order and
        # progress order do not depend on which embedding finishes first.
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            for i, ((f, windows), vectors) in enumerate(zip(split, pool.map(embed, split)), 1):
                for window, vector in zip(windows, vectors):
                    self._add_chunk(f.path, window, vector)
                    added += 1
                if on_progress:
                    on_progress({
                        "step": "index", "current": i, "total": total,
                        "file": f.path, "chunks": len(windows),
                    })

        logger.info("Indexed %d chunks from %d files (embeddings %s)",
                    added, total, "on" if self.embeddings_enabled else "off")
        return added

    def _add_chunk(
        self, path: str, window: TextWindow, vector: tuple[float, ...] | None
    ) -> None:
        chunk = Chunk(
            id=f"{path}-{window.index}",
            file_path=path,
            chunk_index=window.index,
            content=window.text,
            start_line=window.start_line,
            end_line=window.end_line,
            related_symbol_ids=self._related_symbols(window.text),
            tokens=tokenize(window.text),
            embedding=vector,
        )
        self._chunks.append(chunk)
        self._by_id[chunk.id] = chunk
        for token in chunk.tokens:
            self._inverted.setdefault(token, set()).add(chunk.id)

    # ── Search ──

    def _embed_query(self, query: str) -> tuple[float, ...] | None:
        if self._embedder is None:
            return None
        try:
            vectors = self._embedder.embed([query])
        except Exception as e:
            logger.warning("Query embedding failed, using keyword scores only: %s", e)
            return None
        return tuple(vectors[0]) if vectors and vectors[0] else None

    def similarity_search(self, query: str, k: int = 4) -> list[SearchResult]:
        """Top-``k`` chunks by blended score, ties in insertion order."""
        if not self._chunks or k <= 0:
            return []

        query_tokens = tokenize(query)
        matched: dict[str, int] = {}
        for token in query_tokens:
            for cid in self._inverted.get(token, ()):
                matched[cid] = matched.get(cid, 0) + 1

        query_vec = self._embed_query(query)

        results: list[SearchResult] = []
        for chunk in self._chunks:
            vector_score = 0.0
            if query_vec is not None and chunk.embedding is not None:
                vector_score = cosine_similarity(query_vec, chunk.embedding)
            keyword_score = matched.get(chunk.id, 0) / len(query_tokens) if query_tokens else 0.0
            results.append(SearchResult(
                chunk=chunk,
                score=VECTOR_WEIGHT * vector_score + KEYWORD_WEIGHT * keyword_score,
                match_type=_match_type(vector_score, keyword_score),
            ))

        # list.sort is stable: equal scores keep insertion order
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:k]


def format_results(results: list[SearchResult], query: str) -> str:
    """Format search results for LLM consumption."""
    if not results:
        return f"No results found for '{query}'."

    lines = [f"Search results for '{query}' ({len(results)} result(s)):", ""]
    for i, r in enumerate(results, 1):
        c = r.chunk
        lines.append(f"  {i}. {c.file_path}:{c.start_line}-{c.end_line} ({r.match_type})")
        lines.append(f"     Score: {r.score:.4f}")
        preview = c.content.strip()
        if len(preview) > 300:
            preview = preview[:300] + "..."
        for pl in preview.splitlines()[:8]:
            lines.append(f"     | {pl}")
        lines.append("")
    return "\n".join(lines)
