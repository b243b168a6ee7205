"""Question answering over an indexed repository.

Each question retrieves the top chunks from the run's retrieval store and
annotates them with what the knowledge graph knows about the symbols they
mention, then asks the completion service with the conversation so far.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from repodocs.generation.prompts import CHAT_SYSTEM_PROMPT
from repodocs.indexer.resolver import KnowledgeGraph
from repodocs.llm.provider import GenerationProvider
from repodocs.storage.retrieval_store import HybridRetrievalStore, SearchResult

logger = logging.getLogger(__name__)

TOP_K = 4
# Graph lines per retrieved chunk
MAX_RELATIONS = 3


@dataclass
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatReply:
    answer: str
    sources: list[str] = field(default_factory=list)


def graph_analysis(graph: KnowledgeGraph, symbol_ids: tuple[str, ...] | list[str]) -> str:
    """One line per related symbol: kind, outgoing call count and callers."""
    lines = []
    for sid in symbol_ids:
        sym = graph.get(sid)
        if sym is None:
            continue
        callers = ", ".join(c.name for c in graph.callers(sid)) or "None"
        lines.append(
            f"> Symbol: {sym.name} ({sym.kind}) | Calls: {len(sym.relationships.calls)} "
            f"| Used By: {callers}"
        )
        if len(lines) >= MAX_RELATIONS:
            break
    return "\n".join(lines)


class ChatSession:
    def __init__(
        self,
        provider: GenerationProvider,
        store: HybridRetrievalStore | None = None,
        graph: KnowledgeGraph | None = None,
        max_history: int = 20,
    ) -> None:
        self._provider = provider
        self._store = store
        self._graph = graph or KnowledgeGraph()
        self._max_history = max_history
        self._history: list[ChatMessage] = []
        self._lock = threading.Lock()

    @property
    def has_context(self) -> bool:
        return self._store is not None and len(self._store) > 0

    @property
    def history(self) -> list[ChatMessage]:
        with self._lock:
            return list(self._history)

    def clear(self) -> None:
        with self._lock:
            self._history = []

    def _context_block(self, results: list[SearchResult]) -> str:
        parts = []
        for r in results:
            text = f"SOURCE: {r.chunk.file_path}\n```\n{r.chunk.content}\n```"
            relations = graph_analysis(self._graph, r.chunk.related_symbol_ids)
            if relations:
                text += f"\n[Graph Analysis]\n{relations}"
            parts.append(text)
        if not parts:
            return ""
        return (
            "*** RETRIEVED SOURCE CODE & GRAPH CONTEXT ***\n"
            + "\n\n".join(parts)
            + "\n*** END SOURCE ***\n"
        )

    def _build_prompt(self, question: str, context: str) -> str:
        lines = []
        if context:
            lines.append("Use the following retrieved code and graph relationships to answer.")
            lines.append("The [Graph Analysis] lines show which symbols call which.\n")
            lines.append(context)
        else:
            lines.append("No repository context is available. Answer from general knowledge.\n")
        history = self.history[-self._max_history:]
        if history:
            lines.append("Conversation so far:")
            lines.extend(f"{m.role.upper()}: {m.content}" for m in history)
            lines.append("")
        lines.append(f"USER: {question}")
        return "\n".join(lines)

    def ask(self, question: str) -> ChatReply:
        """Answer ``question``. Provider errors propagate; history is unchanged then."""
        question = question.strip()
        if not question:
            raise ValueError("Question must not be empty")

        results: list[SearchResult] = []
        if self.has_context:
            results = self._store.similarity_search(question, k=TOP_K)
            logger.debug("Retrieved %d chunk(s) for chat", len(results))

        prompt = self._build_prompt(question, self._context_block(results))
        answer = self._provider.generate(prompt, system=CHAT_SYSTEM_PROMPT).strip()

        with self._lock:
            self._history.append(ChatMessage("user", question))
            self._history.append(ChatMessage("assistant", answer))
            del self._history[:-self._max_history]
        sources = list(dict.fromkeys(r.chunk.file_path for r in results))
        return ChatReply(answer=answer, sources=sources)
