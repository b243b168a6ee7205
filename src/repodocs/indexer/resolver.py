"""Knowledge graph resolution: global symbol table plus cross-file call edges.

Reference resolution is name based, not scope aware. An identifier in a
symbol body resolves to a declaration with the same name, preferring one in
the same file and otherwise taking the first declaration in scan order.
Same-named symbols in unrelated files can therefore be conflated.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from repodocs.models import Symbol, SymbolRelationships

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")


def symbol_id(file_path: str, name: str, line: int) -> str:
    """Stable id for a declaration: a pure function of its location and name."""
    return f"{file_path}:{name}:{line}"


@dataclass
class KnowledgeGraph:
    symbol_table: dict[str, Symbol] = field(default_factory=dict)
    name_index: dict[str, list[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.symbol_table)

    def __contains__(self, sid: object) -> bool:
        return sid in self.symbol_table

    def get(self, sid: str) -> Symbol | None:
        return self.symbol_table.get(sid)

    def candidates(self, name: str) -> list[str]:
        """All symbol ids declared under ``name``, in scan order."""
        return list(self.name_index.get(name, []))

    def lookup(self, name: str, from_file: str | None = None) -> str | None:
        """Resolve a bare name: same-file declaration wins, else first seen."""
        ids = self.name_index.get(name)
        if not ids:
            return None
        if from_file is not None:
            for sid in ids:
                if self.symbol_table[sid].file_path == from_file:
                    return sid
        return ids[0]

    def symbols_in_file(self, file_path: str) -> list[Symbol]:
        return [s for s in self.symbol_table.values() if s.file_path == file_path]

    def callers(self, sid: str) -> list[Symbol]:
        sym = self.symbol_table.get(sid)
        if sym is None:
            return []
        return [self.symbol_table[c] for c in sym.relationships.called_by]

    def callees(self, sid: str) -> list[Symbol]:
        sym = self.symbol_table.get(sid)
        if sym is None:
            return []
        return [self.symbol_table[c] for c in sym.relationships.calls]

    def usage_count(self, sid: str) -> int:
        sym = self.symbol_table.get(sid)
        return len(sym.relationships.references) if sym else 0

    def most_referenced(self, limit: int = 10) -> list[Symbol]:
        """Symbols with the most incoming references (ties keep scan order)."""
        ranked = sorted(
            self.symbol_table.values(),
            key=lambda s: len(s.relationships.references),
            reverse=True,
        )
        return [s for s in ranked[:limit] if s.relationships.references]

    def to_dict(self) -> dict:
        return {
            "symbol_table": {sid: s.to_dict() for sid, s in self.symbol_table.items()},
            "name_index": {name: list(ids) for name, ids in self.name_index.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> KnowledgeGraph:
        """Rebuild a graph from a snapshot, pruning any id not in the table."""
        table = {sid: Symbol.from_dict(s) for sid, s in data.get("symbol_table", {}).items()}
        for sym in table.values():
            rel = sym.relationships
            rel.calls = [i for i in rel.calls if i in table]
            rel.called_by = [i for i in rel.called_by if i in table]
            rel.references = [i for i in rel.references if i in table]
        index = {
            name: [i for i in ids if i in table]
            for name, ids in data.get("name_index", {}).items()
        }
        return cls(symbol_table=table, name_index={k: v for k, v in index.items() if v})


def _is_nested(owner: Symbol, target: Symbol) -> bool:
    """True if ``target`` is declared inside ``owner``'s own span."""
    return (
        owner.file_path == target.file_path
        and owner.line < target.line <= owner.end_line
    )


def resolve(symbol_lists: Iterable[Sequence[Symbol]]) -> KnowledgeGraph:
    """Build the knowledge graph from per-file symbol lists, in file scan order.

    Two passes: every symbol is registered before any reference is resolved,
    so forward references across files resolve. Input symbols are not
    modified; the graph holds fresh copies carrying ids and relationships.
    """
    graph = KnowledgeGraph()
    table = graph.symbol_table

    # Pass 1: ids and name index
    duplicates = 0
    for symbols in symbol_lists:
        for sym in symbols:
            sid = symbol_id(sym.file_path, sym.name, sym.line)
            if sid in table:
                duplicates += 1
                logger.warning("Duplicate symbol id %s; keeping first declaration", sid)
                continue
            table[sid] = replace(sym, id=sid, relationships=SymbolRelationships())
            graph.name_index.setdefault(sym.name, []).append(sid)

    # Pass 2: edges. Dicts keep first-occurrence order and dedupe.
    calls: dict[str, dict[str, None]] = {sid: {} for sid in table}
    incoming: dict[str, dict[str, None]] = {sid: {} for sid in table}

    for sid, sym in table.items():
        seen: set[str] = set()
        for ident in _IDENTIFIER_RE.findall(sym.body):
            if ident in seen:
                continue
            seen.add(ident)
            target = graph.lookup(ident, from_file=sym.file_path)
            if target is None or target == sid:
                continue
            if _is_nested(sym, table[target]):
                continue
            calls[sid][target] = None
            incoming[target][sid] = None

    for sid, sym in table.items():
        sym.relationships = SymbolRelationships(
            calls=list(calls[sid]),
            called_by=list(incoming[sid]),
            references=list(incoming[sid]),
        )

    edge_count = sum(len(c) for c in calls.values())
    logger.debug(
        "Resolved %d symbols, %d edges (%d duplicate ids dropped)",
        len(table), edge_count, duplicates,
    )
    return graph
