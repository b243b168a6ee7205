"""Core records shared by the indexer, the retrieval store and the orchestrator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class SymbolRelationships:
    calls: list[str] = field(default_factory=list)
    called_by: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "calls": list(self.calls),
            "called_by": list(self.called_by),
            "references": list(self.references),
        }


@dataclass
class Symbol:
    name: str
    kind: str
    file_path: str
    line: int
    end_line: int
    complexity: int = 1
    code_snippet: str = ""
    # Full declaration text; scanned by the resolver, never persisted.
    body: str = field(default="", repr=False)
    id: str = ""
    relationships: SymbolRelationships = field(default_factory=SymbolRelationships)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "file_path": self.file_path,
            "line": self.line,
            "end_line": self.end_line,
            "complexity": self.complexity,
            "code_snippet": self.code_snippet,
            "relationships": self.relationships.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Symbol:
        rel = data.get("relationships") or {}
        return cls(
            id=data["id"],
            name=data["name"],
            kind=data["kind"],
            file_path=data["file_path"],
            line=data["line"],
            end_line=data.get("end_line", data["line"]),
            complexity=data.get("complexity", 1),
            code_snippet=data.get("code_snippet", ""),
            relationships=SymbolRelationships(
                calls=list(rel.get("calls", [])),
                called_by=list(rel.get("called_by", [])),
                references=list(rel.get("references", [])),
            ),
        )


@dataclass(frozen=True)
class FileFacts:
    """Heuristic per-file metadata used to pick context for generation phases."""

    language: str
    imports: tuple[str, ...] = ()
    api_endpoints: tuple[str, ...] = ()
    has_api_pattern: bool = False
    is_db_schema: bool = False
    is_infra: bool = False

    def to_dict(self) -> dict:
        return {
            "language": self.language,
            "imports": list(self.imports),
            "api_endpoints": list(self.api_endpoints),
            "has_api_pattern": self.has_api_pattern,
            "is_db_schema": self.is_db_schema,
            "is_infra": self.is_infra,
        }


@dataclass
class SourceFile:
    path: str
    content: str
    size_bytes: int
    line_count: int
    symbols: list[Symbol] = field(default_factory=list)
    facts: FileFacts | None = None

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lower()


def count_lines(content: str) -> int:
    """Count lines the way editors do: CRLF, CR and LF all end a line."""
    return len(content.replace("\r\n", "\n").replace("\r", "\n").split("\n"))


LOG_LEVELS = ("info", "success", "warning", "error")


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    message: str

    @classmethod
    def now(cls, message: str, level: str = "info") -> LogEntry:
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level!r}")
        return cls(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            level=level,
            message=message,
        )

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "level": self.level, "message": self.message}
