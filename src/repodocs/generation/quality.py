"""Lightweight structural checks on a generated document."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_HEADING_RE = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)
_TODO_RE = re.compile(r"\bTODO\b|\bFIXME\b", re.IGNORECASE)
_FENCE_RE = re.compile(r"```.*?```", re.DOTALL)


@dataclass
class DocQuality:
    heading_count: int = 0
    duplicate_headings: list[str] = field(default_factory=list)
    todo_count: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "heading_count": self.heading_count,
            "duplicate_headings": list(self.duplicate_headings),
            "todo_count": self.todo_count,
            "warnings": list(self.warnings),
        }


def analyze_doc_quality(doc: str) -> DocQuality:
    # Lines starting with "#" inside code fences are not headings
    prose = _FENCE_RE.sub("", doc)
    headings = [h.strip() for h in _HEADING_RE.findall(prose)]

    seen: set[str] = set()
    duplicates: dict[str, None] = {}
    for heading in headings:
        if heading in seen:
            duplicates[heading] = None
        seen.add(heading)

    todo_count = len(_TODO_RE.findall(doc))

    warnings = []
    if duplicates:
        warnings.append(f"Duplicate headings: {', '.join(duplicates)}")
    if todo_count:
        warnings.append(f"TODO/FIXME markers: {todo_count}")

    return DocQuality(
        heading_count=len(headings),
        duplicate_headings=list(duplicates),
        todo_count=todo_count,
        warnings=warnings,
    )
