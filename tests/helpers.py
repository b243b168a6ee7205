"""Shared test helpers: fake providers and in-memory repository sources."""

from __future__ import annotations

from unittest.mock import MagicMock

from repodocs.generation import prompts
from repodocs.indexer.scanner import ScanResult, scan_entries
from repodocs.models import Symbol, SourceFile, count_lines

SAMPLE_FILES = {
    "src/a.ts": "export function foo() {\n  return 1;\n}\n",
    "src/b.ts": (
        "import { foo } from './a';\n"
        "\n"
        "export class Service {\n"
        "  run() {\n"
        "    return foo();\n"
        "  }\n"
        "}\n"
    ),
    "src/db/schema.sql": "CREATE TABLE users (id INT PRIMARY KEY, name TEXT);\n",
    "package.json": '{"name": "demo", "scripts": {"start": "node index.js"}}\n',
}

DEFAULT_RESPONSES = {
    prompts.FILE_SYSTEM_PROMPT: (
        "**Purpose:**\nDoes one thing well.\n\n---\n"
        f"{prompts.SUMMARY_MARKER}\nExports helpers used by the service."
    ),
    prompts.ROOT_SYSTEM_PROMPT: "Demo is a small project.\n\n### Features\n- one",
    prompts.ERD_SYSTEM_PROMPT: "```mermaid\nerDiagram\n    USER ||--o{ POST : writes\n```",
    prompts.CLASS_SYSTEM_PROMPT: "```mermaid\nclassDiagram\n    class Service\n```",
    prompts.SEQUENCE_SYSTEM_PROMPT: '```mermaid\nsequenceDiagram\n    User->>Service: "run"\n```',
    prompts.INFRA_SYSTEM_PROMPT: '```mermaid\nflowchart TD\n    App["App"] --> DB[("DB")]\n```',
    prompts.USE_CASE_SYSTEM_PROMPT: (
        "```mermaid\nusecaseDiagram\n    actor User\n    usecase (Run service)\n"
        "    User --> (Run service)\n```"
    ),
    prompts.ARCHITECTURE_SYSTEM_PROMPT: "A layered design.",
    prompts.API_SYSTEM_PROMPT: '```json\n{"openapi": "3.0.0"}\n```',
    prompts.OPS_SYSTEM_PROMPT: "Run `npm start`.",
    prompts.CHAT_SYSTEM_PROMPT: "It returns 1.",
}


def make_provider(
    responses: dict | None = None,
    connected: bool = True,
    embeddings: bool = False,
) -> MagicMock:
    """A provider mock answering ``generate`` by system prompt.

    A response value may be an exception instance (raised) or a callable
    taking ``(prompt)`` (called).
    """
    table = dict(DEFAULT_RESPONSES)
    table.update(responses or {})

    def generate(prompt, system=None):
        value = table.get(system, "")
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(prompt)
        return value

    provider = MagicMock()
    provider.model_name = "fake-model"
    provider.check_connection.return_value = connected
    provider.embeddings_available.return_value = embeddings
    provider.generate.side_effect = generate
    provider.embed.side_effect = lambda texts: [keyword_vector(t) for t in texts]
    return provider


VOCAB = ("foo", "service", "users", "run", "demo")


def keyword_vector(text: str) -> list[float]:
    """Deterministic bag-of-words embedding over a tiny vocabulary."""
    lowered = text.lower()
    return [float(lowered.count(word)) for word in VOCAB]


class StaticSource:
    """Repository source over an in-memory ``{path: content}`` mapping."""

    def __init__(self, files: dict[str, str] | None = None, name: str = "demo", commits=None) -> None:
        self.name = name
        self._files = dict(SAMPLE_FILES if files is None else files)
        self.commits = list(commits or [])
        self.fetch_count = 0

    def fetch(self) -> ScanResult:
        self.fetch_count += 1
        return scan_entries(
            (path, content, len(content.encode("utf-8")))
            for path, content in self._files.items()
        )


def make_file(path: str, content: str) -> SourceFile:
    return SourceFile(
        path=path,
        content=content,
        size_bytes=len(content),
        line_count=count_lines(content),
    )


def make_symbol(name: str, file_path: str, line: int, body: str = "", kind: str = "function",
                end_line: int | None = None) -> Symbol:
    return Symbol(
        name=name,
        kind=kind,
        file_path=file_path,
        line=line,
        end_line=end_line if end_line is not None else line + max(body.count("\n"), 0),
        body=body,
    )
