#!/usr/bin/env python3
"""CLI: Generate documentation for a local directory or a GitHub repository."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Ensure the package is importable when running as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from repodocs import config
from repodocs.exceptions import SourceError
from repodocs.generation.orchestrator import GenerationOptions, PhaseOrchestrator, RunState
from repodocs.github import GithubSource
from repodocs.indexer.scanner import LocalDirectorySource
from repodocs.llm.provider import create_provider
from repodocs.storage.session_store import MemorySessionStore, SqliteSessionStore

# (flag name, GenerationOptions field)
_PHASE_FLAGS = (
    ("per-file", "per_file"),
    ("root", "root_summary"),
    ("erd", "erd"),
    ("class-diagram", "class_diagram"),
    ("sequence", "sequence"),
    ("infra", "infra"),
    ("use-case", "use_case"),
    ("architecture", "architecture"),
    ("api", "api"),
    ("ops", "ops"),
)


def _printer():
    """on_update callback printing new log entries and progress changes."""
    seen = {"logs": 0, "percent": -1}

    def on_update(state: RunState) -> None:
        for entry in state.logs[seen["logs"]:]:
            print(f"  [{entry.level:<7}] {entry.message}")
        seen["logs"] = len(state.logs)
        if state.percent != seen["percent"]:
            seen["percent"] = state.percent
            print(f"  {state.percent:3d}% {state.phase.value}", file=sys.stderr)

    return on_update


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate documentation for a repository")
    source_group = parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--path", type=Path, help="Local directory to document")
    source_group.add_argument("--github", type=str, help="GitHub repository URL")
    parser.add_argument(
        "--out",
        type=Path,
        default=Path("DOCUMENTATION.md"),
        help="Where to write the generated Markdown (default: DOCUMENTATION.md)",
    )
    parser.add_argument(
        "--provider",
        choices=["gemini", "ollama"],
        default=None,
        help=f"LLM provider (default: {config.LLM_PROVIDER})",
    )
    parser.add_argument(
        "--persist",
        action="store_true",
        help=f"Save the session snapshot to {config.SESSION_DB_PATH}",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    defaults = GenerationOptions()
    for flag, field_name in _PHASE_FLAGS:
        parser.add_argument(
            f"--{flag}",
            dest=field_name,
            action=argparse.BooleanOptionalAction,
            default=getattr(defaults, field_name),
            help=f"Run the {flag} phase",
        )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        source = LocalDirectorySource(args.path) if args.path else GithubSource(args.github)
    except SourceError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    options = GenerationOptions(**{f: getattr(args, f) for _, f in _PHASE_FLAGS})
    session_store = SqliteSessionStore(config.SESSION_DB_PATH) if args.persist else MemorySessionStore()
    orchestrator = PhaseOrchestrator(
        provider=create_provider(args.provider),
        session_store=session_store,
        on_update=_printer(),
    )

    print(f"=== Documenting {source.name} ===")
    t0 = time.perf_counter()
    state = orchestrator.run(source, options)
    elapsed = time.perf_counter() - t0

    if state.status != "done":
        print(f"\nRun {state.status} after {elapsed:.1f}s.", file=sys.stderr)
        sys.exit(1)

    args.out.write_text(state.document, encoding="utf-8")
    print(f"\nDone in {elapsed:.1f}s. Wrote {args.out} ({len(state.document):,} chars).")
    if state.quality and state.quality["warnings"]:
        print("Quality warnings:")
        for warning in state.quality["warnings"]:
            print(f"  - {warning}")


if __name__ == "__main__":
    main()
