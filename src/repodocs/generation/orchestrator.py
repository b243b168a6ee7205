"""Run the documentation pipeline phase by phase.

A run moves strictly forward through ``Phase``. Everything up to and
including indexing is required: a failure there ends the run in ``FAILED``.
The generation phases after indexing are independent; each one that fails
leaves a placeholder in its section and the run carries on.

Every state change goes through ``_commit``, which checks that the run is
still the current one. Starting a new run replaces the current run id, so
output arriving late from an older run raises ``RunSuperseded`` inside that
run and is dropped.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Callable, Protocol

from repodocs import config
from repodocs.exceptions import ConnectivityError, RunSuperseded, SourceError, UnusableResponseError
from repodocs.generation import prompts
from repodocs.generation.markdown import (
    SECTIONS,
    assemble_document,
    error_block,
    extract_json_block,
    extract_mermaid_code,
    file_section,
    normalize_use_case_diagram,
)
from repodocs.generation.quality import analyze_doc_quality
from repodocs.github import build_repo_intel
from repodocs.indexer.parser import SymbolExtractor, extract_file_facts
from repodocs.indexer.resolver import KnowledgeGraph, resolve
from repodocs.indexer.scanner import ScanResult, build_repo_summary, compute_language_stats, is_config_file
from repodocs.llm.provider import LLMProvider
from repodocs.models import LogEntry, SourceFile
from repodocs.storage.retrieval_store import HybridRetrievalStore
from repodocs.storage.session_store import SessionStore

logger = logging.getLogger(__name__)

# Longest slice of a single file sent to the model
MAX_PROMPT_FILE_CHARS = 20_000


class Phase(str, Enum):
    IDLE = "idle"
    CONNECTION_CHECK = "connection_check"
    SCAN = "scan"
    GRAPH_RESOLUTION = "graph_resolution"
    INDEXING = "indexing"
    PER_FILE_ANALYSIS = "per_file_analysis"
    ROOT_SUMMARY = "root_summary"
    ERD = "erd"
    CLASS_DIAGRAM = "class_diagram"
    SEQUENCE = "sequence"
    INFRA = "infra"
    USE_CASE = "use_case"
    ARCHITECTURE = "architecture"
    API = "api"
    OPS = "ops"
    QUALITY_CHECK = "quality_check"
    DONE = "done"
    FAILED = "failed"


# Generation phases after PER_FILE_ANALYSIS, in run order, with their section key
GENERATION_PHASES = (
    (Phase.ROOT_SUMMARY, "root"),
    (Phase.ERD, "erd"),
    (Phase.CLASS_DIAGRAM, "class"),
    (Phase.SEQUENCE, "sequence"),
    (Phase.INFRA, "infra"),
    (Phase.USE_CASE, "use_case"),
    (Phase.ARCHITECTURE, "architecture"),
    (Phase.API, "api"),
    (Phase.OPS, "ops"),
)

_SECTION_TITLES = dict(SECTIONS)


@dataclass
class GenerationOptions:
    """Which optional phases run. The rest of the pipeline always runs."""

    per_file: bool = True
    root_summary: bool = True
    erd: bool = True
    class_diagram: bool = True
    sequence: bool = True
    infra: bool = True
    use_case: bool = True
    architecture: bool = False
    api: bool = False
    ops: bool = False

    def enabled(self, phase: Phase) -> bool:
        name = "per_file" if phase == Phase.PER_FILE_ANALYSIS else phase.value
        return bool(getattr(self, name, False))

    @classmethod
    def from_dict(cls, data: dict) -> GenerationOptions:
        known = {k: bool(v) for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class RunState:
    run_id: str = ""
    phase: Phase = Phase.IDLE
    status: str = "idle"  # idle, running, done, failed
    percent: int = 0
    logs: list[LogEntry] = field(default_factory=list)
    document: str = ""
    has_context: bool = False
    quality: dict | None = None
    language_stats: list[dict] = field(default_factory=list)
    repo_summary: dict = field(default_factory=dict)
    repo_intel: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "phase": self.phase.value,
            "status": self.status,
            "percent": self.percent,
            "logs": [e.to_dict() for e in self.logs],
            "document": self.document,
            "has_context": self.has_context,
            "quality": self.quality,
            "language_stats": self.language_stats,
            "repo_summary": self.repo_summary,
            "repo_intel": self.repo_intel,
        }


class RepositorySource(Protocol):
    name: str

    def fetch(self) -> ScanResult:
        ...


@dataclass
class _RunContext:
    """Working data of one run. Never shared with another run."""

    run_id: str
    title: str
    options: GenerationOptions
    scan: ScanResult | None = None
    files: list[SourceFile] = field(default_factory=list)
    graph: KnowledgeGraph | None = None
    store: HybridRetrievalStore | None = None
    sections: dict[str, str] = field(default_factory=dict)
    file_summaries: list[str] = field(default_factory=list)
    document: str = ""
    language_stats: list[dict] = field(default_factory=list)


class PhaseOrchestrator:
    """Sequences one documentation run at a time over a repository source.

    Args:
        provider: Completion and embedding service with availability checks.
        session_store: Where the snapshot is saved at each phase boundary.
        on_update: Called with a copy of the run state after every change.
    """

    def __init__(
        self,
        provider: LLMProvider,
        session_store: SessionStore | None = None,
        on_update: Callable[[RunState], None] | None = None,
        extractor: SymbolExtractor | None = None,
        chunk_size: int | None = None,
        overlap: int | None = None,
        embed_concurrency: int | None = None,
    ) -> None:
        self._provider = provider
        self._session_store = session_store
        self._on_update = on_update
        self._extractor = extractor or SymbolExtractor()
        self._chunk_size = chunk_size or config.CHUNK_SIZE
        self._overlap = overlap if overlap is not None else config.CHUNK_OVERLAP
        self._embed_concurrency = embed_concurrency or config.EMBED_CONCURRENCY

        self._lock = threading.Lock()
        self._run_id: str | None = None
        self._state = RunState()
        self._graph = KnowledgeGraph()
        self._store: HybridRetrievalStore | None = None

    # ── Read side ──

    @property
    def state(self) -> RunState:
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def current_run_id(self) -> str | None:
        with self._lock:
            return self._run_id

    @property
    def knowledge_graph(self) -> KnowledgeGraph:
        with self._lock:
            return self._graph

    @property
    def retrieval_store(self) -> HybridRetrievalStore | None:
        with self._lock:
            return self._store

    @property
    def has_context(self) -> bool:
        with self._lock:
            return self._state.has_context and self._store is not None

    # ── State changes ──

    def _snapshot_payload(self) -> dict:
        s = self._state
        return {
            "run_id": s.run_id,
            "phase": s.phase.value,
            "status": s.status,
            "percent": s.percent,
            "logs": [e.to_dict() for e in s.logs],
            "generated_document": s.document,
            "language_stats": s.language_stats,
            "repo_summary": s.repo_summary,
            "repo_intel": s.repo_intel,
            "knowledge_graph": self._graph.to_dict(),
        }

    def _commit(
        self,
        run_id: str,
        update: Callable[[RunState], None],
        persist: bool = False,
    ) -> None:
        with self._lock:
            if run_id != self._run_id:
                raise RunSuperseded(run_id)
            update(self._state)
            if persist and self._session_store is not None:
                self._session_store.save(self._snapshot_payload())
            snapshot = copy.deepcopy(self._state)
        if self._on_update:
            self._on_update(snapshot)

    def _log(self, ctx: _RunContext, message: str, level: str = "info") -> None:
        log_fn = logger.warning if level in ("warning", "error") else logger.info
        log_fn("[%s] %s", ctx.run_id[:8], message)
        entry = LogEntry.now(message, level)
        self._commit(ctx.run_id, lambda s: s.logs.append(entry))

    def _progress(self, ctx: _RunContext, percent: float) -> None:
        def update(s: RunState) -> None:
            s.percent = max(s.percent, min(100, int(percent)))
        self._commit(ctx.run_id, update)

    def _enter(self, ctx: _RunContext, phase: Phase, percent: float) -> None:
        def update(s: RunState) -> None:
            s.phase = phase
            s.percent = max(s.percent, min(100, int(percent)))
        self._commit(ctx.run_id, update)

    def _publish_document(self, ctx: _RunContext, persist: bool = False) -> None:
        document = assemble_document(
            ctx.title,
            ctx.sections,
            language_stats=ctx.language_stats,
            model=getattr(self._provider, "model_name", None),
            generated_on=date.today().isoformat(),
        )

        ctx.document = document

        def update(s: RunState) -> None:
            s.document = document
        self._commit(ctx.run_id, update, persist=persist)

    def _fail(self, ctx: _RunContext, message: str) -> None:
        entry = LogEntry.now(message, "error")
        logger.error("[%s] %s", ctx.run_id[:8], message)

        def update(s: RunState) -> None:
            s.logs.append(entry)
            s.phase = Phase.FAILED
            s.status = "failed"
            s.has_context = False
            self._store = None
        try:
            self._commit(ctx.run_id, update, persist=True)
        except RunSuperseded:
            raise
        except Exception:
            logger.exception("Could not persist failed state of run %s", ctx.run_id[:8])
            # update was applied before the save raised; publish it unpersisted
            self._commit(ctx.run_id, lambda s: None)

    # ── Run ──

    def supersede(self) -> None:
        """Invalidate the current run; its remaining output is discarded."""
        with self._lock:
            self._run_id = None

    def run(
        self,
        source: RepositorySource,
        options: GenerationOptions | None = None,
        run_id: str | None = None,
    ) -> RunState:
        """Execute a full run over ``source`` and return its final state.

        If another run starts while this one is in flight, this one stops at
        its next state change and the returned state is the newer run's.
        """
        run_id = run_id or uuid.uuid4().hex
        ctx = _RunContext(
            run_id=run_id,
            title=f"{source.name} Documentation",
            options=options or GenerationOptions(),
        )
        with self._lock:
            self._run_id = run_id
            self._state = RunState(run_id=run_id, status="running")
            self._graph = KnowledgeGraph()
            self._store = None
            if self._session_store is not None:
                self._session_store.clear()

        t0 = time.perf_counter()
        try:
            if self._prepare(ctx, source):
                try:
                    self._generate(ctx)
                except RunSuperseded:
                    raise
                except Exception as e:
                    logger.exception("Run %s failed during generation", run_id[:8])
                    self._fail(ctx, f"Run aborted: {e}")
        except RunSuperseded:
            logger.info("Run %s superseded, discarding its output", run_id[:8])
        logger.info("Run %s finished in %.1fs", run_id[:8], time.perf_counter() - t0)
        return self.state

    def _prepare(self, ctx: _RunContext, source: RepositorySource) -> bool:
        """Connection check through indexing. False if the run failed."""
        try:
            self._check_connection(ctx)
            self._scan(ctx, source)
            self._resolve_graph(ctx)
            self._index(ctx)
        except RunSuperseded:
            raise
        except Exception as e:
            logger.exception("Run %s failed before indexing completed", ctx.run_id[:8])
            self._fail(ctx, f"Run aborted: {e}")
            return False
        return True

    def _check_connection(self, ctx: _RunContext) -> None:
        self._enter(ctx, Phase.CONNECTION_CHECK, 0)
        self._log(ctx, "Checking connection to the language model...")
        if not self._provider.check_connection():
            raise ConnectivityError("Language model endpoint is unreachable")
        self._log(ctx, "Language model is reachable", "success")
        self._progress(ctx, 2)

    def _scan(self, ctx: _RunContext, source: RepositorySource) -> None:
        self._enter(ctx, Phase.SCAN, 2)
        self._log(ctx, f"Reading {source.name}...")
        scan = source.fetch()
        if not scan.files:
            raise SourceError(f"No supported source files found in {source.name}")
        if scan.skipped:
            self._log(ctx, f"{scan.skipped} file(s) listed but not loaded (size or count limit)", "warning")
        if scan.failed:
            self._log(ctx, f"{scan.failed} file(s) could not be read and were skipped", "warning")

        t0 = time.perf_counter()
        ctx.files = [
            replace(
                f,
                symbols=self._extractor.extract(f.content, f.path),
                facts=extract_file_facts(f.content, f.path),
            )
            for f in scan.files
        ]
        logger.debug("Extracted symbols from %d files in %.0fms",
                     len(ctx.files), (time.perf_counter() - t0) * 1000)
        ctx.scan = scan
        ctx.language_stats = compute_language_stats(ctx.files)
        summary = build_repo_summary(source.name, scan, ctx.language_stats)
        commits = getattr(source, "commits", None) or []
        intel = build_repo_intel(commits) if commits else {}
        for path in scan.config_contents:
            self._log(ctx, f"Found configuration file: {path}", "success")

        def update(s: RunState) -> None:
            s.language_stats = ctx.language_stats
            s.repo_summary = summary
            s.repo_intel = intel
            s.percent = max(s.percent, 6)
        self._commit(ctx.run_id, update, persist=True)
        self._log(ctx, f"Loaded {len(ctx.files)} of {len(scan.file_tree)} listed files")

    def _resolve_graph(self, ctx: _RunContext) -> None:
        self._enter(ctx, Phase.GRAPH_RESOLUTION, 6)
        graph = resolve(f.symbols for f in ctx.files)
        ctx.graph = graph
        edges = sum(len(s.relationships.calls) for s in graph.symbol_table.values())

        def update(s: RunState) -> None:
            self._graph = graph
            s.percent = max(s.percent, 10)
        self._commit(ctx.run_id, update, persist=True)
        self._log(ctx, f"Knowledge graph: {len(graph)} symbols, {edges} references", "success")

    def _index(self, ctx: _RunContext) -> None:
        self._enter(ctx, Phase.INDEXING, 10)
        try:
            embeddings = self._provider.embeddings_available()
        except Exception as e:
            logger.warning("Embedding check raised: %s", e)
            embeddings = False
        if not embeddings:
            self._log(ctx, "Embeddings unavailable; retrieval uses keyword matching only", "warning")

        store = HybridRetrievalStore(
            embedder=self._provider if embeddings else None,
            graph=ctx.graph,
            chunk_size=self._chunk_size,
            overlap=self._overlap,
            max_workers=self._embed_concurrency,
        )

        def on_progress(event: dict) -> None:
            self._progress(ctx, 10 + 20 * event["current"] / max(event["total"], 1))

        count = store.index_files(ctx.files, on_progress=on_progress)
        ctx.store = store

        def update(s: RunState) -> None:
            self._store = store
            s.has_context = True
            s.percent = max(s.percent, 30)
        self._commit(ctx.run_id, update, persist=True)
        self._log(ctx, f"Indexed {count} chunks. Chat is ready.", "success")

    # ── Generation phases ──

    def _generate(self, ctx: _RunContext) -> None:
        self._publish_document(ctx)
        if ctx.options.per_file:
            self._enter(ctx, Phase.PER_FILE_ANALYSIS, 30)
            self._analyze_files(ctx)
            self._commit(ctx.run_id, lambda s: None, persist=True)
        self._progress(ctx, 80)

        handlers = {
            Phase.ROOT_SUMMARY: self._root_summary,
            Phase.ERD: self._erd,
            Phase.CLASS_DIAGRAM: self._class_diagram,
            Phase.SEQUENCE: self._sequence,
            Phase.INFRA: self._infra,
            Phase.USE_CASE: self._use_case,
            Phase.ARCHITECTURE: self._architecture,
            Phase.API: self._api,
            Phase.OPS: self._ops,
        }
        enabled = [(p, key) for p, key in GENERATION_PHASES if ctx.options.enabled(p)]
        for i, (phase, key) in enumerate(enabled, 1):
            self._enter(ctx, phase, 80 + 18 * (i - 1) / len(enabled))
            self._log(ctx, f"Generating {_SECTION_TITLES[key]}...")
            t0 = time.perf_counter()
            try:
                ctx.sections[key] = handlers[phase](ctx)
            except RunSuperseded:
                raise
            except Exception as e:
                logger.warning("Phase %s failed: %s", phase.value, e)
                ctx.sections[key] = error_block(_SECTION_TITLES[key], str(e) or type(e).__name__)
                self._log(ctx, f"{_SECTION_TITLES[key]} failed: {e}", "warning")
            else:
                logger.debug("Phase %s done in %.1fs", phase.value, time.perf_counter() - t0)
            self._publish_document(ctx, persist=True)
            self._progress(ctx, 80 + 18 * i / len(enabled))

        self._quality_check(ctx)

    def _ask(self, prompt: str, system: str) -> str:
        text = self._provider.generate(prompt, system=system)
        if not text or not text.strip():
            raise UnusableResponseError("The model returned an empty response")
        return text

    def _ask_diagram(self, prompt: str, system: str) -> str:
        diagram = extract_mermaid_code(self._ask(prompt + prompts.STRICT_MERMAID_SUFFIX, system))
        if diagram is None:
            raise UnusableResponseError("The response contained no Mermaid diagram")
        return diagram

    def _file_facts_text(self, ctx: _RunContext, f: SourceFile) -> str:
        classes = [s.name for s in f.symbols if s.kind in ("class", "interface")]
        functions = [s.name for s in f.symbols if s.kind in ("function", "method")]
        lines = []
        if classes:
            lines.append(f"Classes found: {', '.join(classes)}")
        if functions:
            lines.append(f"Functions/Methods found: {', '.join(functions)}")
        facts = f.facts
        if facts is not None:
            if facts.has_api_pattern:
                lines.append("Potentially contains API endpoints")
            if facts.is_db_schema:
                lines.append("Contains a database schema definition")
            if facts.is_infra:
                lines.append("Infrastructure configuration file")
        graph = ctx.graph or KnowledgeGraph()
        for sym in f.symbols:
            sid = graph.lookup(sym.name, from_file=f.path)
            used = graph.usage_count(sid) if sid else 0
            if used:
                lines.append(f"`{sym.name}` is used {used} time(s) across the project")
        return "\n".join(lines)

    def _analyze_files(self, ctx: _RunContext) -> None:
        total = len(ctx.files)
        self._log(ctx, f"Analyzing {total} file(s)...")
        code_parts: list[str] = []
        for i, f in enumerate(ctx.files, 1):
            facts = self._file_facts_text(ctx, f)
            prompt = (
                f"File Path: {f.path}\n\nFACTS (detected by parser):\n{facts}\n\n"
                f"Code Content:\n```\n{f.content[:MAX_PROMPT_FILE_CHARS]}\n```"
            )
            try:
                raw = self._ask(prompt, prompts.FILE_SYSTEM_PROMPT)
            except RunSuperseded:
                raise
            except Exception as e:
                logger.warning("Analysis of %s failed: %s", f.path, e)
                self._log(ctx, f"Analysis of {f.path} failed: {e}", "warning")
                code_parts.append(file_section(f.path, f.line_count, error_block("Analysis", str(e))))
            else:
                display, _, summary = raw.partition(prompts.SUMMARY_MARKER)
                summary = summary.strip() or "No summary provided."
                meta = json.dumps(f.facts.to_dict()) if f.facts else "{}"
                ctx.file_summaries.append(
                    f"File: {f.path}\nSummary: {summary}\nDetected Metadata: {meta}\n"
                )
                code_parts.append(file_section(f.path, f.line_count, display.strip().rstrip("-").strip()))
            ctx.sections["code"] = "\n".join(code_parts)
            self._publish_document(ctx)
            self._progress(ctx, 30 + 50 * i / total)

    def _key_symbols_text(self, ctx: _RunContext, limit: int = 25) -> str:
        graph = ctx.graph or KnowledgeGraph()
        lines = [
            f"- {s.name} ({s.kind}, {s.file_path}:{s.line}) used {len(s.relationships.references)} time(s)"
            for s in graph.most_referenced(limit)
        ]
        return "\n".join(lines) or "(none)"

    def _reduced_context(self, ctx: _RunContext) -> str:
        scan = ctx.scan or ScanResult()
        configs = "".join(
            f"\n--- {path} ---\n{content[:MAX_PROMPT_FILE_CHARS]}\n"
            for path, content in scan.config_contents.items()
        )
        summaries = "\n----------------\n".join(ctx.file_summaries) or "(per-file analysis disabled)"
        return (
            "CONTEXT FOR ARCHITECTURE & ROOT DOCS:\n"
            f"Project File Tree:\n{scan.file_tree_text}\n\n"
            f"Configuration Files:\n{configs}\n\n"
            f"Most Referenced Symbols:\n{self._key_symbols_text(ctx)}\n\n"
            f"File Technical Summaries:\n{summaries}\n"
        )

    def _retrieved_context(self, ctx: _RunContext, query: str, k: int = 4) -> str:
        if ctx.store is None:
            return ""
        results = ctx.store.similarity_search(query, k=k)
        return "\n\n".join(
            f"File: {r.chunk.file_path} (lines {r.chunk.start_line}-{r.chunk.end_line})\n{r.chunk.content}"
            for r in results
        )

    def _files_text(self, files: list[SourceFile]) -> str:
        return "\n\n".join(
            f"File: {f.path}\nContent:\n{f.content[:MAX_PROMPT_FILE_CHARS]}" for f in files
        )

    def _root_summary(self, ctx: _RunContext) -> str:
        return self._ask(self._reduced_context(ctx), prompts.ROOT_SYSTEM_PROMPT).strip()

    def _architecture(self, ctx: _RunContext) -> str:
        return self._ask(self._reduced_context(ctx), prompts.ARCHITECTURE_SYSTEM_PROMPT).strip()

    def _erd(self, ctx: _RunContext) -> str:
        schema_files = [
            f for f in ctx.files
            if (f.facts and f.facts.is_db_schema)
            or any(word in f.path.lower() for word in ("entity", "model", "schema"))
        ]
        if schema_files:
            context = self._files_text(schema_files)
        else:
            related = [s for s in ctx.file_summaries if "database" in s.lower() or "model" in s.lower()]
            context = (
                "No explicit schema files found. Infer the schema from these summaries "
                "and code excerpts:\n" + "\n".join(related) + "\n\n"
                + self._retrieved_context(ctx, "database schema model entity table column")
            )
        return self._ask_diagram(context, prompts.ERD_SYSTEM_PROMPT)

    def _class_diagram(self, ctx: _RunContext) -> str:
        graph = ctx.graph or KnowledgeGraph()
        lines = []
        for sym in graph.symbol_table.values():
            if sym.kind not in ("class", "interface"):
                continue
            uses = sorted({
                t.name for t in graph.callees(sym.id) if t.kind in ("class", "interface", "type", "enum")
            })
            line = f"- {sym.kind} {sym.name} ({sym.file_path})"
            if uses:
                line += f" uses: {', '.join(uses)}"
            lines.append(line)
        if not lines:
            raise UnusableResponseError("No classes or interfaces were found")
        context = "List of detected classes and their relationships:\n" + "\n".join(lines)
        return self._ask_diagram(context, prompts.CLASS_SYSTEM_PROMPT)

    def _sequence(self, ctx: _RunContext) -> str:
        context = self._reduced_context(ctx)
        excerpts = self._retrieved_context(ctx, "main entry point request handler route service call")
        if excerpts:
            context += f"\nRelevant Code Excerpts:\n{excerpts}\n"
        return self._ask_diagram(context, prompts.SEQUENCE_SYSTEM_PROMPT)

    def _infra(self, ctx: _RunContext) -> str:
        infra_files = [f for f in ctx.files if (f.facts and f.facts.is_infra) or is_config_file(f.path)]
        context = self._files_text(infra_files) if infra_files else self._reduced_context(ctx)
        return self._ask_diagram(context, prompts.INFRA_SYSTEM_PROMPT)

    def _use_case(self, ctx: _RunContext) -> str:
        diagram = self._ask_diagram(self._reduced_context(ctx), prompts.USE_CASE_SYSTEM_PROMPT)
        return normalize_use_case_diagram(diagram)

    def _api(self, ctx: _RunContext) -> str:
        api_files = [
            f for f in ctx.files
            if (f.facts and f.facts.has_api_pattern)
            or "routes" in f.path or "controller" in f.path
        ]
        if not api_files:
            return "> No API patterns (REST routes or controllers) were found in the project."
        context = "\n\n".join(
            f"File: {f.path}\n"
            f"Extracted Endpoints: {', '.join(f.facts.api_endpoints) if f.facts else ''}\n"
            f"Content:\n{f.content[:MAX_PROMPT_FILE_CHARS]}"
            for f in api_files
        )
        response = self._ask(context, prompts.API_SYSTEM_PROMPT)
        spec = extract_json_block(response)
        if spec is None:
            return response.strip()
        return (
            f"```json\n{spec}\n```\n\n"
            "_Paste the block above into [Swagger Editor](https://editor.swagger.io) to browse it._"
        )

    def _ops(self, ctx: _RunContext) -> str:
        scan = ctx.scan or ScanResult()
        if not scan.config_contents:
            return "> No configuration files were found, so no runbook could be derived."
        configs = "\n".join(
            f"\n--- {path} ---\n{content[:MAX_PROMPT_FILE_CHARS]}\n"
            for path, content in scan.config_contents.items()
        )
        return self._ask(f"Config Files:\n{configs}", prompts.OPS_SYSTEM_PROMPT).strip()

    def _quality_check(self, ctx: _RunContext) -> None:
        self._enter(ctx, Phase.QUALITY_CHECK, 98)
        quality = analyze_doc_quality(ctx.document)
        for warning in quality.warnings:
            self._log(ctx, f"Quality check: {warning}", "warning")
        self._log(ctx, "All phases completed", "success")

        def update(s: RunState) -> None:
            s.quality = quality.to_dict()
            s.phase = Phase.DONE
            s.status = "done"
            s.percent = 100
        self._commit(ctx.run_id, update, persist=True)
