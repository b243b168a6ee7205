"""API router: runs, tasks, SSE progress, session, search, chat, symbols."""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from repodocs import config
from repodocs.api.task_manager import TERMINAL_STATUSES, TaskManager
from repodocs.chat import ChatSession
from repodocs.exceptions import SourceError
from repodocs.generation.orchestrator import GenerationOptions, PhaseOrchestrator, RunState
from repodocs.github import GithubSource
from repodocs.indexer.scanner import LocalDirectorySource
from repodocs.llm.provider import create_provider
from repodocs.storage.session_store import SqliteSessionStore

logger = logging.getLogger(__name__)

router = APIRouter()
_task_manager = TaskManager()

_init_lock = threading.Lock()
_orchestrator: PhaseOrchestrator | None = None
_chat: ChatSession | None = None
_chat_store_id: int | None = None


def _on_update(state: RunState) -> None:
    event = {"phase": state.phase.value, "percent": state.percent, "status": state.status}
    if state.logs:
        last = state.logs[-1]
        event["log"] = {"level": last.level, "message": last.message}
    _task_manager.push_progress(state.run_id, event)


def _get_orchestrator() -> PhaseOrchestrator:
    global _orchestrator
    with _init_lock:
        if _orchestrator is None:
            logger.info("Initializing orchestrator with %s provider...", config.LLM_PROVIDER)
            t0 = time.perf_counter()
            _orchestrator = PhaseOrchestrator(
                provider=create_provider(),
                session_store=SqliteSessionStore(config.SESSION_DB_PATH),
                on_update=_on_update,
            )
            logger.info("Orchestrator ready (%.2fs)", time.perf_counter() - t0)
        return _orchestrator


def _get_session_store() -> SqliteSessionStore:
    return SqliteSessionStore(config.SESSION_DB_PATH)


def _get_chat() -> ChatSession:
    """Chat bound to the current run's retrieval store; reset when it changes."""
    global _chat, _chat_store_id
    orch = _get_orchestrator()
    store = orch.retrieval_store if orch.has_context else None
    with _init_lock:
        if _chat is None or _chat_store_id != id(store):
            _chat = ChatSession(
                provider=create_provider(),
                store=store,
                graph=orch.knowledge_graph,
            )
            _chat_store_id = id(store)
        return _chat


# ── Health ──


@router.get("/health")
def health():
    return {"status": "ok", "provider": config.LLM_PROVIDER}


# ── Runs ──


class RunRequest(BaseModel):
    path: str | None = None
    github_url: str | None = None
    options: dict[str, bool] = {}


@router.post("/runs")
def start_run(req: RunRequest):
    """Start a documentation run. A running one is superseded."""
    if bool(req.path) == bool(req.github_url):
        raise HTTPException(status_code=400, detail="Give exactly one of 'path' or 'github_url'")

    if req.path:
        root = Path(req.path)
        if not root.is_dir():
            raise HTTPException(status_code=400, detail=f"Not a directory: {req.path}")
        source = LocalDirectorySource(root)
    else:
        try:
            source = GithubSource(req.github_url)
        except SourceError as e:
            raise HTTPException(status_code=400, detail=str(e))

    options = GenerationOptions.from_dict(req.options)
    orch = _get_orchestrator()

    def _run(run_id: str):
        state = orch.run(source, options, run_id=run_id)
        return {"run_id": state.run_id, "status": state.status, "percent": state.percent}

    # The task id doubles as the run id so progress events find their task.
    task_id = str(uuid.uuid4())
    _task_manager.submit("run", _run, task_id=task_id, kind="superseding", run_id=task_id)
    logger.info("Started run %s for %s", task_id, source.name)
    return {"task_id": task_id, "name": source.name}


@router.get("/runs/current")
def current_run():
    return _get_orchestrator().state.to_dict()


# ── Tasks ──


@router.get("/tasks")
def list_tasks():
    """List all tasks with status."""
    return [
        {k: v for k, v in t.items() if k != "progress_events"}
        for t in _task_manager.list_tasks()
    ]


@router.get("/tasks/{task_id}")
def get_task(task_id: str):
    """Task detail with latest progress."""
    task = _task_manager.get_status(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("/tasks/{task_id}/stream")
def stream_task(task_id: str):
    """SSE stream of progress events for a task."""
    task = _task_manager.get_status(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")

    sub_queue = _task_manager.subscribe(task_id)
    if sub_queue is None:
        raise HTTPException(status_code=404, detail="Task not found")

    def event_generator():
        # Replay what happened before the subscription
        for evt in task.get("progress_events", []):
            yield f"data: {json.dumps({'type': 'progress', **evt})}\n\n"

        if task["status"] in TERMINAL_STATUSES:
            if task["status"] == "completed":
                yield f"data: {json.dumps({'type': 'done', 'result': task.get('result')})}\n\n"
            elif task["status"] == "failed":
                yield f"data: {json.dumps({'type': 'error', 'error': task.get('error', '')})}\n\n"
            else:
                yield f"data: {json.dumps({'type': 'superseded'})}\n\n"
            return

        while True:
            try:
                event = sub_queue.get(timeout=30)
                yield f"data: {json.dumps(event)}\n\n"
                if event.get("type") in ("done", "error", "superseded"):
                    break
            except queue.Empty:
                yield ": keepalive\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ── Session ──


@router.get("/session")
def get_session():
    """The snapshot persisted at the last phase boundary."""
    store = _get_session_store()
    try:
        snapshot = store.load()
    finally:
        store.close()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No session snapshot")
    return snapshot


# ── Retrieval and chat ──


@router.get("/search")
def search(q: str = Query(..., min_length=1), k: int = Query(4, ge=1, le=50)):
    orch = _get_orchestrator()
    store = orch.retrieval_store
    if not orch.has_context or store is None:
        raise HTTPException(status_code=409, detail="No indexed repository; start a run first")
    results = store.similarity_search(q, k=k)
    return {
        "query": q,
        "embeddings": store.embeddings_enabled,
        "results": [
            {
                "chunk_id": r.chunk.id,
                "file_path": r.chunk.file_path,
                "start_line": r.chunk.start_line,
                "end_line": r.chunk.end_line,
                "score": round(r.score, 6),
                "match_type": r.match_type,
                "content": r.chunk.content,
                "related_symbol_ids": list(r.chunk.related_symbol_ids),
            }
            for r in results
        ],
    }


class ChatRequest(BaseModel):
    question: str


@router.post("/chat")
def chat(req: ChatRequest):
    if not req.question.strip():
        raise HTTPException(status_code=400, detail="Question must not be empty")
    session = _get_chat()
    t0 = time.perf_counter()
    try:
        reply = session.ask(req.question)
    except Exception as e:
        logger.exception("Chat failed after %.2fs", time.perf_counter() - t0)
        raise HTTPException(status_code=502, detail=f"Language model error: {e}")
    return {"answer": reply.answer, "sources": reply.sources, "has_context": session.has_context}


@router.get("/symbols/{symbol_id:path}")
def get_symbol(symbol_id: str):
    graph = _get_orchestrator().knowledge_graph
    sym = graph.get(symbol_id)
    if sym is None:
        raise HTTPException(status_code=404, detail="Symbol not found")
    data = sym.to_dict()
    data["callers"] = [{"id": s.id, "name": s.name, "file_path": s.file_path} for s in graph.callers(symbol_id)]
    data["callees"] = [{"id": s.id, "name": s.name, "file_path": s.file_path} for s in graph.callees(symbol_id)]
    data["usage_count"] = graph.usage_count(symbol_id)
    return data
