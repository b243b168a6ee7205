"""Helpers that turn model responses into document sections."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

MERMAID_KEYWORDS = (
    "sequenceDiagram", "classDiagram", "erDiagram", "flowchart", "graph",
    "gantt", "stateDiagram", "usecaseDiagram",
)

# (section key, heading), in document order
SECTIONS = (
    ("root", "Overview"),
    ("architecture", "System Architecture"),
    ("erd", "Data Model (ERD)"),
    ("class", "Class Diagram"),
    ("infra", "Infrastructure"),
    ("sequence", "Sequence Diagram"),
    ("use_case", "Use Cases"),
    ("api", "API Reference (OpenAPI)"),
    ("ops", "Operations and Deployment"),
    ("code", "Code Reference"),
)

_STRICT_BLOCK_RE = re.compile(r"```mermaid\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_ANY_BLOCK_RE = re.compile(r"```(.*?)```", re.DOTALL)
_JSON_BLOCK_RE = re.compile(r"```json\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def _fence(body: str, lang: str = "mermaid") -> str:
    return f"```{lang}\n{body}\n```"


def _looks_like_diagram(body: str) -> bool:
    lowered = body.lower()
    if any(lowered.startswith(kw.lower()) for kw in MERMAID_KEYWORDS):
        return True
    return "-->" in body or "->>" in body


def extract_mermaid_code(response: str) -> str | None:
    """Pull a fenced Mermaid block out of a model response.

    Tries, in order: a ```mermaid block, any fenced block that looks like a
    diagram, then a bare diagram keyword followed by diagram syntax. Returns
    None when nothing usable is found.
    """
    if not response:
        return None

    # Common model slips: ''' fences and "``` mermaid"
    text = response.replace("'''", "```")
    text = re.sub(r"```\s+mermaid", "```mermaid", text, flags=re.IGNORECASE)

    strict = _STRICT_BLOCK_RE.search(text)
    if strict and strict.group(1).strip():
        return _fence(strict.group(1).strip())

    for block in _ANY_BLOCK_RE.findall(text):
        body = block.strip()
        if body and _looks_like_diagram(body):
            return _fence(body)

    for keyword in MERMAID_KEYWORDS:
        match = re.search(
            rf"({keyword}.*?)(?=\n#|\n\n\n|\Z)", text, re.IGNORECASE | re.DOTALL
        )
        if not match:
            continue
        candidate = match.group(1).strip()
        if any(tok in candidate for tok in ("-->", "->>", "||--", "{", "class ")):
            return _fence(candidate)

    logger.debug("No Mermaid diagram in response: %r", response[:80])
    return None


def _sanitize_id(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_]", "_", value)


def _clean_name(value: str) -> str:
    value = value.strip()
    value = re.sub(r"^\(+|\)+$", "", value)
    return re.sub(r'^"+|"+$', "", value).strip()


def normalize_use_case_diagram(diagram: str) -> str:
    """Rewrite a ``usecaseDiagram`` block as a flowchart Mermaid can render.

    Mermaid has no use case diagram type. Actors and use cases become nodes
    in two subgraphs; include/extend statements become labelled edges. Any
    other diagram is returned unchanged.
    """
    match = _STRICT_BLOCK_RE.search(diagram)
    if not match:
        return diagram
    body = match.group(1).strip()
    if not body.lower().startswith("usecasediagram"):
        return diagram

    body = body.replace("\r", "")
    body = re.sub(r"^usecaseDiagram\s*", "usecaseDiagram\n", body, flags=re.IGNORECASE)
    # Models often collapse statements onto one line
    body = re.sub(r"\s+(actor|usecase|include|extend)\b", r"\n\1", body, flags=re.IGNORECASE)
    body = re.sub(r"\s+([A-Za-z0-9_]+)\s*-->", r"\n\1 -->", body)

    actors: dict[str, None] = {}
    usecases: dict[str, None] = {}
    edges: dict[str, None] = {}

    def actor(raw: str) -> str:
        name = _clean_name(raw)
        if name:
            actors[name] = None
        return name

    def usecase(raw: str) -> str:
        name = _clean_name(raw)
        if name:
            usecases[name] = None
        return name

    def relate(src: str, dst: str, label: str | None = None) -> None:
        if label:
            edges[f"{src} -->|{label}| {dst}"] = None
        else:
            edges[f"{src} --> {dst}"] = None

    def uc_id(name: str) -> str:
        return f"usecase_{_sanitize_id(name)}"

    def actor_id(name: str) -> str:
        return f"actor_{_sanitize_id(name)}"

    for line in (ln.strip() for ln in body.split("\n")):
        if not line or line.lower() == "usecasediagram":
            continue

        m = re.match(r"^actor\s+(.+)$", line, re.IGNORECASE)
        if m:
            actor(m.group(1))
            continue
        m = re.match(r"^usecase\s+(.+)$", line, re.IGNORECASE)
        if m:
            usecase(m.group(1))
            continue
        m = re.match(r"^include\s+(.+?)\s+with\s+(.+)$", line, re.IGNORECASE)
        if m:
            base, inc = usecase(m.group(1)), usecase(m.group(2))
            if base and inc:
                relate(uc_id(base), uc_id(inc), "<<include>>")
            continue
        m = re.match(r"^include\s+(.+?)\s*,\s*(.+)$", line, re.IGNORECASE)
        if m:
            base = usecase(m.group(1))
            for part in m.group(2).split(","):
                inc = usecase(part)
                if base and inc:
                    relate(uc_id(base), uc_id(inc), "<<include>>")
            continue
        m = re.match(r"^include\s+(.+?)\s+in\s+(.+)$", line, re.IGNORECASE)
        if m:
            inc, base = usecase(m.group(1)), usecase(m.group(2))
            if base and inc:
                relate(uc_id(base), uc_id(inc), "<<include>>")
            continue
        m = re.match(r"^extend\s+(.+?)\s+with\s+(.+)$", line, re.IGNORECASE)
        if m:
            base, ext = usecase(m.group(1)), usecase(m.group(2))
            if base and ext:
                relate(uc_id(ext), uc_id(base), "<<extend>>")
            continue
        m = re.match(r"^extend\s+(.+?)\s+in\s+(.+)$", line, re.IGNORECASE)
        if m:
            ext, base = usecase(m.group(1)), usecase(m.group(2))
            if base and ext:
                relate(uc_id(ext), uc_id(base), "<<extend>>")
            continue
        m = re.match(r"^(.+?)\s*-->\s*(.+)$", line)
        if m:
            src_raw, dst_raw = m.group(1).strip(), m.group(2).strip()
            src_is_actor = bool(re.match(r"^[A-Za-z0-9_]+$", src_raw))
            src = actor(src_raw) if src_is_actor else usecase(src_raw)
            dst = usecase(dst_raw)
            if src and dst:
                relate(actor_id(src) if src_is_actor else uc_id(src), uc_id(dst))

    if not actors and not usecases:
        return _fence('flowchart LR\n  fallback["Use case diagram not detected"]')

    lines = ["flowchart LR", '  subgraph Actors["Actors"]']
    lines += [f'    {actor_id(a)}["{a.replace(chr(34), "&quot;")}"]' for a in actors]
    lines += ["  end", '  subgraph UseCases["Use Cases"]']
    lines += [f'    {uc_id(u)}(["{u.replace(chr(34), "&quot;")}"])' for u in usecases]
    lines += ["  end"]
    lines += [f"  {edge}" for edge in edges]
    return _fence("\n".join(lines))


def extract_json_block(text: str) -> str | None:
    """Body of the first ```json block, or None."""
    match = _JSON_BLOCK_RE.search(text or "")
    if not match:
        return None
    return match.group(1).strip()


def file_header(path: str, lines: int) -> str:
    """One-line header for a file's collapsible analysis block."""
    directory, _, filename = path.rpartition("/")
    location = f" <code>{directory}/</code>" if directory else ""
    return f"<b>{filename}</b>{location} · {lines:,} lines"


def file_section(path: str, lines: int, body: str) -> str:
    return f"<details>\n<summary>{file_header(path, lines)}</summary>\n\n{body.strip()}\n\n</details>\n"


def error_block(title: str, reason: str) -> str:
    """Placeholder written into a section whose phase failed."""
    return f"> **{title} could not be generated.**\n>\n> {reason}"


def stats_table(language_stats: list[dict]) -> str:
    if not language_stats:
        return ""
    rows = [
        "| Language | Lines | Share |",
        "| :--- | ---: | ---: |",
    ]
    rows += [
        f"| **{s['language']}** | {s['lines']:,} | {s['percent']}% |"
        for s in language_stats
    ]
    return "\n".join(rows)


def assemble_document(
    title: str,
    sections: dict[str, str],
    language_stats: list[dict] | None = None,
    model: str | None = None,
    generated_on: str | None = None,
) -> str:
    """Join the finished sections into one Markdown document, in fixed order."""
    parts = [f"# {title}\n"]
    meta = []
    if model:
        meta.append(f"Model: {model}")
    if generated_on:
        meta.append(f"Generated: {generated_on}")
    if meta:
        parts.append("  \n".join(meta) + "\n")

    table = stats_table(language_stats or [])
    if table:
        parts.append(f"## Language Breakdown\n\n{table}\n")

    for key, heading in SECTIONS:
        body = sections.get(key)
        if body:
            parts.append(f"## {heading}\n\n{body.strip()}\n")

    return "\n---\n\n".join(parts)
