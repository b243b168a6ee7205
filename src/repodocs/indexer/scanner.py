"""File discovery and filtering: which files ever reach the extractor and chunker."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from repodocs import config
from repodocs.models import SourceFile, count_lines

logger = logging.getLogger(__name__)

IGNORED_DIRS = {
    # JavaScript / web
    "node_modules", ".git", ".vscode", ".idea", "dist", "build", "coverage",
    "tmp", "temp", ".next", "public",
    # Assets and media
    "icon", "icons", "images", "img", "assets",
    # Python virtual environments
    "venv", ".venv", "env", ".env", "virtualenv", "envs",
    # Python internals and vendored libs
    "__pycache__", "Lib", "lib", "Scripts", "bin", "site-packages", "Include",
    "share", "etc", "man",
    # Model weights and heavy downloads
    "models", "weights", "downloads",
}

ALLOWED_EXTENSIONS = {
    ".js", ".jsx", ".ts", ".tsx", ".py", ".html", ".css", ".json", ".md",
    ".yml", ".yaml", ".txt", ".dockerfile", ".sh", ".bat", ".java", ".c",
    ".cpp", ".go", ".rs", ".sql", ".prisma", ".tf", ".tfvars", ".conf",
}

LANGUAGE_MAP = {
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".py": "Python",
    ".html": "HTML",
    ".css": "CSS",
    ".json": "JSON",
    ".md": "Markdown",
    ".yml": "YAML",
    ".yaml": "YAML",
    ".dockerfile": "Docker",
    ".sh": "Shell",
    ".bat": "Batch",
    ".java": "Java",
    ".c": "C",
    ".cpp": "C++",
    ".go": "Go",
    ".rs": "Rust",
    ".sql": "SQL",
    ".prisma": "Prisma DB",
    ".tf": "Terraform",
    ".tfvars": "Terraform",
}

CONFIG_FILES = {
    "package.json", "tsconfig.json", "Dockerfile", "docker-compose.yml",
    "requirements.txt", "Cargo.toml", "go.mod", "pom.xml", "Gemfile",
    "Makefile", "README.md", "vite.config.ts", "vite.config.js",
    "webpack.config.js", "schema.prisma", "main.tf", "pyproject.toml",
}


def _extension(path: str) -> str:
    return os.path.splitext(path.rsplit("/", 1)[-1])[1].lower()


def is_ignored(path: str) -> bool:
    """True if any directory component of ``path`` is an ignored name."""
    return any(part in IGNORED_DIRS for part in path.split("/")[:-1])


def is_config_file(path: str) -> bool:
    return path.rsplit("/", 1)[-1] in CONFIG_FILES


def is_allowed(path: str) -> bool:
    """True if the file may reach the core: allowed extension, no ignored dir."""
    if is_ignored(path):
        return False
    return _extension(path) in ALLOWED_EXTENSIONS or is_config_file(path)


@dataclass
class ScanResult:
    files: list[SourceFile] = field(default_factory=list)
    file_tree: list[str] = field(default_factory=list)
    config_contents: dict[str, str] = field(default_factory=dict)
    skipped: int = 0  # listed but not loaded (too large / over the fetch cap)
    failed: int = 0  # content could not be read or fetched

    @property
    def file_tree_text(self) -> str:
        return "\n".join(f"- {p}" for p in self.file_tree)


def scan_entries(
    entries: Iterable[tuple[str, str | None, int]],
    max_file_bytes: int | None = None,
    max_files: int | None = None,
) -> ScanResult:
    """Turn ``(path, content, size)`` entries into a filtered ScanResult.

    ``content`` may be None for an entry whose read failed; it is listed in
    the tree and counted as failed. With ``max_files`` set, at most that many
    non-config files are loaded; the rest are listed and counted as skipped.
    """
    limit = max_file_bytes if max_file_bytes is not None else config.MAX_FILE_BYTES
    result = ScanResult()
    loaded = 0

    for path, content, size in entries:
        path = path.replace("\\", "/")
        if path.startswith("./"):
            path = path[2:]
        if not is_allowed(path):
            continue
        result.file_tree.append(path)

        is_config = is_config_file(path)
        if size >= limit and not is_config:
            result.skipped += 1
            continue
        if not is_config and max_files is not None and loaded >= max_files:
            result.skipped += 1
            continue
        if content is None:
            result.failed += 1
            continue

        if is_config:
            result.config_contents[path] = content
        else:
            loaded += 1
        result.files.append(SourceFile(
            path=path,
            content=content,
            size_bytes=size,
            line_count=count_lines(content),
        ))

    return result


class LocalDirectorySource:
    """Reads an on-disk directory tree as a flat list of entries."""

    def __init__(self, root: Path, max_file_bytes: int | None = None) -> None:
        self.root = Path(root)
        self.name = self.root.resolve().name
        self._max_file_bytes = max_file_bytes

    def _walk(self) -> Iterable[tuple[str, str | None, int]]:
        limit = self._max_file_bytes or config.MAX_FILE_BYTES
        for dirpath, dirs, filenames in os.walk(self.root):
            dirs[:] = sorted(d for d in dirs if d not in IGNORED_DIRS)
            for fname in sorted(filenames):
                p = Path(dirpath) / fname
                relative = p.relative_to(self.root).as_posix()
                if not is_allowed(relative):
                    continue
                try:
                    size = p.stat().st_size
                    if size >= limit and not is_config_file(relative):
                        yield relative, None, size
                        continue
                    content = p.read_text(encoding="utf-8", errors="replace")
                except OSError as e:
                    logger.warning("Cannot read %s: %s", relative, e)
                    yield relative, None, 0
                    continue
                yield relative, content, size

    def fetch(self) -> ScanResult:
        if not self.root.is_dir():
            raise FileNotFoundError(f"Not a directory: {self.root}")
        return scan_entries(self._walk(), max_file_bytes=self._max_file_bytes)


def compute_language_stats(files: Iterable[SourceFile]) -> list[dict]:
    """Lines of code per language, largest first, with percentage of the total."""
    totals: dict[str, int] = {}
    for f in files:
        lang = LANGUAGE_MAP.get(f.extension)
        if lang is None:
            continue
        totals[lang] = totals.get(lang, 0) + f.line_count

    grand_total = sum(totals.values())
    if grand_total == 0:
        return []
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [
        {"language": lang, "lines": lines, "percent": round(lines / grand_total * 100, 1)}
        for lang, lines in ranked
    ]


def build_repo_summary(name: str, scan: ScanResult, stats: list[dict]) -> dict:
    return {
        "name": name,
        "file_count": len(scan.files),
        "listed_files": len(scan.file_tree),
        "total_lines": sum(f.line_count for f in scan.files),
        "top_language": stats[0]["language"] if stats else None,
        "config_files": sorted(scan.config_contents),
    }
