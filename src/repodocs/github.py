"""GitHub repositories as a scan source, plus commit-history signals."""

from __future__ import annotations

import logging
import shutil
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from repodocs import config
from repodocs.exceptions import SourceError
from repodocs.git_utils import GitError, clone_repo, get_commit_log, list_tracked_files
from repodocs.indexer.scanner import ScanResult, is_allowed, scan_entries

logger = logging.getLogger(__name__)


def parse_github_url(url: str) -> tuple[str, str] | None:
    """Return ``(owner, repo)`` for a github.com URL, or None if it is not one."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        return None
    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    if not owner or not repo:
        return None
    return owner, repo


@dataclass
class CommitInfo:
    sha: str
    author: str
    date: str
    files: list[str] = field(default_factory=list)


def build_repo_intel(commits: Iterable[CommitInfo], limit: int = 10) -> dict:
    """Most-changed files and the top author per file.

    Advisory only: an empty commit list gives empty hotspots and owners.
    """
    changes: Counter[str] = Counter()
    authors: dict[str, Counter[str]] = {}
    commit_count = 0
    for commit in commits:
        commit_count += 1
        for path in commit.files:
            changes[path] += 1
            authors.setdefault(path, Counter())[commit.author] += 1

    hotspots = [
        {"path": path, "changes": count}
        for path, count in changes.most_common(limit)
    ]
    owners = []
    for spot in hotspots:
        author, count = authors[spot["path"]].most_common(1)[0]
        owners.append({"path": spot["path"], "owner": author, "commits": count})
    return {"commit_count": commit_count, "hotspots": hotspots, "owners": owners}


class GithubSource:
    """Shallow-clones a GitHub repository and scans the checkout."""

    def __init__(
        self,
        url: str,
        clone_dir: Path | None = None,
        max_files: int | None = None,
        history_depth: int | None = None,
    ) -> None:
        info = parse_github_url(url)
        if info is None:
            raise SourceError(f"Invalid GitHub URL: {url}")
        self.owner, self.repo = info
        self.name = f"{self.owner}/{self.repo}"
        self.clone_path = clone_dir or config.get_clone_path(self.owner, self.repo)
        self.max_files = max_files if max_files is not None else config.MAX_REMOTE_FILES
        self.history_depth = history_depth if history_depth is not None else config.GIT_HISTORY_DEPTH
        self.commits: list[CommitInfo] = []

    @property
    def clone_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}.git"

    def _clone(self) -> None:
        if self.clone_path.exists():
            shutil.rmtree(self.clone_path)
        self.clone_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Cloning %s (depth %d) into %s", self.name, self.history_depth, self.clone_path)
        try:
            clone_repo(self.clone_url, self.clone_path, depth=self.history_depth)
        except GitError as e:
            raise SourceError(f"Repository not found or access denied: {self.name}") from e

    def _entries(self, paths: list[str]) -> Iterable[tuple[str, str | None, int]]:
        root = self.clone_path.resolve()
        for relative in paths:
            if not is_allowed(relative):
                continue
            p = self.clone_path / relative
            # Tracked symlinks are recreated by git and may point anywhere on this host
            if p.is_symlink() or not p.resolve().is_relative_to(root):
                logger.warning("Not reading %s: links outside the checkout", relative)
                yield relative, None, 0
                continue
            try:
                size = p.stat().st_size
                content = p.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning("Cannot read %s: %s", relative, e)
                yield relative, None, 0
                continue
            yield relative, content, size

    def load_history(self) -> list[CommitInfo]:
        """Read recent commits from the clone. Git failures yield no commits."""
        try:
            raw = get_commit_log(self.clone_path, self.history_depth)
        except GitError as e:
            logger.warning("Commit history unavailable for %s: %s", self.name, e)
            return []
        return [CommitInfo(**c) for c in raw]

    def fetch(self) -> ScanResult:
        self._clone()
        try:
            paths = list_tracked_files(self.clone_path)
        except GitError as e:
            raise SourceError(f"Cannot list files of {self.name}: {e}") from e
        result = scan_entries(self._entries(paths), max_files=self.max_files)
        self.commits = self.load_history()
        logger.info(
            "Fetched %s: %d files loaded, %d listed, %d skipped, %d failed",
            self.name, len(result.files), len(result.file_tree), result.skipped, result.failed,
        )
        return result
